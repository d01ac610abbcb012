from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from app.models.leaderboard import LeaderboardVisibility


class LeaderboardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    visibility: LeaderboardVisibility = LeaderboardVisibility.ORG_WIDE
    organisation_group_id: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LeaderboardResponse(BaseModel):
    id: str
    organisation_id: Optional[str] = None
    organisation_group_id: Optional[str] = None
    created_by_user_id: str
    name: str
    description: Optional[str] = None
    visibility: str
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('visibility', mode='before')
    @classmethod
    def enum_value(cls, v):
        return getattr(v, 'value', v)


class LeaderboardSummary(BaseModel):
    """Compact projection used by the caller's leaderboard list"""
    id: str
    name: str
    description: Optional[str] = None
    visibility: str
    organisation_id: Optional[str] = None
    organisation_name: Optional[str] = None
    group_name: Optional[str] = None
    member_count: int
    is_member: bool = False
    is_muted: bool = False
    created_at: datetime


class MyLeaderboardsResponse(BaseModel):
    org_wide: List[LeaderboardSummary]
    group: List[LeaderboardSummary]
    ad_hoc: List[LeaderboardSummary]
    is_premium: bool
    has_more: bool


class LeaderboardJoinResponse(BaseModel):
    success: bool
    leaderboard_id: str
    joined_at: datetime


class LeaderboardLeaveResponse(BaseModel):
    success: bool
    message: str


class StandingEntry(BaseModel):
    rank: int
    user_id: str
    name: Optional[str] = None
    team_name: Optional[str] = None
    score: int
    quizzes_played: int


class StandingsResponse(BaseModel):
    leaderboard_id: str
    quiz_slug: Optional[str] = None
    entries: List[StandingEntry]
