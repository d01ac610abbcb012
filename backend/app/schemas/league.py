from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class LeagueCreate(BaseModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    organisation_id: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("League name is required")
        return v


class LeagueUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    max_members: Optional[int] = Field(None, ge=2, le=500)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("League name cannot be empty")
        return v


class LeagueJoinRequest(BaseModel):
    invite_code: Optional[str] = None

    @field_validator('invite_code')
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper() if v else v


class JoinByCodeRequest(BaseModel):
    code: Optional[str] = None

    @field_validator('code')
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper() if v else v


class LeagueMemberResponse(BaseModel):
    user_id: str
    name: Optional[str] = None
    team_name: Optional[str] = None
    joined_at: datetime


class LeagueResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    invite_code: str
    created_by_user_id: str
    organisation_id: Optional[str] = None
    max_members: int
    member_count: int = 0
    is_creator: bool = False
    created_at: datetime


class LeagueDetailResponse(LeagueResponse):
    members: List[LeagueMemberResponse] = []


class LeagueListResponse(BaseModel):
    leagues: List[LeagueResponse]


class LeagueStatsEntry(BaseModel):
    user_id: str
    name: Optional[str] = None
    team_name: Optional[str] = None
    quiz_slug: Optional[str] = None
    score: int
    total_correct_answers: int
    quizzes_played: int
    current_streak: int
    best_streak: int
    completed_at: Optional[datetime] = None


class LeagueStatsResponse(BaseModel):
    stats: List[LeagueStatsEntry]
    quiz_slugs: List[str]
    overall_stats: List[LeagueStatsEntry]
