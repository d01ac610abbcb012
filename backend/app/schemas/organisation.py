"""
Organisation Schemas - members, seats, groups, activity
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.organisation import (
    OrganisationMemberRole,
    OrganisationMemberStatus,
    OrganisationGroupType,
    OrganisationPlan,
)


def _enum_value(v):
    return getattr(v, 'value', v)


# ============== Organisation ==============

class OrganisationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email_domain: Optional[str] = Field(None, max_length=255)
    plan: OrganisationPlan = OrganisationPlan.ORG_MONTHLY
    max_seats: Optional[int] = Field(None, ge=1)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator('email_domain')
    @classmethod
    def normalise_domain(cls, v):
        return v.strip().lower().lstrip('@') if v else v


class SeatSummary(BaseModel):
    total: int
    used: int
    available: int


class OrganisationResponse(BaseModel):
    id: str
    name: str
    email_domain: Optional[str] = None
    owner_user_id: str
    plan: str
    status: str
    max_seats: int
    current_period_end: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('plan', 'status', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)


class OrganisationDetailResponse(OrganisationResponse):
    seats: SeatSummary
    subscription_active: bool
    role: Optional[str] = None


class MyOrganisationResponse(BaseModel):
    organisation: Optional[OrganisationResponse] = None
    role: Optional[str] = None
    status: Optional[str] = None


# ============== Members ==============

class MemberInvite(BaseModel):
    email: EmailStr
    role: OrganisationMemberRole = OrganisationMemberRole.TEACHER

    @field_validator('email')
    @classmethod
    def normalise_email(cls, v):
        return v.strip().lower()


class MemberUpdate(BaseModel):
    role: Optional[OrganisationMemberRole] = None
    status: Optional[OrganisationMemberStatus] = None


class MemberUserSummary(BaseModel):
    id: str
    email: str
    name: Optional[str] = None


class MemberResponse(BaseModel):
    id: str
    organisation_id: str
    user_id: str
    role: str
    status: str
    seat_assigned_at: Optional[datetime] = None
    seat_released_at: Optional[datetime] = None
    created_at: datetime
    user: Optional[MemberUserSummary] = None

    class Config:
        from_attributes = True

    @field_validator('role', 'status', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)


class MemberListResponse(BaseModel):
    members: List[MemberResponse]
    seats: SeatSummary


# ============== Groups ==============

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: OrganisationGroupType = OrganisationGroupType.CUSTOM
    description: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class GroupResponse(BaseModel):
    id: str
    organisation_id: str
    name: str
    type: str
    description: Optional[str] = None
    member_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('type', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)


class GroupMemberAdd(BaseModel):
    member_id: str


class GroupMemberResponse(BaseModel):
    id: str
    group_id: str
    member_id: str
    added_at: datetime

    class Config:
        from_attributes = True


# ============== Activity ==============

class ActivityResponse(BaseModel):
    id: str
    type: str
    user_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('type', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)
