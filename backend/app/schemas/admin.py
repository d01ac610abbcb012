from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from app.models.organisation import OrganisationPlan
from app.models.user import UserRole, UserTier
from app.utils.pagination import PaginationMeta


# ==================== Dashboard Schemas ====================

class UserCounts(BaseModel):
    total: int
    premium: int
    free: int
    active: int  # logged in within the last 30 days


class OrganisationCounts(BaseModel):
    total: int
    active: int


class DashboardStats(BaseModel):
    """Headline numbers for the admin dashboard"""
    users: UserCounts
    organisations: OrganisationCounts
    quiz_attempts_last_30_days: int


# ==================== Analytics Schemas ====================

class DailyActiveUsers(BaseModel):
    today: int
    yesterday: int
    change_percent: float
    trend: str  # 'up', 'down' or 'flat'


class MonthlyActiveUsers(BaseModel):
    current: int
    previous: int
    change_percent: float
    trend: str


class DailyAttempts(BaseModel):
    date: str  # YYYY-MM-DD
    attempts: int


class TopOrganisation(BaseModel):
    id: str
    name: str
    completions: int


class EngagementResponse(BaseModel):
    dau: DailyActiveUsers
    mau: MonthlyActiveUsers
    attempts_per_day: List[DailyAttempts]
    top_organisations: List[TopOrganisation]


class FunnelStep(BaseModel):
    step: str
    count: int
    conversion_percent: float  # relative to the previous step


class FunnelResponse(BaseModel):
    steps: List[FunnelStep]
    overall_conversion_percent: float


# ==================== Organisation Management Schemas ====================

class AdminOrganisationResponse(BaseModel):
    id: str
    name: str
    email_domain: Optional[str] = None
    owner_user_id: str
    owner_email: Optional[str] = None
    plan: str
    status: str
    max_seats: int
    member_count: int = 0
    current_period_end: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    created_at: datetime


class AdminOrganisationListResponse(BaseModel):
    organisations: List[AdminOrganisationResponse]
    pagination: PaginationMeta


class OrganisationAction(str, Enum):
    SUSPEND = "suspend"
    ACTIVATE = "activate"
    CHANGE_PLAN = "changePlan"
    CHANGE_MAX_SEATS = "changeMaxSeats"
    TRANSFER_OWNERSHIP = "transferOwnership"


class OrganisationActionRequest(BaseModel):
    """
    Admin action on an organisation.

    ``action`` stays a plain string so an unknown action is reported as
    a 400 with the list of supported ones instead of a schema error.
    """
    action: str
    plan: Optional[OrganisationPlan] = None
    max_seats: Optional[int] = None
    new_owner_id: Optional[str] = None

    @model_validator(mode='after')
    def check_arguments(self):
        if self.action == OrganisationAction.CHANGE_PLAN.value and self.plan is None:
            raise ValueError("plan is required for changePlan")
        if self.action == OrganisationAction.CHANGE_MAX_SEATS.value:
            if self.max_seats is None or self.max_seats < 0:
                raise ValueError("max_seats must be a non-negative integer")
        if self.action == OrganisationAction.TRANSFER_OWNERSHIP.value and not self.new_owner_id:
            raise ValueError("new_owner_id is required for transferOwnership")
        return self


class OrganisationActionResponse(BaseModel):
    success: bool
    action: str
    message: str
    organisation: AdminOrganisationResponse


# ==================== User Management Schemas ====================

class AdminUserResponse(BaseModel):
    """User as seen from the admin dashboard"""
    id: str
    email: str
    name: Optional[str] = None
    role: str
    tier: str
    subscription_status: str
    is_active: bool
    is_premium: bool
    free_months_granted: int
    referral_code: Optional[str] = None
    completions: int = 0
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator('role', 'tier', 'subscription_status', mode='before')
    @classmethod
    def enum_value(cls, v):
        return getattr(v, 'value', v)


class AdminUserListResponse(BaseModel):
    users: List[AdminUserResponse]
    pagination: PaginationMeta


class UserAction(str, Enum):
    SUSPEND = "suspend"
    ACTIVATE = "activate"
    CHANGE_TIER = "changeTier"
    CHANGE_ROLE = "changeRole"
    GENERATE_REFERRAL_CODE = "generateReferralCode"


class UserActionRequest(BaseModel):
    """Admin action on a user account; unknown actions are a 400 like organisation actions"""
    action: str
    tier: Optional[UserTier] = None
    role: Optional[UserRole] = None

    @model_validator(mode='after')
    def check_arguments(self):
        if self.action == UserAction.CHANGE_TIER.value and self.tier is None:
            raise ValueError("tier is required for changeTier")
        if self.action == UserAction.CHANGE_ROLE.value and self.role is None:
            raise ValueError("role is required for changeRole")
        return self


class UserActionResponse(BaseModel):
    success: bool
    action: str
    message: str
    user: AdminUserResponse


# ==================== Audit Log Schemas ====================

class AuditLogResponse(BaseModel):
    id: str
    admin_id: Optional[str] = None
    action: str
    target_type: str
    target_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
