from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, ForeignKey
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class UserRole(str, enum.Enum):
    """Platform roles (organisation roles live on OrganisationMember)"""
    STUDENT = "student"
    TEACHER = "teacher"
    ORG_ADMIN = "org_admin"
    PLATFORM_ADMIN = "platform_admin"


class UserTier(str, enum.Enum):
    """What the user can play and earn"""
    VISITOR = "visitor"
    FREE = "free"
    PREMIUM = "premium"


class UserSubscriptionStatus(str, enum.Enum):
    """Individual subscription state as mirrored from billing"""
    FREE_TRIAL = "FREE_TRIAL"
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    team_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=True)

    role = Column(SQLEnum(UserRole), default=UserRole.STUDENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)

    # Plan / premium state
    tier = Column(SQLEnum(UserTier), default=UserTier.FREE, nullable=False)
    subscription_status = Column(
        SQLEnum(UserSubscriptionStatus),
        default=UserSubscriptionStatus.FREE_TRIAL,
        nullable=False
    )
    free_trial_until = Column(DateTime, nullable=True)

    # Referrals
    referral_code = Column(String(16), unique=True, index=True, nullable=True)
    referred_by_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    free_months_granted = Column(Integer, default=0, nullable=False)
    next_cycle_free = Column(Boolean, default=False, nullable=False)

    # Timestamps
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_premium(self) -> bool:
        """Premium by tier, by a live subscription, or by an unexpired free trial"""
        if self.tier == UserTier.PREMIUM:
            return True
        if self.subscription_status in (UserSubscriptionStatus.ACTIVE, UserSubscriptionStatus.TRIALING):
            return True
        return bool(self.free_trial_until and self.free_trial_until > datetime.utcnow())

    def __repr__(self):
        return f"<User {self.email}>"
