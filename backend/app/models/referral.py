from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class ReferralStatus(str, enum.Enum):
    PENDING = "PENDING"    # referred user signed up, not premium yet
    REWARDED = "REWARDED"  # referrer received the free month


class Referral(Base):
    __tablename__ = "referrals"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    referrer_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    referred_user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    status = Column(SQLEnum(ReferralStatus), default=ReferralStatus.PENDING, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    rewarded_at = Column(DateTime, nullable=True)
