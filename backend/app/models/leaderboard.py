from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Text, ForeignKey, Boolean, UniqueConstraint, Index
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, SoftDeleteMixin


class LeaderboardVisibility(str, enum.Enum):
    """Who a leaderboard is scoped to"""
    ORG_WIDE = "ORG_WIDE"  # every writable member of the organisation
    GROUP = "GROUP"        # members of one organisation group
    AD_HOC = "AD_HOC"      # anyone who joins


class Leaderboard(SoftDeleteMixin, Base):
    __tablename__ = "leaderboards"

    __table_args__ = (
        Index('ix_leaderboards_org_visibility', 'organisation_id', 'visibility'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    organisation_id = Column(GUID, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=True)
    organisation_group_id = Column(GUID, ForeignKey("organisation_groups.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    visibility = Column(SQLEnum(LeaderboardVisibility), default=LeaderboardVisibility.ORG_WIDE, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Leaderboard {self.name} ({self.visibility})>"


class LeaderboardMember(Base):
    """
    Membership of a leaderboard.

    Active while left_at is null; muted members stay active but are
    hidden from the caller's own summaries.
    """
    __tablename__ = "leaderboard_members"

    __table_args__ = (
        UniqueConstraint('leaderboard_id', 'user_id', name='uq_leaderboard_member'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    leaderboard_id = Column(GUID, ForeignKey("leaderboards.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organisation_member_id = Column(GUID, ForeignKey("organisation_members.id", ondelete="SET NULL"), nullable=True)

    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    left_at = Column(DateTime, nullable=True)
    muted = Column(Boolean, default=False, nullable=False)

    @property
    def is_active(self) -> bool:
        return self.left_at is None
