"""Organisation (tenant) models: members, seats, groups and activity feed"""
from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey, JSON, Index, UniqueConstraint
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, SoftDeleteMixin


class OrganisationPlan(str, enum.Enum):
    INDIVIDUAL = "INDIVIDUAL"
    ORG_MONTHLY = "ORG_MONTHLY"
    ORG_ANNUAL = "ORG_ANNUAL"


class OrganisationStatus(str, enum.Enum):
    """Subscription state of the organisation"""
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class OrganisationMemberRole(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    BILLING_ADMIN = "BILLING_ADMIN"


class OrganisationMemberStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class OrganisationGroupType(str, enum.Enum):
    CLASS = "CLASS"
    HOUSE = "HOUSE"
    YEAR_GROUP = "YEAR_GROUP"
    CUSTOM = "CUSTOM"


class OrganisationActivityType(str, enum.Enum):
    ORG_CREATED = "ORG_CREATED"
    INVITE_SENT = "INVITE_SENT"
    MEMBER_ROLE_CHANGED = "MEMBER_ROLE_CHANGED"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    GROUP_CREATED = "GROUP_CREATED"
    LEADERBOARD_CREATED = "LEADERBOARD_CREATED"


class Organisation(Base):
    """A school or other tenant with a seat ceiling and subscription state"""
    __tablename__ = "organisations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email_domain = Column(String(255), nullable=True)  # e.g. 'school.org.uk' - invites must match
    owner_user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    plan = Column(SQLEnum(OrganisationPlan), default=OrganisationPlan.ORG_MONTHLY, nullable=False)
    status = Column(SQLEnum(OrganisationStatus), default=OrganisationStatus.TRIALING, nullable=False)
    max_seats = Column(Integer, default=10, nullable=False)

    current_period_end = Column(DateTime, nullable=True)
    grace_period_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Organisation {self.name}>"


class OrganisationMember(SoftDeleteMixin, Base):
    """
    A user's membership of an organisation.

    A seat is held while status is ACTIVE, seat_assigned_at is set,
    seat_released_at is null and the row is not soft-deleted.
    """
    __tablename__ = "organisation_members"

    __table_args__ = (
        UniqueConstraint('organisation_id', 'user_id', name='uq_org_member'),
        Index('ix_org_members_org_status', 'organisation_id', 'status'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    organisation_id = Column(GUID, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    role = Column(SQLEnum(OrganisationMemberRole), default=OrganisationMemberRole.TEACHER, nullable=False)
    status = Column(SQLEnum(OrganisationMemberStatus), default=OrganisationMemberStatus.PENDING, nullable=False)

    seat_assigned_at = Column(DateTime, nullable=True)
    seat_released_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def holds_seat(self) -> bool:
        return (
            self.status == OrganisationMemberStatus.ACTIVE
            and self.seat_assigned_at is not None
            and self.seat_released_at is None
            and self.deleted_at is None
        )

    def __repr__(self):
        return f"<OrganisationMember {self.user_id} in {self.organisation_id} ({self.role})>"


class OrganisationGroup(SoftDeleteMixin, Base):
    """Class, house or year group inside an organisation"""
    __tablename__ = "organisation_groups"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    organisation_id = Column(GUID, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(SQLEnum(OrganisationGroupType), default=OrganisationGroupType.CUSTOM, nullable=False)
    description = Column(Text, nullable=True)
    created_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class OrganisationGroupMember(Base):
    __tablename__ = "organisation_group_members"

    __table_args__ = (
        UniqueConstraint('group_id', 'member_id', name='uq_group_member'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    group_id = Column(GUID, ForeignKey("organisation_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id = Column(GUID, ForeignKey("organisation_members.id", ondelete="CASCADE"), nullable=False, index=True)
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class OrganisationActivity(Base):
    """Append-only feed of membership and configuration changes"""
    __tablename__ = "organisation_activity"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    organisation_id = Column(GUID, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(SQLEnum(OrganisationActivityType), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
