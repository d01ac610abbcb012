"""
Organisation-scoped permissions.

A caller's rights inside an organisation depend on three things:
their membership role, their membership status, and whether the
organisation's subscription is still live (including its grace period).
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PermissionDeniedError, ResourceNotFoundError, SubscriptionInactiveError
from app.models.organisation import (
    Organisation,
    OrganisationMember,
    OrganisationMemberRole,
    OrganisationMemberStatus,
    OrganisationStatus,
)


# ==================== PERMISSIONS ====================

ORG_VIEW = "org:view"
ORG_SETTINGS = "org:settings"
ORG_MEMBERS_INVITE = "org:members:invite"
ORG_MEMBERS_REMOVE = "org:members:remove"
ORG_MEMBERS_UPDATE_ROLE = "org:members:update_role"
ORG_SEATS_MANAGE = "org:seats:manage"
ORG_BILLING_VIEW = "org:billing:view"
ORG_BILLING_MANAGE = "org:billing:manage"
ORG_GROUPS_CREATE = "org:groups:create"
ORG_GROUPS_MANAGE = "org:groups:manage"
ORG_LEADERBOARDS_CREATE = "org:leaderboards:create"
ORG_LEADERBOARDS_MANAGE = "org:leaderboards:manage"
LEADERBOARDS_CREATE_AD_HOC = "leaderboards:create_ad_hoc"

ALL_PERMISSIONS: FrozenSet[str] = frozenset({
    ORG_VIEW,
    ORG_SETTINGS,
    ORG_MEMBERS_INVITE,
    ORG_MEMBERS_REMOVE,
    ORG_MEMBERS_UPDATE_ROLE,
    ORG_SEATS_MANAGE,
    ORG_BILLING_VIEW,
    ORG_BILLING_MANAGE,
    ORG_GROUPS_CREATE,
    ORG_GROUPS_MANAGE,
    ORG_LEADERBOARDS_CREATE,
    ORG_LEADERBOARDS_MANAGE,
    LEADERBOARDS_CREATE_AD_HOC,
})

ROLE_PERMISSIONS: Dict[OrganisationMemberRole, FrozenSet[str]] = {
    OrganisationMemberRole.OWNER: ALL_PERMISSIONS,
    OrganisationMemberRole.ADMIN: ALL_PERMISSIONS - {
        ORG_SETTINGS, ORG_SEATS_MANAGE, ORG_BILLING_VIEW, ORG_BILLING_MANAGE,
    },
    OrganisationMemberRole.TEACHER: frozenset({ORG_VIEW, LEADERBOARDS_CREATE_AD_HOC}),
    OrganisationMemberRole.BILLING_ADMIN: frozenset({ORG_VIEW, ORG_BILLING_VIEW}),
}

# Still allowed while the subscription is lapsed, so admins can see and pay
READ_ONLY_PERMISSIONS: FrozenSet[str] = frozenset({ORG_VIEW, ORG_BILLING_VIEW})


@dataclass
class OrganisationContext:
    organisation: Organisation
    member: OrganisationMember

    @property
    def role(self) -> OrganisationMemberRole:
        return self.member.role


# ==================== SUBSCRIPTION STATE ====================

def is_subscription_active(organisation: Organisation, now: Optional[datetime] = None) -> bool:
    """ACTIVE/TRIALING, or PAST_DUE/EXPIRED still inside the grace period"""
    now = now or datetime.utcnow()
    if organisation.status in (OrganisationStatus.ACTIVE, OrganisationStatus.TRIALING):
        return True
    if organisation.status in (OrganisationStatus.PAST_DUE, OrganisationStatus.EXPIRED):
        return organisation.grace_period_end is not None and now < organisation.grace_period_end
    return False


def has_permission(context: Optional[OrganisationContext], permission: str) -> bool:
    if context is None:
        return False
    if context.member.status != OrganisationMemberStatus.ACTIVE:
        return False
    if not is_subscription_active(context.organisation) and permission not in READ_ONLY_PERMISSIONS:
        return False
    return permission in ROLE_PERMISSIONS.get(context.role, frozenset())


def can_write(context: Optional[OrganisationContext]) -> bool:
    """Live subscription and an ACTIVE membership"""
    if context is None:
        return False
    return (
        is_subscription_active(context.organisation)
        and context.member.status == OrganisationMemberStatus.ACTIVE
    )


# ==================== LOOKUPS ====================

async def get_organisation_context(
    db: AsyncSession,
    organisation_id: str,
    user_id: str
) -> Optional[OrganisationContext]:
    """Membership + organisation, or None if missing or soft-deleted"""
    result = await db.execute(
        select(OrganisationMember, Organisation)
        .join(Organisation, Organisation.id == OrganisationMember.organisation_id)
        .where(and_(
            OrganisationMember.organisation_id == organisation_id,
            OrganisationMember.user_id == user_id,
            OrganisationMember.deleted_at.is_(None),
        ))
    )
    row = result.first()
    if row is None:
        return None
    member, organisation = row
    return OrganisationContext(organisation=organisation, member=member)


async def require_organisation_permission(
    db: AsyncSession,
    organisation_id: str,
    user_id: str,
    permission: str
) -> OrganisationContext:
    """
    Load the caller's context and check ``permission``.

    Raises ResourceNotFoundError if the organisation does not exist,
    PermissionDeniedError if the caller is not a member or lacks the
    permission.
    """
    context = await get_organisation_context(db, organisation_id, user_id)
    if context is None:
        exists = await db.scalar(select(Organisation.id).where(Organisation.id == organisation_id))
        if exists is None:
            raise ResourceNotFoundError("Organisation", organisation_id)
        raise PermissionDeniedError(permission)

    if not has_permission(context, permission):
        if (
            permission not in READ_ONLY_PERMISSIONS
            and permission in ROLE_PERMISSIONS.get(context.role, frozenset())
            and context.member.status == OrganisationMemberStatus.ACTIVE
        ):
            raise SubscriptionInactiveError()
        raise PermissionDeniedError(permission)
    return context


async def get_available_seats(db: AsyncSession, organisation: Organisation) -> Dict[str, int]:
    """Seats held by ACTIVE, seated, unreleased and non-deleted members"""
    used = await db.scalar(
        select(func.count(OrganisationMember.id)).where(and_(
            OrganisationMember.organisation_id == organisation.id,
            OrganisationMember.status == OrganisationMemberStatus.ACTIVE,
            OrganisationMember.seat_assigned_at.is_not(None),
            OrganisationMember.seat_released_at.is_(None),
            OrganisationMember.deleted_at.is_(None),
        ))
    ) or 0
    total = organisation.max_seats or 0
    return {"total": total, "used": used, "available": max(0, total - used)}
