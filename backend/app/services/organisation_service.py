"""
Organisation Service - tenants, memberships, seats and groups

Handles:
- Creating organisations (creator becomes the seated OWNER)
- Inviting, updating and removing members within the seat ceiling
- Groups and group membership
- The organisation activity feed
- Platform admin actions (suspend, plan/seat changes, ownership transfer)
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from datetime import datetime, timedelta
from typing import Optional, List, Tuple, Dict, Any

from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    ResourceNotFoundError,
    ValidationError,
)
from app.core.logging_config import logger
from app.models.user import User
from app.models.organisation import (
    Organisation,
    OrganisationStatus,
    OrganisationMember,
    OrganisationMemberRole,
    OrganisationMemberStatus,
    OrganisationGroup,
    OrganisationGroupMember,
    OrganisationActivity,
    OrganisationActivityType,
)
from app.schemas.organisation import OrganisationCreate, MemberInvite, MemberUpdate, GroupCreate
from app.schemas.admin import OrganisationAction, OrganisationActionRequest
from app.services.organisation_permissions import (
    OrganisationContext,
    require_organisation_permission,
    get_available_seats,
    ORG_VIEW,
    ORG_MEMBERS_INVITE,
    ORG_MEMBERS_REMOVE,
    ORG_MEMBERS_UPDATE_ROLE,
    ORG_GROUPS_CREATE,
    ORG_GROUPS_MANAGE,
)
from app.utils.pagination import PaginationMeta, paginate


class OrganisationService:
    """Service for organisations and their members"""

    # ==================== HELPERS ====================

    async def log_activity(
        self,
        db: AsyncSession,
        organisation_id: str,
        user_id: Optional[str],
        activity_type: OrganisationActivityType,
        details: Optional[Dict[str, Any]] = None
    ) -> OrganisationActivity:
        activity = OrganisationActivity(
            organisation_id=organisation_id,
            user_id=user_id,
            type=activity_type,
            details=details,
        )
        db.add(activity)
        return activity

    async def get_organisation_or_404(self, db: AsyncSession, organisation_id: str) -> Organisation:
        organisation = await db.get(Organisation, organisation_id)
        if organisation is None:
            raise ResourceNotFoundError("Organisation", organisation_id)
        return organisation

    async def _get_member_or_404(
        self,
        db: AsyncSession,
        organisation_id: str,
        member_id: str
    ) -> OrganisationMember:
        result = await db.execute(
            select(OrganisationMember).where(and_(
                OrganisationMember.id == member_id,
                OrganisationMember.organisation_id == organisation_id,
                OrganisationMember.deleted_at.is_(None),
            ))
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise ResourceNotFoundError("Member", member_id)
        return member

    # ==================== ORGANISATIONS ====================

    async def create_organisation(
        self,
        db: AsyncSession,
        owner: User,
        data: OrganisationCreate
    ) -> Organisation:
        """Create an organisation in TRIALING with the creator as seated OWNER"""
        now = datetime.utcnow()
        organisation = Organisation(
            name=data.name,
            email_domain=data.email_domain,
            owner_user_id=owner.id,
            plan=data.plan,
            status=OrganisationStatus.TRIALING,
            max_seats=data.max_seats or settings.ORG_DEFAULT_MAX_SEATS,
            grace_period_end=now + timedelta(days=settings.ORG_GRACE_PERIOD_DAYS),
        )
        db.add(organisation)
        await db.flush()

        db.add(OrganisationMember(
            organisation_id=organisation.id,
            user_id=owner.id,
            role=OrganisationMemberRole.OWNER,
            status=OrganisationMemberStatus.ACTIVE,
            seat_assigned_at=now,
        ))
        await self.log_activity(
            db, organisation.id, owner.id, OrganisationActivityType.ORG_CREATED,
            {"name": organisation.name},
        )
        await db.commit()
        await db.refresh(organisation)

        logger.log_domain_event("organisation", "created", str(organisation.id), owner_id=str(owner.id))
        return organisation

    async def get_my_organisation(
        self,
        db: AsyncSession,
        user: User
    ) -> Optional[Tuple[Organisation, OrganisationMember]]:
        """The caller's first non-deleted membership"""
        result = await db.execute(
            select(Organisation, OrganisationMember)
            .join(OrganisationMember, OrganisationMember.organisation_id == Organisation.id)
            .where(and_(
                OrganisationMember.user_id == user.id,
                OrganisationMember.deleted_at.is_(None),
            ))
            .order_by(OrganisationMember.created_at.asc())
            .limit(1)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def get_organisation(
        self,
        db: AsyncSession,
        organisation_id: str,
        user: User
    ) -> Tuple[OrganisationContext, Dict[str, int]]:
        context = await require_organisation_permission(db, organisation_id, user.id, ORG_VIEW)
        seats = await get_available_seats(db, context.organisation)
        return context, seats

    # ==================== MEMBERS ====================

    async def list_members(
        self,
        db: AsyncSession,
        organisation_id: str,
        user: User
    ) -> Tuple[List[Tuple[OrganisationMember, User]], Dict[str, int]]:
        context = await require_organisation_permission(db, organisation_id, user.id, ORG_VIEW)
        result = await db.execute(
            select(OrganisationMember, User)
            .join(User, User.id == OrganisationMember.user_id)
            .where(and_(
                OrganisationMember.organisation_id == organisation_id,
                OrganisationMember.deleted_at.is_(None),
            ))
            .order_by(OrganisationMember.created_at.desc())
        )
        seats = await get_available_seats(db, context.organisation)
        return [(m, u) for m, u in result.all()], seats

    async def invite_member(
        self,
        db: AsyncSession,
        organisation_id: str,
        actor: User,
        data: MemberInvite
    ) -> Tuple[OrganisationMember, User]:
        """
        Invite a user by email.

        The membership starts PENDING and becomes ACTIVE straight away
        when a seat can be assigned. Unknown emails get a user account
        created for them.
        """
        context = await require_organisation_permission(db, organisation_id, actor.id, ORG_MEMBERS_INVITE)
        organisation = context.organisation
        email = data.email

        result = await db.execute(select(User).where(User.email == email))
        invitee = result.scalar_one_or_none()

        existing: Optional[OrganisationMember] = None
        if invitee is not None:
            result = await db.execute(
                select(OrganisationMember).where(and_(
                    OrganisationMember.organisation_id == organisation_id,
                    OrganisationMember.user_id == invitee.id,
                ))
            )
            existing = result.scalar_one_or_none()
            if existing is not None and existing.deleted_at is None:
                raise ValidationError("User is already a member of this organisation", field="email")

        seats = await get_available_seats(db, organisation)
        if seats["available"] <= 0 and data.role != OrganisationMemberRole.OWNER:
            raise ValidationError("No available seats")

        if organisation.email_domain:
            domain = email.rsplit("@", 1)[-1].lower()
            if domain != organisation.email_domain.lower():
                raise ValidationError(
                    f"Email must belong to the {organisation.email_domain} domain",
                    field="email",
                )

        if invitee is None:
            invitee = User(email=email, name=email.split("@")[0])
            db.add(invitee)
            await db.flush()

        if existing is None:
            member = OrganisationMember(organisation_id=organisation_id, user_id=invitee.id)
            db.add(member)
        else:
            member = existing
            member.deleted_at = None
            member.seat_assigned_at = None
            member.seat_released_at = None

        member.role = data.role
        member.status = OrganisationMemberStatus.PENDING

        if data.role != OrganisationMemberRole.OWNER and seats["available"] > 0:
            member.seat_assigned_at = datetime.utcnow()
            member.status = OrganisationMemberStatus.ACTIVE

        await self.log_activity(
            db, organisation_id, actor.id, OrganisationActivityType.INVITE_SENT,
            {"email": email, "role": data.role.value},
        )
        await db.commit()
        await db.refresh(member)

        logger.log_domain_event(
            "organisation", "member_invited", organisation_id,
            role=data.role.value, seated=member.seat_assigned_at is not None,
        )
        return member, invitee

    async def update_member(
        self,
        db: AsyncSession,
        organisation_id: str,
        member_id: str,
        actor: User,
        data: MemberUpdate
    ) -> OrganisationMember:
        context = await require_organisation_permission(db, organisation_id, actor.id, ORG_MEMBERS_UPDATE_ROLE)
        member = await self._get_member_or_404(db, organisation_id, member_id)

        actor_is_owner = context.role == OrganisationMemberRole.OWNER
        if not actor_is_owner and (
            member.role == OrganisationMemberRole.OWNER or data.role == OrganisationMemberRole.OWNER
        ):
            raise AuthorizationError("Only the owner can change owner memberships")

        previous_role = member.role
        if data.role is not None:
            member.role = data.role

        if data.status is not None and data.status != member.status:
            now = datetime.utcnow()
            if data.status == OrganisationMemberStatus.ACTIVE and not member.holds_seat:
                seats = await get_available_seats(db, context.organisation)
                if seats["available"] <= 0:
                    raise ValidationError("No available seats")
                member.seat_assigned_at = now
                member.seat_released_at = None
            elif data.status != OrganisationMemberStatus.ACTIVE and member.holds_seat:
                member.seat_released_at = now
            member.status = data.status

        await self.log_activity(
            db, organisation_id, actor.id, OrganisationActivityType.MEMBER_ROLE_CHANGED,
            {
                "member_id": str(member.id),
                "from_role": previous_role.value,
                "to_role": member.role.value,
                "status": member.status.value,
            },
        )
        await db.commit()
        await db.refresh(member)
        return member

    async def remove_member(
        self,
        db: AsyncSession,
        organisation_id: str,
        member_id: str,
        actor: User
    ) -> OrganisationMember:
        """Soft delete the membership and release its seat"""
        await require_organisation_permission(db, organisation_id, actor.id, ORG_MEMBERS_REMOVE)
        member = await self._get_member_or_404(db, organisation_id, member_id)

        if member.role == OrganisationMemberRole.OWNER:
            raise AuthorizationError("Cannot remove the organisation owner")

        now = datetime.utcnow()
        if member.seat_assigned_at is not None and member.seat_released_at is None:
            member.seat_released_at = now
        member.status = OrganisationMemberStatus.INACTIVE
        member.deleted_at = now

        await self.log_activity(
            db, organisation_id, actor.id, OrganisationActivityType.MEMBER_REMOVED,
            {"member_id": str(member.id), "user_id": str(member.user_id)},
        )
        await db.commit()

        logger.log_domain_event("organisation", "member_removed", organisation_id, member_id=str(member.id))
        return member

    async def list_activity(
        self,
        db: AsyncSession,
        organisation_id: str,
        user: User
    ) -> List[OrganisationActivity]:
        await require_organisation_permission(db, organisation_id, user.id, ORG_VIEW)
        result = await db.execute(
            select(OrganisationActivity)
            .where(OrganisationActivity.organisation_id == organisation_id)
            .order_by(OrganisationActivity.created_at.desc())
            .limit(settings.ORG_ACTIVITY_LIMIT)
        )
        return list(result.scalars().all())

    # ==================== GROUPS ====================

    async def list_groups(
        self,
        db: AsyncSession,
        organisation_id: str,
        user: User
    ) -> List[Tuple[OrganisationGroup, int]]:
        await require_organisation_permission(db, organisation_id, user.id, ORG_VIEW)
        member_count = (
            select(func.count(OrganisationGroupMember.id))
            .where(OrganisationGroupMember.group_id == OrganisationGroup.id)
            .correlate(OrganisationGroup)
            .scalar_subquery()
        )
        result = await db.execute(
            select(OrganisationGroup, member_count)
            .where(and_(
                OrganisationGroup.organisation_id == organisation_id,
                OrganisationGroup.deleted_at.is_(None),
            ))
            .order_by(OrganisationGroup.name)
        )
        return [(group, count or 0) for group, count in result.all()]

    async def create_group(
        self,
        db: AsyncSession,
        organisation_id: str,
        actor: User,
        data: GroupCreate
    ) -> OrganisationGroup:
        await require_organisation_permission(db, organisation_id, actor.id, ORG_GROUPS_CREATE)

        group = OrganisationGroup(
            organisation_id=organisation_id,
            name=data.name,
            type=data.type,
            description=data.description,
            created_by_user_id=actor.id,
        )
        db.add(group)
        await db.flush()

        await self.log_activity(
            db, organisation_id, actor.id, OrganisationActivityType.GROUP_CREATED,
            {"group_id": str(group.id), "name": group.name},
        )
        await db.commit()
        await db.refresh(group)
        return group

    async def _get_group_or_404(self, db: AsyncSession, organisation_id: str, group_id: str) -> OrganisationGroup:
        result = await db.execute(
            select(OrganisationGroup).where(and_(
                OrganisationGroup.id == group_id,
                OrganisationGroup.organisation_id == organisation_id,
                OrganisationGroup.deleted_at.is_(None),
            ))
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise ResourceNotFoundError("Group", group_id)
        return group

    async def add_group_member(
        self,
        db: AsyncSession,
        organisation_id: str,
        group_id: str,
        member_id: str,
        actor: User
    ) -> OrganisationGroupMember:
        await require_organisation_permission(db, organisation_id, actor.id, ORG_GROUPS_MANAGE)
        await self._get_group_or_404(db, organisation_id, group_id)
        await self._get_member_or_404(db, organisation_id, member_id)

        existing = await db.scalar(
            select(OrganisationGroupMember.id).where(and_(
                OrganisationGroupMember.group_id == group_id,
                OrganisationGroupMember.member_id == member_id,
            ))
        )
        if existing is not None:
            raise ValidationError("Member is already in this group", field="member_id")

        link = OrganisationGroupMember(group_id=group_id, member_id=member_id)
        db.add(link)
        await db.commit()
        await db.refresh(link)
        return link

    async def remove_group_member(
        self,
        db: AsyncSession,
        organisation_id: str,
        group_id: str,
        member_id: str,
        actor: User
    ) -> None:
        await require_organisation_permission(db, organisation_id, actor.id, ORG_GROUPS_MANAGE)
        await self._get_group_or_404(db, organisation_id, group_id)

        result = await db.execute(
            select(OrganisationGroupMember).where(and_(
                OrganisationGroupMember.group_id == group_id,
                OrganisationGroupMember.member_id == member_id,
            ))
        )
        link = result.scalar_one_or_none()
        if link is None:
            raise ResourceNotFoundError("Group member", member_id, message="Member is not in this group")

        await db.delete(link)
        await db.commit()

    # ==================== ADMIN ====================

    async def admin_list_organisations(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 50
    ) -> Tuple[List[Dict[str, Any]], PaginationMeta]:
        query = select(Organisation)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Organisation.name.ilike(pattern),
                Organisation.email_domain.ilike(pattern),
            ))
        if status:
            try:
                query = query.where(Organisation.status == OrganisationStatus(status.upper()))
            except ValueError:
                raise ValidationError(f"Invalid status: {status}", field="status")
        query = query.order_by(Organisation.created_at.desc())

        organisations, meta = await paginate(db, query, page, limit)
        return [await self.admin_summary(db, o) for o in organisations], meta

    async def admin_summary(self, db: AsyncSession, organisation: Organisation) -> Dict[str, Any]:
        member_count = await db.scalar(
            select(func.count(OrganisationMember.id)).where(and_(
                OrganisationMember.organisation_id == organisation.id,
                OrganisationMember.deleted_at.is_(None),
            ))
        ) or 0
        owner_email = await db.scalar(select(User.email).where(User.id == organisation.owner_user_id))
        return {
            "id": str(organisation.id),
            "name": organisation.name,
            "email_domain": organisation.email_domain,
            "owner_user_id": str(organisation.owner_user_id),
            "owner_email": owner_email,
            "plan": organisation.plan.value,
            "status": organisation.status.value,
            "max_seats": organisation.max_seats,
            "member_count": member_count,
            "current_period_end": organisation.current_period_end,
            "grace_period_end": organisation.grace_period_end,
            "created_at": organisation.created_at,
        }

    async def apply_admin_action(
        self,
        db: AsyncSession,
        organisation_id: str,
        request: OrganisationActionRequest
    ) -> Tuple[Organisation, str]:
        """Run one admin action; returns the organisation and a human readable message"""
        try:
            action = OrganisationAction(request.action)
        except ValueError:
            supported = ", ".join(a.value for a in OrganisationAction)
            raise ValidationError(f"Invalid action: {request.action}. Must be one of: {supported}", field="action")

        organisation = await self.get_organisation_or_404(db, organisation_id)

        if action == OrganisationAction.SUSPEND:
            organisation.status = OrganisationStatus.CANCELLED
            message = "Organisation suspended"
        elif action == OrganisationAction.ACTIVATE:
            organisation.status = OrganisationStatus.ACTIVE
            message = "Organisation activated"
        elif action == OrganisationAction.CHANGE_PLAN:
            organisation.plan = request.plan
            message = f"Plan changed to {request.plan.value}"
        elif action == OrganisationAction.CHANGE_MAX_SEATS:
            organisation.max_seats = request.max_seats
            message = f"Max seats changed to {request.max_seats}"
        else:
            message = await self._transfer_ownership(db, organisation, request.new_owner_id)

        await db.flush()
        await db.refresh(organisation)

        logger.log_domain_event("organisation", f"admin_{action.value}", organisation_id)
        return organisation, message

    async def _transfer_ownership(self, db: AsyncSession, organisation: Organisation, new_owner_id: str) -> str:
        new_owner = await db.get(User, new_owner_id)
        if new_owner is None:
            raise ResourceNotFoundError("User", new_owner_id, message="New owner not found")

        result = await db.execute(
            select(OrganisationMember).where(and_(
                OrganisationMember.organisation_id == organisation.id,
                OrganisationMember.deleted_at.is_(None),
                OrganisationMember.user_id.in_([organisation.owner_user_id, new_owner.id]),
            ))
        )
        for member in result.scalars().all():
            if str(member.user_id) == str(new_owner.id):
                member.role = OrganisationMemberRole.OWNER
            elif member.role == OrganisationMemberRole.OWNER:
                member.role = OrganisationMemberRole.ADMIN

        organisation.owner_user_id = new_owner.id
        return "Ownership transferred"


organisation_service = OrganisationService()
