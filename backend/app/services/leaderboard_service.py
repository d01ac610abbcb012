"""
Leaderboard Service - organisation, group and ad hoc leaderboards

Handles:
- Creating and soft deleting leaderboards under organisation permissions
- Joining, leaving and muting
- Standings computed from members' quiz completions
- The caller's leaderboard summaries (select-only projections)
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from sqlalchemy.sql import Select
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple

from app.core.exceptions import (
    AuthorizationError,
    PermissionDeniedError,
    ResourceNotFoundError,
    SubscriptionInactiveError,
    ValidationError,
)
from app.core.logging_config import logger
from app.models.user import User
from app.models.organisation import (
    Organisation,
    OrganisationGroup,
    OrganisationGroupMember,
    OrganisationMember,
    OrganisationActivityType,
)
from app.models.leaderboard import Leaderboard, LeaderboardMember, LeaderboardVisibility
from app.models.quiz import QuizCompletion
from app.schemas.leaderboard import LeaderboardCreate
from app.services.organisation_permissions import (
    can_write,
    get_organisation_context,
    has_permission,
    require_organisation_permission,
    ORG_VIEW,
    ORG_LEADERBOARDS_CREATE,
    ORG_LEADERBOARDS_MANAGE,
    LEADERBOARDS_CREATE_AD_HOC,
)
from app.services.organisation_service import organisation_service
from app.utils.pagination import split_has_more


class LeaderboardService:
    """Service for leaderboards and their members"""

    async def _get_leaderboard_or_404(self, db: AsyncSession, leaderboard_id: str) -> Leaderboard:
        leaderboard = await db.get(Leaderboard, leaderboard_id)
        if leaderboard is None or leaderboard.deleted_at is not None:
            raise ResourceNotFoundError("Leaderboard", leaderboard_id)
        return leaderboard

    async def _get_membership(
        self,
        db: AsyncSession,
        leaderboard_id: str,
        user_id: str
    ) -> Optional[LeaderboardMember]:
        result = await db.execute(
            select(LeaderboardMember).where(and_(
                LeaderboardMember.leaderboard_id == leaderboard_id,
                LeaderboardMember.user_id == user_id,
            ))
        )
        return result.scalar_one_or_none()

    # ==================== ORGANISATION LEADERBOARDS ====================

    async def list_organisation_leaderboards(
        self,
        db: AsyncSession,
        organisation_id: str,
        user: User
    ) -> List[Leaderboard]:
        await require_organisation_permission(db, organisation_id, user.id, ORG_VIEW)
        result = await db.execute(
            select(Leaderboard)
            .where(and_(
                Leaderboard.organisation_id == organisation_id,
                Leaderboard.deleted_at.is_(None),
            ))
            .order_by(Leaderboard.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_leaderboard(
        self,
        db: AsyncSession,
        organisation_id: str,
        user: User,
        data: LeaderboardCreate
    ) -> Leaderboard:
        """
        Create a leaderboard inside an organisation.

        ORG_WIDE and GROUP boards need org:leaderboards:create, AD_HOC
        boards need leaderboards:create_ad_hoc. Nothing can be created
        once the subscription has lapsed. The creator joins at once.
        """
        context = await get_organisation_context(db, organisation_id, user.id)
        if context is None:
            await organisation_service.get_organisation_or_404(db, organisation_id)
            raise PermissionDeniedError(ORG_LEADERBOARDS_CREATE)

        if not can_write(context):
            raise SubscriptionInactiveError()

        permission = (
            LEADERBOARDS_CREATE_AD_HOC
            if data.visibility == LeaderboardVisibility.AD_HOC
            else ORG_LEADERBOARDS_CREATE
        )
        if not has_permission(context, permission):
            raise PermissionDeniedError(permission)

        group_id = None
        if data.visibility == LeaderboardVisibility.GROUP:
            if not data.organisation_group_id:
                raise ValidationError("organisation_group_id is required for GROUP leaderboards",
                                      field="organisation_group_id")
            group = await db.scalar(
                select(OrganisationGroup.id).where(and_(
                    OrganisationGroup.id == data.organisation_group_id,
                    OrganisationGroup.organisation_id == organisation_id,
                    OrganisationGroup.deleted_at.is_(None),
                ))
            )
            if group is None:
                raise ResourceNotFoundError("Group", data.organisation_group_id)
            group_id = data.organisation_group_id

        leaderboard = Leaderboard(
            organisation_id=organisation_id,
            organisation_group_id=group_id,
            created_by_user_id=user.id,
            name=data.name,
            description=data.description,
            visibility=data.visibility,
        )
        db.add(leaderboard)
        await db.flush()

        db.add(LeaderboardMember(
            leaderboard_id=leaderboard.id,
            user_id=user.id,
            organisation_member_id=context.member.id,
        ))
        await organisation_service.log_activity(
            db, organisation_id, user.id, OrganisationActivityType.LEADERBOARD_CREATED,
            {"leaderboard_id": str(leaderboard.id), "name": leaderboard.name,
             "visibility": leaderboard.visibility.value},
        )
        await db.commit()
        await db.refresh(leaderboard)

        logger.log_domain_event("leaderboard", "created", str(leaderboard.id),
                                visibility=leaderboard.visibility.value)
        return leaderboard

    async def delete_leaderboard(self, db: AsyncSession, leaderboard_id: str, user: User) -> None:
        """Creator, or an organisation member with org:leaderboards:manage"""
        leaderboard = await self._get_leaderboard_or_404(db, leaderboard_id)

        allowed = str(leaderboard.created_by_user_id) == str(user.id)
        if not allowed and leaderboard.organisation_id:
            context = await get_organisation_context(db, leaderboard.organisation_id, user.id)
            allowed = has_permission(context, ORG_LEADERBOARDS_MANAGE)
        if not allowed:
            raise AuthorizationError("You do not have permission to delete this leaderboard")

        leaderboard.soft_delete()
        await db.commit()
        logger.log_domain_event("leaderboard", "deleted", leaderboard_id)

    # ==================== MEMBERSHIP ====================

    async def join_leaderboard(self, db: AsyncSession, leaderboard_id: str, user: User) -> LeaderboardMember:
        leaderboard = await self._get_leaderboard_or_404(db, leaderboard_id)
        organisation_member_id = None

        if leaderboard.organisation_id and leaderboard.visibility != LeaderboardVisibility.AD_HOC:
            context = await get_organisation_context(db, leaderboard.organisation_id, user.id)
            if leaderboard.visibility == LeaderboardVisibility.ORG_WIDE:
                if not can_write(context):
                    raise AuthorizationError("You must be an active member of this organisation")
            else:
                in_group = context is not None and await db.scalar(
                    select(OrganisationGroupMember.id).where(and_(
                        OrganisationGroupMember.group_id == leaderboard.organisation_group_id,
                        OrganisationGroupMember.member_id == context.member.id,
                    ))
                ) is not None
                if not (in_group and can_write(context)):
                    raise AuthorizationError("You must be a member of this group")
            organisation_member_id = context.member.id
        elif leaderboard.organisation_id:
            context = await get_organisation_context(db, leaderboard.organisation_id, user.id)
            organisation_member_id = context.member.id if context else None

        membership = await self._get_membership(db, leaderboard_id, user.id)
        if membership is not None and membership.left_at is None:
            raise ValidationError("Already a member of this leaderboard")

        now = datetime.utcnow()
        if membership is None:
            membership = LeaderboardMember(leaderboard_id=leaderboard_id, user_id=user.id)
            db.add(membership)
        membership.joined_at = now
        membership.left_at = None
        membership.muted = False
        membership.organisation_member_id = organisation_member_id

        await db.commit()
        await db.refresh(membership)
        logger.log_domain_event("leaderboard", "joined", leaderboard_id, user_id=str(user.id))
        return membership

    async def leave_leaderboard(
        self,
        db: AsyncSession,
        leaderboard_id: str,
        user: User,
        mute: bool = False
    ) -> Dict[str, Any]:
        """Leave, or stay a member but mute the board"""
        await self._get_leaderboard_or_404(db, leaderboard_id)

        membership = await self._get_membership(db, leaderboard_id, user.id)
        if membership is None or membership.left_at is not None:
            return {"success": True, "message": "Not a member"}

        if mute:
            membership.muted = True
            message = "Leaderboard muted"
        else:
            membership.left_at = datetime.utcnow()
            message = "Left leaderboard"

        await db.commit()
        logger.log_domain_event("leaderboard", "muted" if mute else "left", leaderboard_id,
                                user_id=str(user.id))
        return {"success": True, "message": message}

    # ==================== STANDINGS ====================

    async def get_standings(
        self,
        db: AsyncSession,
        leaderboard_id: str,
        quiz_slug: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Rank active members by score.

        With ``quiz_slug`` the score is that quiz's best score, otherwise
        the sum of best scores across quizzes. Equal scores share a rank;
        ties are listed by whoever finished first.
        """
        await self._get_leaderboard_or_404(db, leaderboard_id)

        members = (await db.execute(
            select(User)
            .join(LeaderboardMember, LeaderboardMember.user_id == User.id)
            .where(and_(
                LeaderboardMember.leaderboard_id == leaderboard_id,
                LeaderboardMember.left_at.is_(None),
            ))
        )).scalars().all()
        if not members:
            return []

        query = select(QuizCompletion).where(QuizCompletion.user_id.in_([m.id for m in members]))
        if quiz_slug:
            query = query.where(QuizCompletion.quiz_slug == quiz_slug)
        completions = (await db.execute(query)).scalars().all()

        totals: Dict[str, Dict[str, Any]] = {
            str(m.id): {"user": m, "score": 0, "quizzes_played": 0, "last": None} for m in members
        }
        for completion in completions:
            entry = totals[str(completion.user_id)]
            entry["score"] += completion.score
            entry["quizzes_played"] += 1
            if entry["last"] is None or completion.completed_at > entry["last"]:
                entry["last"] = completion.completed_at

        ordered = sorted(
            totals.values(),
            key=lambda e: (-e["score"], e["last"] or datetime.max),
        )

        standings = []
        rank = 0
        previous_score = None
        for entry in ordered:
            if entry["score"] != previous_score:
                rank += 1
                previous_score = entry["score"]
            user = entry["user"]
            standings.append({
                "rank": rank,
                "user_id": str(user.id),
                "name": user.name,
                "team_name": user.team_name,
                "score": entry["score"],
                "quizzes_played": entry["quizzes_played"],
            })
        return standings

    # ==================== SUMMARIES ====================

    def _summary_query(self) -> Select:
        member_count = (
            select(func.count(LeaderboardMember.id))
            .where(and_(
                LeaderboardMember.leaderboard_id == Leaderboard.id,
                LeaderboardMember.left_at.is_(None),
            ))
            .correlate(Leaderboard)
            .scalar_subquery()
        )
        return (
            select(
                Leaderboard.id,
                Leaderboard.name,
                Leaderboard.description,
                Leaderboard.visibility,
                Leaderboard.organisation_id,
                Leaderboard.created_at,
                Organisation.name.label("organisation_name"),
                OrganisationGroup.name.label("group_name"),
                member_count.label("member_count"),
            )
            .outerjoin(Organisation, Organisation.id == Leaderboard.organisation_id)
            .outerjoin(OrganisationGroup, OrganisationGroup.id == Leaderboard.organisation_group_id)
            .where(Leaderboard.deleted_at.is_(None))
            .order_by(Leaderboard.created_at.desc())
        )

    async def _fetch(self, db: AsyncSession, query: Select, limit: int, offset: int) -> Tuple[List[Any], bool]:
        rows = (await db.execute(query.offset(offset).limit(limit + 1))).all()
        return split_has_more(rows, limit)

    async def get_my_leaderboards(
        self,
        db: AsyncSession,
        user: User,
        limit: int = 50,
        offset: int = 0
    ) -> Dict[str, Any]:
        """
        The caller's leaderboards grouped by visibility.

        Group and ad hoc boards are premium only. Each list is fetched
        with limit+1 rows to work out ``has_more``, then one query loads
        the caller's membership state for every board returned.
        """
        is_premium = user.is_premium

        member_orgs = (
            select(OrganisationMember.organisation_id)
            .where(and_(
                OrganisationMember.user_id == user.id,
                OrganisationMember.deleted_at.is_(None),
            ))
        )
        org_wide, more_org = await self._fetch(
            db,
            self._summary_query().where(and_(
                Leaderboard.visibility == LeaderboardVisibility.ORG_WIDE,
                Leaderboard.organisation_id.in_(member_orgs),
            )),
            limit, offset,
        )

        group: List[Any] = []
        ad_hoc: List[Any] = []
        more_group = more_ad_hoc = False
        if is_premium:
            my_groups = (
                select(OrganisationGroupMember.group_id)
                .join(OrganisationMember, OrganisationMember.id == OrganisationGroupMember.member_id)
                .where(and_(
                    OrganisationMember.user_id == user.id,
                    OrganisationMember.deleted_at.is_(None),
                ))
            )
            group, more_group = await self._fetch(
                db,
                self._summary_query().where(and_(
                    Leaderboard.visibility == LeaderboardVisibility.GROUP,
                    Leaderboard.organisation_group_id.in_(my_groups),
                )),
                limit, offset,
            )

            my_boards = (
                select(LeaderboardMember.leaderboard_id)
                .where(and_(
                    LeaderboardMember.user_id == user.id,
                    LeaderboardMember.left_at.is_(None),
                ))
            )
            ad_hoc, more_ad_hoc = await self._fetch(
                db,
                self._summary_query().where(and_(
                    Leaderboard.visibility == LeaderboardVisibility.AD_HOC,
                    Leaderboard.id.in_(my_boards),
                )),
                limit, offset,
            )

        board_ids = [row.id for row in [*org_wide, *group, *ad_hoc]]
        status: Dict[str, Dict[str, bool]] = {}
        if board_ids:
            memberships = (await db.execute(
                select(LeaderboardMember.leaderboard_id, LeaderboardMember.left_at, LeaderboardMember.muted)
                .where(and_(
                    LeaderboardMember.user_id == user.id,
                    LeaderboardMember.leaderboard_id.in_(board_ids),
                ))
            )).all()
            status = {
                str(board_id): {"is_member": left_at is None, "is_muted": bool(muted)}
                for board_id, left_at, muted in memberships
            }

        def to_summary(row) -> Dict[str, Any]:
            state = status.get(str(row.id), {"is_member": False, "is_muted": False})
            return {
                "id": str(row.id),
                "name": row.name,
                "description": row.description,
                "visibility": row.visibility.value,
                "organisation_id": str(row.organisation_id) if row.organisation_id else None,
                "organisation_name": row.organisation_name,
                "group_name": row.group_name,
                "member_count": row.member_count or 0,
                "created_at": row.created_at,
                **state,
            }

        return {
            "org_wide": [to_summary(r) for r in org_wide],
            "group": [to_summary(r) for r in group],
            "ad_hoc": [to_summary(r) for r in ad_hoc],
            "is_premium": is_premium,
            "has_more": more_org or more_group or more_ad_hoc,
        }


leaderboard_service = LeaderboardService()
