"""
Private League Service

Premium users create leagues, share the invite code and compare
results. Membership is active while ``left_at`` is null; leagues are
soft deleted.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from datetime import datetime
from typing import Optional, List, Dict, Any

from app.core.config import settings
from app.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.user import User
from app.models.league import PrivateLeague, PrivateLeagueMember, PrivateLeagueStats
from app.models.quiz import QuizCompletion
from app.schemas.league import LeagueCreate, LeagueUpdate
from app.services.achievement_service import iso_week_key
from app.utils.codes import generate_unique_code


class LeagueService:
    """Service for private leagues"""

    # ==================== LOOKUPS ====================

    async def _get_league_or_404(self, db: AsyncSession, league_id: str) -> PrivateLeague:
        league = await db.get(PrivateLeague, league_id)
        if league is None or league.deleted_at is not None:
            raise ResourceNotFoundError("League", league_id)
        return league

    async def _get_membership(self, db: AsyncSession, league_id: str, user_id: str) -> Optional[PrivateLeagueMember]:
        result = await db.execute(
            select(PrivateLeagueMember).where(and_(
                PrivateLeagueMember.league_id == league_id,
                PrivateLeagueMember.user_id == user_id,
            ))
        )
        return result.scalar_one_or_none()

    async def _active_member_count(self, db: AsyncSession, league_id: str) -> int:
        return await db.scalar(
            select(func.count(PrivateLeagueMember.id)).where(and_(
                PrivateLeagueMember.league_id == league_id,
                PrivateLeagueMember.left_at.is_(None),
            ))
        ) or 0

    async def _invite_code_taken(self, db: AsyncSession, code: str) -> bool:
        return await db.scalar(select(PrivateLeague.id).where(PrivateLeague.invite_code == code)) is not None

    async def _new_invite_code(self, db: AsyncSession) -> str:
        return await generate_unique_code(lambda code: self._invite_code_taken(db, code))

    def _is_creator(self, league: PrivateLeague, user: User) -> bool:
        return str(league.created_by_user_id) == str(user.id)

    def _require_creator(self, league: PrivateLeague, user: User, action: str) -> None:
        if not self._is_creator(league, user):
            raise AuthorizationError(f"Only the league creator can {action} this league")

    async def _ensure_overall_stats(self, db: AsyncSession, league_id: str, user_id: str) -> None:
        existing = await db.scalar(
            select(PrivateLeagueStats.id).where(and_(
                PrivateLeagueStats.league_id == league_id,
                PrivateLeagueStats.user_id == user_id,
                PrivateLeagueStats.quiz_slug.is_(None),
            ))
        )
        if existing is None:
            db.add(PrivateLeagueStats(league_id=league_id, user_id=user_id, quiz_slug=None))

    def serialize(self, league: PrivateLeague, user: User, member_count: int) -> Dict[str, Any]:
        return {
            "id": str(league.id),
            "name": league.name,
            "description": league.description,
            "invite_code": league.invite_code,
            "created_by_user_id": str(league.created_by_user_id),
            "organisation_id": str(league.organisation_id) if league.organisation_id else None,
            "max_members": league.max_members,
            "member_count": member_count,
            "is_creator": self._is_creator(league, user),
            "created_at": league.created_at,
        }

    async def describe(self, db: AsyncSession, league: PrivateLeague, user: User) -> Dict[str, Any]:
        return self.serialize(league, user, await self._active_member_count(db, league.id))

    # ==================== CRUD ====================

    async def list_leagues(self, db: AsyncSession, user: User) -> List[Dict[str, Any]]:
        """Leagues the caller created or actively belongs to, newest first"""
        active_memberships = (
            select(PrivateLeagueMember.league_id)
            .where(and_(
                PrivateLeagueMember.user_id == user.id,
                PrivateLeagueMember.left_at.is_(None),
            ))
        )
        member_count = (
            select(func.count(PrivateLeagueMember.id))
            .where(and_(
                PrivateLeagueMember.league_id == PrivateLeague.id,
                PrivateLeagueMember.left_at.is_(None),
            ))
            .correlate(PrivateLeague)
            .scalar_subquery()
        )
        result = await db.execute(
            select(PrivateLeague, member_count)
            .where(and_(
                PrivateLeague.deleted_at.is_(None),
                or_(
                    PrivateLeague.created_by_user_id == user.id,
                    PrivateLeague.id.in_(active_memberships),
                ),
            ))
            .order_by(PrivateLeague.created_at.desc())
        )
        return [self.serialize(league, user, count or 0) for league, count in result.all()]

    async def create_league(self, db: AsyncSession, user: User, data: LeagueCreate) -> PrivateLeague:
        invite_code = await self._new_invite_code(db)

        league = PrivateLeague(
            name=data.name,
            description=data.description,
            invite_code=invite_code,
            created_by_user_id=user.id,
            organisation_id=data.organisation_id,
            max_members=settings.LEAGUE_DEFAULT_MAX_MEMBERS,
        )
        db.add(league)
        await db.flush()

        db.add(PrivateLeagueMember(league_id=league.id, user_id=user.id))
        await self._ensure_overall_stats(db, league.id, user.id)
        await db.commit()
        await db.refresh(league)

        logger.log_domain_event("league", "created", str(league.id), invite_code=invite_code)
        return league

    async def get_league(self, db: AsyncSession, league_id: str, user: User) -> Dict[str, Any]:
        league = await self._get_league_or_404(db, league_id)
        membership = await self._get_membership(db, league_id, user.id)
        is_member = membership is not None and membership.left_at is None
        if not (is_member or self._is_creator(league, user)):
            raise AuthorizationError("You are not a member of this league")

        rows = (await db.execute(
            select(PrivateLeagueMember, User)
            .join(User, User.id == PrivateLeagueMember.user_id)
            .where(and_(
                PrivateLeagueMember.league_id == league_id,
                PrivateLeagueMember.left_at.is_(None),
            ))
            .order_by(PrivateLeagueMember.joined_at.asc())
        )).all()

        detail = self.serialize(league, user, len(rows))
        detail["members"] = [
            {
                "user_id": str(member_user.id),
                "name": member_user.name,
                "team_name": member_user.team_name,
                "joined_at": member.joined_at,
            }
            for member, member_user in rows
        ]
        return detail

    async def update_league(
        self,
        db: AsyncSession,
        league_id: str,
        user: User,
        data: LeagueUpdate
    ) -> PrivateLeague:
        league = await self._get_league_or_404(db, league_id)
        self._require_creator(league, user, "update")

        updates = data.model_dump(exclude_unset=True)
        if "max_members" in updates and updates["max_members"] is not None:
            if updates["max_members"] < await self._active_member_count(db, league_id):
                raise ValidationError("max_members cannot be below the current member count", field="max_members")

        for key, value in updates.items():
            if key == "name" and value is None:
                continue
            setattr(league, key, value)

        await db.commit()
        await db.refresh(league)
        return league

    async def delete_league(self, db: AsyncSession, league_id: str, user: User) -> None:
        league = await self._get_league_or_404(db, league_id)
        self._require_creator(league, user, "delete")

        league.soft_delete()
        await db.commit()
        logger.log_domain_event("league", "deleted", league_id)

    # ==================== MEMBERSHIP ====================

    async def join_league(
        self,
        db: AsyncSession,
        league: PrivateLeague,
        user: User,
        invite_code: Optional[str] = None
    ) -> PrivateLeagueMember:
        if invite_code and invite_code != league.invite_code:
            raise ValidationError("Invalid invite code", field="invite_code")

        membership = await self._get_membership(db, league.id, user.id)
        if membership is not None and membership.left_at is None:
            raise ValidationError("Already a member of this league")

        if await self._active_member_count(db, league.id) >= league.max_members:
            raise ValidationError("League is full")

        if membership is None:
            membership = PrivateLeagueMember(league_id=league.id, user_id=user.id)
            db.add(membership)
        membership.joined_at = datetime.utcnow()
        membership.left_at = None

        await self._ensure_overall_stats(db, league.id, user.id)
        await db.commit()
        await db.refresh(membership)

        logger.log_domain_event("league", "joined", str(league.id), user_id=str(user.id))
        return membership

    async def join_by_id(
        self,
        db: AsyncSession,
        league_id: str,
        user: User,
        invite_code: Optional[str] = None
    ) -> PrivateLeague:
        league = await self._get_league_or_404(db, league_id)
        await self.join_league(db, league, user, invite_code)
        return league

    async def join_by_code(self, db: AsyncSession, code: Optional[str], user: User) -> PrivateLeague:
        if not code:
            raise ValidationError("Invite code is required", field="code")

        result = await db.execute(
            select(PrivateLeague).where(and_(
                PrivateLeague.invite_code == code.upper(),
                PrivateLeague.deleted_at.is_(None),
            ))
        )
        league = result.scalar_one_or_none()
        if league is None:
            raise ResourceNotFoundError("League", message="Invalid invite code")

        await self.join_league(db, league, user)
        return league

    async def leave_league(self, db: AsyncSession, league_id: str, user: User) -> None:
        league = await self._get_league_or_404(db, league_id)
        if self._is_creator(league, user):
            raise ValidationError("The league creator cannot leave the league")

        membership = await self._get_membership(db, league_id, user.id)
        if membership is None or membership.left_at is not None:
            raise ValidationError("Not a member of this league")

        membership.left_at = datetime.utcnow()
        await db.commit()
        logger.log_domain_event("league", "left", league_id, user_id=str(user.id))

    async def regenerate_invite_code(self, db: AsyncSession, league_id: str, user: User) -> PrivateLeague:
        league = await self._get_league_or_404(db, league_id)
        self._require_creator(league, user, "regenerate the invite code for")

        league.invite_code = await self._new_invite_code(db)
        await db.commit()
        await db.refresh(league)
        logger.log_domain_event("league", "invite_regenerated", league_id)
        return league

    # ==================== STATS ====================

    async def get_stats(
        self,
        db: AsyncSession,
        league_id: str,
        user: User,
        quiz_slug: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        League stats for active members.

        ``stats`` holds per-quiz rows (one quiz when ``quiz_slug`` is
        given) ordered by score then earliest finish; ``overall_stats``
        holds each member's overall row ordered by correct answers then
        best streak.
        """
        league = await self._get_league_or_404(db, league_id)
        membership = await self._get_membership(db, league_id, user.id)
        if not ((membership is not None and membership.left_at is None) or self._is_creator(league, user)):
            raise AuthorizationError("You are not a member of this league")

        active_users = (
            select(PrivateLeagueMember.user_id)
            .where(and_(
                PrivateLeagueMember.league_id == league_id,
                PrivateLeagueMember.left_at.is_(None),
            ))
        )
        base = (
            select(PrivateLeagueStats, User)
            .join(User, User.id == PrivateLeagueStats.user_id)
            .where(and_(
                PrivateLeagueStats.league_id == league_id,
                PrivateLeagueStats.user_id.in_(active_users),
            ))
        )

        quiz_query = base.where(PrivateLeagueStats.quiz_slug.is_not(None))
        if quiz_slug:
            quiz_query = quiz_query.where(PrivateLeagueStats.quiz_slug == quiz_slug)
        quiz_rows = (await db.execute(
            quiz_query.order_by(PrivateLeagueStats.score.desc(), PrivateLeagueStats.completed_at.asc())
        )).all()

        overall_rows = (await db.execute(
            base.where(PrivateLeagueStats.quiz_slug.is_(None)).order_by(
                PrivateLeagueStats.total_correct_answers.desc(),
                PrivateLeagueStats.best_streak.desc(),
            )
        )).all()

        slugs = (await db.execute(
            select(PrivateLeagueStats.quiz_slug)
            .where(and_(
                PrivateLeagueStats.league_id == league_id,
                PrivateLeagueStats.quiz_slug.is_not(None),
            ))
            .distinct()
            .order_by(PrivateLeagueStats.quiz_slug)
        )).scalars().all()

        def to_entry(stats: PrivateLeagueStats, member: User) -> Dict[str, Any]:
            return {
                "user_id": str(member.id),
                "name": member.name,
                "team_name": member.team_name,
                "quiz_slug": stats.quiz_slug,
                "score": stats.score,
                "total_correct_answers": stats.total_correct_answers,
                "quizzes_played": stats.quizzes_played,
                "current_streak": stats.current_streak,
                "best_streak": stats.best_streak,
                "completed_at": stats.completed_at,
            }

        return {
            "stats": [to_entry(s, u) for s, u in quiz_rows],
            "quiz_slugs": list(slugs),
            "overall_stats": [to_entry(s, u) for s, u in overall_rows],
        }

    async def record_completion(
        self,
        db: AsyncSession,
        user: User,
        completion: QuizCompletion,
        played_at: Optional[datetime] = None,
    ) -> int:
        """
        Fold a completion into the user's stats for every active league.

        The per-quiz row keeps the best result. The overall row counts
        each quiz once; a replay only adds the improvement in correct
        answers. The streak counts consecutive ISO weeks with a
        completion. Returns the number of leagues updated; the caller
        commits.

        ``played_at`` is when this submission happened. A lower-scoring
        replay leaves ``completion.completed_at`` at the earlier best
        result, so the streak must not be derived from it.
        """
        league_ids = (await db.execute(
            select(PrivateLeagueMember.league_id)
            .join(PrivateLeague, PrivateLeague.id == PrivateLeagueMember.league_id)
            .where(and_(
                PrivateLeagueMember.user_id == user.id,
                PrivateLeagueMember.left_at.is_(None),
                PrivateLeague.deleted_at.is_(None),
            ))
        )).scalars().all()
        if not league_ids:
            return 0

        played_at = played_at or completion.completed_at or datetime.utcnow()

        rows = (await db.execute(
            select(PrivateLeagueStats).where(and_(
                PrivateLeagueStats.league_id.in_(league_ids),
                PrivateLeagueStats.user_id == user.id,
                or_(
                    PrivateLeagueStats.quiz_slug.is_(None),
                    PrivateLeagueStats.quiz_slug == completion.quiz_slug,
                ),
            ))
        )).scalars().all()
        by_key = {(str(r.league_id), r.quiz_slug): r for r in rows}

        for league_id in league_ids:
            key = str(league_id)

            overall = by_key.get((key, None))
            if overall is None:
                overall = _empty_stats(league_id, user.id, None)
                db.add(overall)

            quiz_row = by_key.get((key, completion.quiz_slug))
            if quiz_row is None:
                quiz_row = _empty_stats(league_id, user.id, completion.quiz_slug)
                db.add(quiz_row)
                gained = completion.score
                overall.quizzes_played = (overall.quizzes_played or 0) + 1
            else:
                gained = max(completion.score - (quiz_row.score or 0), 0)

            if gained > 0 or quiz_row.completed_at is None:
                quiz_row.score = max(completion.score, quiz_row.score or 0)
                quiz_row.total_correct_answers = quiz_row.score
                quiz_row.completed_at = played_at
            quiz_row.quizzes_played = 1

            previous_completed = overall.completed_at
            overall.total_correct_answers = (overall.total_correct_answers or 0) + gained
            overall.score = overall.total_correct_answers
            if previous_completed is None or played_at >= previous_completed:
                overall.current_streak = next_streak(overall.current_streak or 0, previous_completed, played_at)
                overall.completed_at = played_at
            overall.best_streak = max(overall.best_streak or 0, overall.current_streak or 0)

        return len(league_ids)


def _empty_stats(league_id: str, user_id: str, quiz_slug: Optional[str]) -> PrivateLeagueStats:
    return PrivateLeagueStats(
        league_id=league_id, user_id=user_id, quiz_slug=quiz_slug,
        score=0, total_correct_answers=0, quizzes_played=0,
        current_streak=0, best_streak=0,
    )


def next_streak(current: int, previous: Optional[datetime], played_at: datetime) -> int:
    """Same ISO week keeps the streak, the following week extends it, a gap resets it"""
    if previous is None or current <= 0:
        return 1
    if iso_week_key(previous) == iso_week_key(played_at):
        return current
    year, week, _ = played_at.isocalendar()
    prev_year, prev_week, _ = previous.isocalendar()
    last_week_of_prev_year = datetime(prev_year, 12, 28).isocalendar()[1]
    consecutive = (
        (year == prev_year and week == prev_week + 1)
        or (year == prev_year + 1 and week == 1 and prev_week == last_week_of_prev_year)
    )
    return current + 1 if consecutive else 1


league_service = LeagueService()
