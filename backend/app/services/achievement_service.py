"""
Achievement Service - catalogue management and unlock evaluation

Handles:
- Admin CRUD and unlock statistics
- The caller's achievement list with unlock state
- Evaluating unlock conditions after a quiz completion
- Retro unlocks of premium-only achievements on upgrade
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Sequence

from app.core.exceptions import ConflictError, ResourceNotFoundError
from app.core.logging_config import logger
from app.models.user import User, UserTier
from app.models.quiz import Quiz, QuizCompletion
from app.models.achievement import Achievement, UserAchievement, UnlockConditionType
from app.schemas.achievement import AchievementCreate, AchievementUpdate


ADMIN_LIST_LIMIT = 100


# ==================== TIER RULES ====================

def user_tier(user: Optional[User]) -> UserTier:
    """Effective tier: anonymous callers are visitors, premium is computed"""
    if user is None:
        return UserTier.VISITOR
    return UserTier.PREMIUM if user.is_premium else UserTier.FREE


def can_earn_achievement(tier: UserTier, is_premium_only: bool) -> bool:
    """Visitors earn nothing, free users earn free achievements, premium earn all"""
    if tier == UserTier.VISITOR:
        return False
    if is_premium_only:
        return tier == UserTier.PREMIUM
    return tier in (UserTier.FREE, UserTier.PREMIUM)


def iso_week_key(when: datetime) -> str:
    year, week, _ = when.isocalendar()
    return f"{year}-{week:02d}"


# ==================== CONDITION EVALUATION ====================

@dataclass
class CompletionContext:
    """Everything a condition needs to know about one completion"""
    quiz_slug: str
    score: int
    total_questions: int
    played_at: datetime
    time_seconds: Optional[int] = None
    round_results: Optional[List[Dict[str, Any]]] = None
    attempts: int = 1
    quiz_published_at: Optional[datetime] = None
    event_tag: Optional[str] = None
    # The user's other completions, newest first
    history: Sequence[QuizCompletion] = field(default_factory=list)


@dataclass
class Unlock:
    progress_value: Optional[int] = None
    progress_max: Optional[int] = None
    meta: Dict[str, Any] = field(default_factory=dict)


def _config_value(config: Dict[str, Any], camel: str, snake: str, default):
    value = config.get(camel, config.get(snake))
    return default if value in (None, "") else value


def _lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if isinstance(value, str) else None


def _window_start(played_at: datetime, window: str) -> datetime:
    if window == "day":
        return datetime.combine(played_at.date(), datetime.min.time())
    if window == "week":
        return played_at - timedelta(days=7)
    return played_at - timedelta(days=30)


def evaluate_condition(achievement: Achievement, ctx: CompletionContext) -> Optional[Unlock]:
    """Return an Unlock if ``ctx`` satisfies the achievement's condition, else None"""
    config = achievement.unlock_condition_config or {}
    condition = achievement.unlock_condition_type

    if condition == UnlockConditionType.SCORE_5_OF_5:
        required = int(_config_value(config, "requiredScore", "required_score", 5))
        target = _lower(config.get("category"))
        if ctx.round_results:
            for rnd in ctx.round_results:
                if target and _lower(rnd.get("category")) != target:
                    continue
                total = rnd.get("total") or 0
                if rnd.get("correct") == total and total >= required:
                    return Unlock(meta={"round_number": rnd.get("round_number"), "category": rnd.get("category")})
            return None
        if ctx.score == ctx.total_questions and ctx.total_questions >= required:
            return Unlock()
        return None

    if condition == UnlockConditionType.PLAY_N_QUIZZES:
        count = int(_config_value(config, "count", "count", 3))
        window = _config_value(config, "timeWindow", "time_window", "day")
        start = _window_start(ctx.played_at, window)
        recent = [
            c for c in ctx.history
            if c.quiz_slug != ctx.quiz_slug and start <= c.completed_at <= ctx.played_at
        ]
        total = len(recent) + 1
        if total >= count:
            return Unlock(progress_value=total, progress_max=count)
        return None

    if condition == UnlockConditionType.TIME_WINDOW:
        weeks_ago = float(_config_value(config, "weeksAgo", "weeks_ago", 3))
        published = ctx.quiz_published_at or ctx.played_at
        age_weeks = (ctx.played_at - published).total_seconds() / (7 * 24 * 3600)
        if age_weeks >= weeks_ago:
            return Unlock(meta={"weeks_ago": int(age_weeks)})
        return None

    if condition == UnlockConditionType.REPEAT_QUIZ:
        minimum = int(_config_value(config, "minCompletions", "min_completions", 2))
        if ctx.attempts >= minimum:
            return Unlock(progress_value=ctx.attempts, progress_max=minimum)
        return None

    if condition == UnlockConditionType.TIME_LIMIT:
        max_seconds = int(_config_value(config, "maxSeconds", "max_seconds", 120))
        target = _lower(config.get("category"))
        if ctx.round_results:
            for rnd in ctx.round_results:
                if target and _lower(rnd.get("category")) != target:
                    continue
                seconds = rnd.get("time_seconds")
                if seconds and seconds <= max_seconds:
                    return Unlock(meta={"round_number": rnd.get("round_number"), "time_seconds": seconds})
            return None
        if ctx.time_seconds and ctx.time_seconds <= max_seconds:
            return Unlock(meta={"time_seconds": ctx.time_seconds})
        return None

    if condition == UnlockConditionType.STREAK:
        required_weeks = int(_config_value(config, "weeks", "weeks", 4))
        others = [c for c in ctx.history if c.quiz_slug != ctx.quiz_slug][:required_weeks]
        weeks = {iso_week_key(c.completed_at) for c in others}
        weeks.add(iso_week_key(ctx.played_at))
        if len(weeks) >= required_weeks:
            return Unlock(progress_value=len(weeks), progress_max=required_weeks)
        return None

    if condition == UnlockConditionType.EVENT_ROUND:
        tag = ctx.event_tag
        expected = _config_value(config, "eventTag", "event_tag", None)
        if not tag or (expected and expected != tag):
            return None
        if achievement.season_tag and tag in achievement.season_tag:
            return Unlock(meta={"event_tag": tag})
        return None

    return None


class AchievementService:
    """Service for the achievement catalogue and unlocks"""

    # ==================== ADMIN CRUD ====================

    async def list_achievements(self, db: AsyncSession, search: Optional[str] = None) -> List[Achievement]:
        query = select(Achievement)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Achievement.name.ilike(pattern),
                Achievement.slug.ilike(pattern),
                Achievement.short_description.ilike(pattern),
            ))
        query = query.order_by(Achievement.created_at.desc()).limit(ADMIN_LIST_LIMIT)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_achievement(self, db: AsyncSession, achievement_id: str) -> Achievement:
        achievement = await db.get(Achievement, achievement_id)
        if achievement is None:
            raise ResourceNotFoundError("Achievement", achievement_id)
        return achievement

    async def _ensure_slug_free(self, db: AsyncSession, slug: str, exclude_id: Optional[str] = None) -> None:
        query = select(Achievement.id).where(Achievement.slug == slug)
        if exclude_id:
            query = query.where(Achievement.id != exclude_id)
        if await db.scalar(query) is not None:
            raise ConflictError(f"Achievement with slug '{slug}' already exists", field="slug")

    async def create_achievement(self, db: AsyncSession, data: AchievementCreate) -> Achievement:
        await self._ensure_slug_free(db, data.slug)

        achievement = Achievement(**data.model_dump())
        db.add(achievement)
        await db.flush()
        await db.refresh(achievement)

        logger.log_domain_event("achievement", "created", str(achievement.id), slug=achievement.slug)
        return achievement

    async def update_achievement(
        self,
        db: AsyncSession,
        achievement_id: str,
        data: AchievementUpdate
    ) -> Achievement:
        achievement = await self.get_achievement(db, achievement_id)
        updates = data.model_dump(exclude_unset=True)

        if updates.get("slug") and updates["slug"] != achievement.slug:
            await self._ensure_slug_free(db, updates["slug"], exclude_id=achievement_id)

        for key, value in updates.items():
            setattr(achievement, key, value)
        achievement.updated_at = datetime.utcnow()

        await db.flush()
        await db.refresh(achievement)
        return achievement

    async def delete_achievement(self, db: AsyncSession, achievement_id: str) -> Achievement:
        achievement = await self.get_achievement(db, achievement_id)
        await db.delete(achievement)
        await db.flush()
        logger.log_domain_event("achievement", "deleted", achievement_id, slug=achievement.slug)
        return achievement

    async def get_stats(self, db: AsyncSession) -> Dict[str, Any]:
        """Unlock counts per achievement, split by the unlocking user's tier"""
        users = (await db.execute(select(User))).scalars().all()
        tiers = {str(u.id): user_tier(u) for u in users}
        eligible_users = sum(1 for u in users if u.tier != UserTier.VISITOR)

        achievements = (await db.execute(
            select(Achievement).order_by(Achievement.created_at.desc())
        )).scalars().all()
        unlocks = (await db.execute(
            select(UserAchievement.achievement_id, UserAchievement.user_id)
        )).all()

        counts: Dict[str, Dict[str, int]] = {}
        for achievement_id, user_id in unlocks:
            bucket = counts.setdefault(str(achievement_id), {"free": 0, "premium": 0})
            if tiers.get(str(user_id)) == UserTier.PREMIUM:
                bucket["premium"] += 1
            else:
                bucket["free"] += 1

        stats = []
        for achievement in achievements:
            bucket = counts.get(str(achievement.id), {"free": 0, "premium": 0})
            total = bucket["free"] + bucket["premium"]
            stats.append({
                "id": str(achievement.id),
                "slug": achievement.slug,
                "name": achievement.name,
                "rarity": achievement.rarity.value,
                "total_unlocks": total,
                "free_unlocks": bucket["free"],
                "premium_unlocks": bucket["premium"],
                "percent_of_users": round(total / eligible_users * 100, 2) if eligible_users else 0.0,
            })

        return {"total_users": eligible_users, "achievements": stats}

    # ==================== CONSUMER ====================

    async def list_for_user(self, db: AsyncSession, user: Optional[User]) -> List[Dict[str, Any]]:
        """Active achievements with the caller's unlock state"""
        achievements = (await db.execute(
            select(Achievement)
            .where(Achievement.is_active.is_(True))
            .order_by(Achievement.category, Achievement.name)
        )).scalars().all()

        owned: Dict[str, UserAchievement] = {}
        if user is not None:
            rows = (await db.execute(
                select(UserAchievement).where(UserAchievement.user_id == user.id)
            )).scalars().all()
            owned = {str(ua.achievement_id): ua for ua in rows}

        tier = user_tier(user)
        items = []
        for achievement in achievements:
            unlock = owned.get(str(achievement.id))
            items.append({
                "achievement": achievement,
                "unlocked": unlock is not None,
                "unlocked_at": unlock.unlocked_at if unlock else None,
                "progress_value": unlock.progress_value if unlock else None,
                "progress_max": unlock.progress_max if unlock else None,
                "can_earn": can_earn_achievement(tier, achievement.is_premium_only),
            })
        return items

    async def get_user_achievements(self, db: AsyncSession, user: User):
        result = await db.execute(
            select(UserAchievement, Achievement)
            .join(Achievement, Achievement.id == UserAchievement.achievement_id)
            .where(UserAchievement.user_id == user.id)
            .order_by(UserAchievement.unlocked_at.desc())
        )
        return result.all()

    # ==================== EVALUATION ====================

    async def _history(self, db: AsyncSession, user_id: str) -> List[QuizCompletion]:
        result = await db.execute(
            select(QuizCompletion)
            .where(QuizCompletion.user_id == user_id)
            .order_by(QuizCompletion.completed_at.desc())
        )
        return list(result.scalars().all())

    async def _evaluate(
        self,
        db: AsyncSession,
        user: User,
        ctx: CompletionContext,
        achievements: Sequence[Achievement],
        owned_ids: set,
    ) -> List[Achievement]:
        tier = user_tier(user)
        unlocked: List[Achievement] = []

        for achievement in achievements:
            if str(achievement.id) in owned_ids:
                continue
            if not can_earn_achievement(tier, achievement.is_premium_only):
                continue

            unlock = evaluate_condition(achievement, ctx)
            if unlock is None:
                continue

            db.add(UserAchievement(
                user_id=user.id,
                achievement_id=achievement.id,
                quiz_slug=ctx.quiz_slug,
                unlocked_at=datetime.utcnow(),
                progress_value=unlock.progress_value,
                progress_max=unlock.progress_max,
                meta=unlock.meta or None,
            ))
            owned_ids.add(str(achievement.id))
            unlocked.append(achievement)

        return unlocked

    async def _owned_ids(self, db: AsyncSession, user_id: str) -> set:
        rows = await db.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        )
        return {str(r) for r in rows.scalars().all()}

    async def evaluate_for_completion(
        self,
        db: AsyncSession,
        user: User,
        completion: QuizCompletion,
        quiz: Optional[Quiz] = None,
        event_tag: Optional[str] = None,
        played_at: Optional[datetime] = None,
    ) -> List[Achievement]:
        """
        Unlock every achievement the completion satisfies.

        The caller commits. Already-owned achievements are skipped and
        the (user, achievement) unique constraint backs that check.
        """
        achievements = (await db.execute(
            select(Achievement).where(Achievement.is_active.is_(True))
        )).scalars().all()
        if not achievements:
            return []

        ctx = CompletionContext(
            quiz_slug=completion.quiz_slug,
            score=completion.score,
            total_questions=completion.total_questions,
            played_at=played_at or completion.completed_at or datetime.utcnow(),
            time_seconds=completion.time_seconds,
            round_results=completion.round_results,
            attempts=completion.attempts or 1,
            quiz_published_at=(quiz.published_at or quiz.week_of) if quiz else None,
            event_tag=event_tag,
            history=await self._history(db, user.id),
        )
        unlocked = await self._evaluate(db, user, ctx, achievements, await self._owned_ids(db, user.id))

        for achievement in unlocked:
            logger.log_domain_event(
                "achievement", "unlocked", str(achievement.id),
                slug=achievement.slug, quiz_slug=completion.quiz_slug,
            )
        return unlocked

    async def retro_unlock_on_upgrade(self, db: AsyncSession, user: User) -> List[Achievement]:
        """
        Replay the user's completions against premium-only achievements.

        Runs oldest first so history-based conditions only see what the
        user had played at that point.
        """
        if not user.is_premium:
            return []

        achievements = (await db.execute(
            select(Achievement).where(
                Achievement.is_premium_only.is_(True),
                Achievement.is_active.is_(True),
            )
        )).scalars().all()
        if not achievements:
            return []

        history = await self._history(db, user.id)
        published = dict((await db.execute(
            select(Quiz.slug, func.coalesce(Quiz.published_at, Quiz.week_of))
            .where(Quiz.slug.in_([c.quiz_slug for c in history]))
        )).all()) if history else {}

        owned_ids = await self._owned_ids(db, user.id)
        unlocked: List[Achievement] = []
        for index in range(len(history) - 1, -1, -1):
            completion = history[index]
            ctx = CompletionContext(
                quiz_slug=completion.quiz_slug,
                score=completion.score,
                total_questions=completion.total_questions,
                played_at=completion.completed_at,
                time_seconds=completion.time_seconds,
                round_results=completion.round_results,
                attempts=completion.attempts or 1,
                quiz_published_at=published.get(completion.quiz_slug),
                history=history[index + 1:],
            )
            unlocked.extend(await self._evaluate(db, user, ctx, achievements, owned_ids))

        if unlocked:
            await db.commit()
            logger.log_domain_event(
                "achievement", "retro_unlocked", str(user.id),
                count=len(unlocked), slugs=[a.slug for a in unlocked],
            )
        return unlocked


achievement_service = AchievementService()
