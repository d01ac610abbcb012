"""
Referral Service - free months for users who bring in paying users

Handles:
- Recording who referred whom at sign up
- Granting the referrer a free month once the referred user goes premium
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.core.logging_config import logger
from app.models.user import User, UserTier, UserSubscriptionStatus
from app.models.referral import Referral, ReferralStatus
from app.utils.codes import generate_referral_code, generate_unique_code


class ReferralService:
    """Referral bookkeeping and rewards"""

    async def new_referral_code(self, db: AsyncSession) -> str:
        """Unused 8 character hex code"""
        async def taken(code: str) -> bool:
            return await db.scalar(select(User.id).where(User.referral_code == code)) is not None

        return await generate_unique_code(taken, generator=generate_referral_code)

    async def get_referrer_by_code(self, db: AsyncSession, code: Optional[str]) -> Optional[User]:
        if not code:
            return None
        result = await db.execute(select(User).where(User.referral_code == code.upper()))
        return result.scalar_one_or_none()

    async def record_referral(self, db: AsyncSession, referrer: User, referred_user: User) -> Optional[Referral]:
        """PENDING referral row; self-referrals are ignored"""
        if str(referrer.id) == str(referred_user.id):
            return None

        referred_user.referred_by_id = referrer.id
        referral = Referral(
            referrer_id=referrer.id,
            referred_user_id=referred_user.id,
            status=ReferralStatus.PENDING,
        )
        db.add(referral)
        await db.flush()

        logger.log_domain_event("referral", "recorded", str(referral.id), referrer_id=str(referrer.id))
        return referral

    def grant_free_month(self, user: User, now: Optional[datetime] = None) -> bool:
        """
        Give ``user`` one free month.

        Free or lapsed users get a FREE_TRIAL that runs for another
        REFERRAL_FREE_MONTH_DAYS (stacked on any trial still running).
        Paying users get their next billing cycle free instead.

        Returns False once the user already has REFERRAL_MAX_FREE_MONTHS.
        """
        now = now or datetime.utcnow()
        granted = user.free_months_granted or 0
        if granted >= settings.REFERRAL_MAX_FREE_MONTHS:
            return False

        month = timedelta(days=settings.REFERRAL_FREE_MONTH_DAYS)
        if user.subscription_status == UserSubscriptionStatus.ACTIVE:
            user.next_cycle_free = True
        else:
            start = user.free_trial_until if user.free_trial_until and user.free_trial_until > now else now
            user.tier = UserTier.PREMIUM
            user.subscription_status = UserSubscriptionStatus.FREE_TRIAL
            user.free_trial_until = start + month

        user.free_months_granted = granted + 1
        return True

    async def process_referral_reward(self, db: AsyncSession, referred_user: User) -> bool:
        """
        Reward the referrer of ``referred_user`` if they are now premium.

        Idempotent: a REWARDED referral is never rewarded again.
        """
        if not referred_user.is_premium:
            return False

        result = await db.execute(
            select(Referral).where(Referral.referred_user_id == referred_user.id)
        )
        referral = result.scalar_one_or_none()
        if referral is None or referral.status == ReferralStatus.REWARDED:
            return False

        referrer = await db.get(User, referral.referrer_id)
        if referrer is None:
            return False

        granted = self.grant_free_month(referrer)
        referral.status = ReferralStatus.REWARDED
        referral.rewarded_at = datetime.utcnow()
        await db.commit()

        logger.log_domain_event(
            "referral", "rewarded", str(referral.id),
            referrer_id=str(referrer.id), free_month_granted=granted,
        )
        return granted

    async def get_summary(self, db: AsyncSession, user: User) -> dict:
        total = await db.scalar(
            select(func.count(Referral.id)).where(Referral.referrer_id == user.id)
        ) or 0
        rewarded = await db.scalar(
            select(func.count(Referral.id)).where(
                Referral.referrer_id == user.id,
                Referral.status == ReferralStatus.REWARDED,
            )
        ) or 0
        return {
            "referral_code": user.referral_code,
            "referrals": total,
            "rewarded": rewarded,
            "free_months_granted": user.free_months_granted or 0,
            "max_free_months": settings.REFERRAL_MAX_FREE_MONTHS,
        }


referral_service = ReferralService()
