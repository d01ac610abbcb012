"""
Admin Dashboard endpoints - headline KPIs.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime, timedelta

from app.core.database import get_db
from app.models.user import User, UserTier, UserSubscriptionStatus
from app.models.organisation import Organisation, OrganisationStatus
from app.models.quiz import QuizCompletion
from app.modules.auth.dependencies import get_current_admin
from app.schemas.admin import DashboardStats, UserCounts, OrganisationCounts

router = APIRouter()


def premium_condition(now: datetime):
    """SQL mirror of User.is_premium"""
    return or_(
        User.tier == UserTier.PREMIUM,
        User.subscription_status.in_([UserSubscriptionStatus.ACTIVE, UserSubscriptionStatus.TRIALING]),
        User.free_trial_until > now,
    )


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Get dashboard KPI statistics"""
    now = datetime.utcnow()
    thirty_days_ago = now - timedelta(days=30)

    # User stats
    total_users = await db.scalar(select(func.count(User.id))) or 0
    premium_users = await db.scalar(
        select(func.count(User.id)).where(premium_condition(now))
    ) or 0
    active_users = await db.scalar(
        select(func.count(User.id)).where(User.last_login_at >= thirty_days_ago)
    ) or 0

    # Organisation stats
    total_organisations = await db.scalar(select(func.count(Organisation.id))) or 0
    active_organisations = await db.scalar(
        select(func.count(Organisation.id)).where(
            Organisation.status.in_([OrganisationStatus.ACTIVE, OrganisationStatus.TRIALING])
        )
    ) or 0

    attempts = await db.scalar(
        select(func.coalesce(func.sum(QuizCompletion.attempts), 0)).where(
            QuizCompletion.completed_at >= thirty_days_ago
        )
    ) or 0

    return DashboardStats(
        users=UserCounts(
            total=total_users,
            premium=premium_users,
            free=total_users - premium_users,
            active=active_users,
        ),
        organisations=OrganisationCounts(total=total_organisations, active=active_organisations),
        quiz_attempts_last_30_days=int(attempts),
    )
