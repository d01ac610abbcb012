"""
Admin Analytics endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import datetime, timedelta
from typing import Tuple

from app.core.database import get_db
from app.models.user import User
from app.models.organisation import Organisation, OrganisationMember
from app.models.quiz import QuizCompletion
from app.modules.auth.dependencies import get_current_admin
from app.schemas.admin import (
    EngagementResponse,
    DailyActiveUsers,
    MonthlyActiveUsers,
    DailyAttempts,
    TopOrganisation,
    FunnelResponse,
    FunnelStep,
)
from app.api.v1.endpoints.admin.dashboard import premium_condition

router = APIRouter()

TREND_DAYS = 30
TOP_ORGANISATIONS = 5


def percent_change(current: int, previous: int) -> Tuple[float, str]:
    """Change from ``previous`` to ``current`` and its direction"""
    if previous:
        change = round((current - previous) / previous * 100, 2)
    else:
        change = 100.0 if current else 0.0
    if current > previous:
        return change, "up"
    if current < previous:
        return change, "down"
    return change, "flat"


def conversion(count: int, base: int) -> float:
    return round(count / base * 100, 2) if base else 0.0


async def _distinct_players(db: AsyncSession, start: datetime, end: datetime) -> int:
    return await db.scalar(
        select(func.count(func.distinct(QuizCompletion.user_id))).where(and_(
            QuizCompletion.completed_at >= start,
            QuizCompletion.completed_at < end,
        ))
    ) or 0


@router.get("/engagement", response_model=EngagementResponse)
async def get_engagement(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Daily/monthly active players, attempts per day and the busiest organisations"""
    now = datetime.utcnow()
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow_start = today_start + timedelta(days=1)
    yesterday_start = today_start - timedelta(days=1)

    today = await _distinct_players(db, today_start, tomorrow_start)
    yesterday = await _distinct_players(db, yesterday_start, today_start)
    dau_change, dau_trend = percent_change(today, yesterday)

    month_start = now - timedelta(days=30)
    previous_month_start = month_start - timedelta(days=30)
    current_month = await _distinct_players(db, month_start, now)
    previous_month = await _distinct_players(db, previous_month_start, month_start)
    mau_change, mau_trend = percent_change(current_month, previous_month)

    # Attempts per day, zero-filled
    window_start = today_start - timedelta(days=TREND_DAYS - 1)
    played = (await db.execute(
        select(QuizCompletion.completed_at).where(QuizCompletion.completed_at >= window_start)
    )).scalars().all()
    per_day = {}
    for completed_at in played:
        key = completed_at.strftime("%Y-%m-%d")
        per_day[key] = per_day.get(key, 0) + 1
    attempts_per_day = []
    for offset in range(TREND_DAYS):
        day = (window_start + timedelta(days=offset)).strftime("%Y-%m-%d")
        attempts_per_day.append(DailyAttempts(date=day, attempts=per_day.get(day, 0)))

    completions = func.count(QuizCompletion.id).label("completions")
    top_rows = (await db.execute(
        select(Organisation.id, Organisation.name, completions)
        .join(OrganisationMember, OrganisationMember.organisation_id == Organisation.id)
        .join(QuizCompletion, QuizCompletion.user_id == OrganisationMember.user_id)
        .where(OrganisationMember.deleted_at.is_(None))
        .group_by(Organisation.id, Organisation.name)
        .order_by(completions.desc())
        .limit(TOP_ORGANISATIONS)
    )).all()

    return EngagementResponse(
        dau=DailyActiveUsers(today=today, yesterday=yesterday, change_percent=dau_change, trend=dau_trend),
        mau=MonthlyActiveUsers(
            current=current_month, previous=previous_month, change_percent=mau_change, trend=mau_trend
        ),
        attempts_per_day=attempts_per_day,
        top_organisations=[
            TopOrganisation(id=str(org_id), name=name, completions=count)
            for org_id, name, count in top_rows
        ],
    )


@router.get("/funnel", response_model=FunnelResponse)
async def get_funnel(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Registered -> played a quiz -> premium"""
    registered = await db.scalar(select(func.count(User.id))) or 0
    played = await db.scalar(select(func.count(func.distinct(QuizCompletion.user_id)))) or 0
    premium = await db.scalar(
        select(func.count(User.id)).where(premium_condition(datetime.utcnow()))
    ) or 0

    return FunnelResponse(
        steps=[
            FunnelStep(step="registered", count=registered, conversion_percent=100.0 if registered else 0.0),
            FunnelStep(step="played_quiz", count=played, conversion_percent=conversion(played, registered)),
            FunnelStep(step="premium", count=premium, conversion_percent=conversion(premium, played)),
        ],
        overall_conversion_percent=conversion(premium, registered),
    )
