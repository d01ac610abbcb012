"""
Leaderboard API

Leaderboards are created under an organisation (see organisations.py);
these routes act on a board directly and list the caller's boards.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.config import settings
from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.leaderboard import (
    LeaderboardJoinResponse,
    LeaderboardLeaveResponse,
    StandingsResponse,
    MyLeaderboardsResponse,
)
from app.services.leaderboard_service import leaderboard_service

router = APIRouter()


@router.get("/my-leaderboards", response_model=MyLeaderboardsResponse)
async def get_my_leaderboards(
    limit: int = Query(settings.LEADERBOARD_PAGE_LIMIT, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Org-wide, group and ad hoc boards visible to the caller.

    Group and ad hoc lists are empty for non-premium users.
    """
    return await leaderboard_service.get_my_leaderboards(db, current_user, limit, offset)


@router.delete("/leaderboards/{leaderboard_id}")
async def delete_leaderboard(
    leaderboard_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await leaderboard_service.delete_leaderboard(db, leaderboard_id, current_user)
    return {"success": True, "message": "Leaderboard deleted"}


@router.post("/leaderboards/{leaderboard_id}/join", response_model=LeaderboardJoinResponse)
async def join_leaderboard(
    leaderboard_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    membership = await leaderboard_service.join_leaderboard(db, leaderboard_id, current_user)
    return LeaderboardJoinResponse(
        success=True,
        leaderboard_id=leaderboard_id,
        joined_at=membership.joined_at,
    )


@router.post("/leaderboards/{leaderboard_id}/leave", response_model=LeaderboardLeaveResponse)
async def leave_leaderboard(
    leaderboard_id: str,
    mute: bool = Query(False, description="Stay a member but hide the board"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await leaderboard_service.leave_leaderboard(db, leaderboard_id, current_user, mute=mute)


@router.get("/leaderboards/{leaderboard_id}/standings", response_model=StandingsResponse)
async def get_standings(
    leaderboard_id: str,
    quiz_slug: Optional[str] = Query(None, description="Rank a single quiz instead of the season"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    entries = await leaderboard_service.get_standings(db, leaderboard_id, quiz_slug)
    return StandingsResponse(leaderboard_id=leaderboard_id, quiz_slug=quiz_slug, entries=entries)
