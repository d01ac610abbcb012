"""
Private Leagues API

Premium-only leagues joined with an invite code. The literal
/join-by-code route is declared before the /{league_id} routes.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.core.rate_limiter import code_guess_rate_limit
from app.models.user import User
from app.modules.auth.dependencies import get_premium_user
from app.schemas.league import (
    LeagueCreate,
    LeagueUpdate,
    LeagueJoinRequest,
    JoinByCodeRequest,
    LeagueResponse,
    LeagueDetailResponse,
    LeagueListResponse,
    LeagueStatsResponse,
)
from app.services.league_service import league_service

router = APIRouter()


async def _league_response(db: AsyncSession, league, user: User) -> LeagueResponse:
    return LeagueResponse(**await league_service.describe(db, league, user))


@router.get("", response_model=LeagueListResponse)
async def list_leagues(
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    """Leagues the caller created or belongs to"""
    return LeagueListResponse(leagues=await league_service.list_leagues(db, current_user))


@router.post("", response_model=LeagueResponse, status_code=status.HTTP_201_CREATED)
async def create_league(
    data: LeagueCreate,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    league = await league_service.create_league(db, current_user, data)
    return await _league_response(db, league, current_user)


@router.post("/join-by-code", response_model=LeagueResponse)
@code_guess_rate_limit()
async def join_by_code(
    request: Request,
    data: JoinByCodeRequest,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    """Join a league by invite code (rate limited: 10/min)"""
    league = await league_service.join_by_code(db, data.code, current_user)
    return await _league_response(db, league, current_user)


@router.get("/{league_id}", response_model=LeagueDetailResponse)
async def get_league(
    league_id: str,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    return await league_service.get_league(db, league_id, current_user)


@router.patch("/{league_id}", response_model=LeagueResponse)
async def update_league(
    league_id: str,
    data: LeagueUpdate,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    league = await league_service.update_league(db, league_id, current_user, data)
    return await _league_response(db, league, current_user)


@router.delete("/{league_id}")
async def delete_league(
    league_id: str,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    await league_service.delete_league(db, league_id, current_user)
    return {"success": True, "message": "League deleted"}


@router.post("/{league_id}/join", response_model=LeagueResponse)
async def join_league(
    league_id: str,
    data: Optional[LeagueJoinRequest] = None,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    league = await league_service.join_by_id(
        db, league_id, current_user, data.invite_code if data else None
    )
    return await _league_response(db, league, current_user)


@router.post("/{league_id}/leave")
async def leave_league(
    league_id: str,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    await league_service.leave_league(db, league_id, current_user)
    return {"success": True, "message": "Left league"}


@router.post("/{league_id}/regenerate-invite", response_model=LeagueResponse)
async def regenerate_invite(
    league_id: str,
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    """Issue a new invite code; the old one stops working"""
    league = await league_service.regenerate_invite_code(db, league_id, current_user)
    return await _league_response(db, league, current_user)


@router.get("/{league_id}/stats", response_model=LeagueStatsResponse)
async def get_league_stats(
    league_id: str,
    quiz_slug: Optional[str] = Query(None),
    current_user: User = Depends(get_premium_user),
    db: AsyncSession = Depends(get_db)
):
    return await league_service.get_stats(db, league_id, current_user, quiz_slug)
