"""
Admin Achievement Management endpoints.

The literal /stats route is declared before /{achievement_id}.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.schemas.achievement import (
    AchievementCreate,
    AchievementUpdate,
    AchievementResponse,
    AchievementListResponse,
    AchievementStatsResponse,
)
from app.services.achievement_service import achievement_service
from app.api.v1.endpoints.admin.audit_logs import log_admin_action

router = APIRouter()


@router.get("", response_model=AchievementListResponse)
async def list_achievements(
    search: Optional[str] = Query(None, description="Search name, slug and short description"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    achievements = await achievement_service.list_achievements(db, search)
    return AchievementListResponse(
        achievements=[AchievementResponse.model_validate(a) for a in achievements]
    )


@router.get("/stats", response_model=AchievementStatsResponse)
async def get_achievement_stats(
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Unlock counts per achievement split by free and premium users"""
    return await achievement_service.get_stats(db)


@router.post("", response_model=AchievementResponse, status_code=status.HTTP_201_CREATED)
async def create_achievement(
    data: AchievementCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    achievement = await achievement_service.create_achievement(db, data)
    await log_admin_action(
        db, current_admin.id, "achievement_created", "achievement", achievement.id,
        {"slug": achievement.slug}, request
    )
    return achievement


@router.get("/{achievement_id}", response_model=AchievementResponse)
async def get_achievement(
    achievement_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await achievement_service.get_achievement(db, achievement_id)


@router.patch("/{achievement_id}", response_model=AchievementResponse)
async def update_achievement(
    achievement_id: str,
    data: AchievementUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Partial update; the dashboard editor autosaves through this route"""
    achievement = await achievement_service.update_achievement(db, achievement_id, data)
    await log_admin_action(
        db, current_admin.id, "achievement_updated", "achievement", achievement.id,
        {"fields": sorted(data.model_dump(exclude_unset=True).keys())}, request
    )
    return achievement


@router.delete("/{achievement_id}")
async def delete_achievement(
    achievement_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    achievement = await achievement_service.delete_achievement(db, achievement_id)
    await log_admin_action(
        db, current_admin.id, "achievement_deleted", "achievement", achievement_id,
        {"slug": achievement.slug}, request
    )
    return {"success": True, "message": f"Achievement {achievement.slug} deleted"}
