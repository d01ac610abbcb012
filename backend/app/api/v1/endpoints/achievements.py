"""
Achievement catalogue for players

Anonymous callers see every active achievement with ``can_earn`` false.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_optional_user
from app.schemas.achievement import AchievementResponse, UserAchievementStatus
from app.services.achievement_service import achievement_service

router = APIRouter()


@router.get("", response_model=List[UserAchievementStatus])
async def list_achievements(
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    items = await achievement_service.list_for_user(db, current_user)
    return [
        UserAchievementStatus(
            **AchievementResponse.model_validate(item["achievement"]).model_dump(),
            unlocked=item["unlocked"],
            unlocked_at=item["unlocked_at"],
            can_earn=item["can_earn"],
            progress_value=item["progress_value"],
            progress_max=item["progress_max"],
        )
        for item in items
    ]
