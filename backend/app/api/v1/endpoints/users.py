"""
Current-user endpoints

Profile, the premium upgrade hook, referral summary, the caller's
achievements and their organisation membership.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.user import User, UserTier, UserSubscriptionStatus
from app.modules.auth.dependencies import get_current_user, require_permission
from app.modules.auth.permissions import Action, Resource
from app.schemas.auth import UserResponse, UserProfileUpdate, ReferralSummary
from app.schemas.achievement import AchievementResponse, UserAchievementResponse
from app.schemas.organisation import MyOrganisationResponse, OrganisationResponse
from app.services.achievement_service import achievement_service
from app.services.billing_service import billing_service
from app.services.organisation_service import organisation_service
from app.services.referral_service import referral_service

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the caller's profile"""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    profile: UserProfileUpdate,
    current_user: User = Depends(require_permission(Action.UPDATE, Resource.USER)),
    db: AsyncSession = Depends(get_db)
):
    """Update name and team name"""
    for field, value in profile.model_dump(exclude_unset=True).items():
        if field == "name" and not value:
            continue
        setattr(current_user, field, value)

    await db.commit()
    await db.refresh(current_user)
    return current_user


@router.post("/me/upgrade", response_model=UserResponse)
async def upgrade_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark the caller as a paying premium user.

    Stands in for the payment provider's confirmation: premium-only
    achievements earned by earlier plays are unlocked and the referrer,
    if any, is rewarded.
    """
    current_user.tier = UserTier.PREMIUM
    current_user.subscription_status = UserSubscriptionStatus.ACTIVE
    await db.commit()

    logger.log_domain_event("user", "upgraded", str(current_user.id))

    await billing_service.on_premium_activated(db, current_user)
    await db.refresh(current_user)
    return current_user


@router.get("/me/referral", response_model=ReferralSummary)
async def get_my_referral(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await referral_service.get_summary(db, current_user)


@router.get("/me/achievements", response_model=List[UserAchievementResponse])
async def get_my_achievements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Achievements the caller has unlocked, newest first"""
    rows = await achievement_service.get_user_achievements(db, current_user)
    return [
        UserAchievementResponse(
            id=str(unlock.id),
            achievement=AchievementResponse.model_validate(achievement),
            unlocked_at=unlock.unlocked_at,
            quiz_slug=unlock.quiz_slug,
            progress_value=unlock.progress_value,
            progress_max=unlock.progress_max,
            meta=unlock.meta,
        )
        for unlock, achievement in rows
    ]


@router.get("/me/organisation", response_model=MyOrganisationResponse)
async def get_my_organisation(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's organisation, or ``{"organisation": null}``"""
    found = await organisation_service.get_my_organisation(db, current_user)
    if found is None:
        return MyOrganisationResponse()

    organisation, member = found
    return MyOrganisationResponse(
        organisation=OrganisationResponse.model_validate(organisation),
        role=member.role.value,
        status=member.status.value,
    )
