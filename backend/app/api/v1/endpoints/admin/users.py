"""
Admin User Management endpoints.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_
from typing import Optional

from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.models.user import User, UserTier
from app.models.quiz import QuizCompletion
from app.modules.auth.dependencies import get_current_admin
from app.schemas.admin import (
    AdminUserResponse,
    AdminUserListResponse,
    UserActionRequest,
    UserActionResponse,
)
from app.services.user_service import user_service
from app.utils.pagination import paginate
from app.api.v1.endpoints.admin.audit_logs import log_admin_action

router = APIRouter()


async def _completion_counts(db: AsyncSession, user_ids) -> dict:
    if not user_ids:
        return {}
    rows = await db.execute(
        select(QuizCompletion.user_id, func.count(QuizCompletion.id))
        .where(QuizCompletion.user_id.in_(user_ids))
        .group_by(QuizCompletion.user_id)
    )
    return {str(user_id): count for user_id, count in rows.all()}


def _user_response(user: User, completions: int) -> AdminUserResponse:
    response = AdminUserResponse.model_validate(user)
    response.completions = completions
    return response


@router.get("", response_model=AdminUserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: Optional[str] = None,
    tier: Optional[str] = Query(None, description="visitor, free or premium"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """List users, newest first, with their quiz completion counts"""
    conditions = []
    if search:
        search_term = f"%{search}%"
        conditions.append(or_(
            User.email.ilike(search_term),
            User.name.ilike(search_term),
            User.team_name.ilike(search_term),
        ))
    if tier:
        try:
            conditions.append(User.tier == UserTier(tier.lower()))
        except ValueError:
            raise ValidationError(f"Invalid tier: {tier}", field="tier")

    query = select(User)
    if conditions:
        query = query.where(and_(*conditions))
    query = query.order_by(User.created_at.desc())

    users, pagination = await paginate(db, query, page, limit)
    counts = await _completion_counts(db, [u.id for u in users])
    return AdminUserListResponse(
        users=[_user_response(u, counts.get(str(u.id), 0)) for u in users],
        pagination=pagination,
    )


@router.get("/{user_id}", response_model=AdminUserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    user = await user_service.get_user_or_404(db, user_id)
    counts = await _completion_counts(db, [user.id])
    return _user_response(user, counts.get(str(user.id), 0))


@router.post("/{user_id}/actions", response_model=UserActionResponse)
async def user_action(
    user_id: str,
    action_request: UserActionRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """
    Run an admin action on a user.

    Actions: suspend, activate, changeTier (tier), changeRole (role)
    and generateReferralCode.
    """
    user, message = await user_service.apply_admin_action(db, user_id, action_request, current_admin)
    await log_admin_action(
        db, current_admin.id, f"user_{action_request.action}", "user", user_id,
        action_request.model_dump(mode="json", exclude_none=True), request
    )
    counts = await _completion_counts(db, [user.id])
    return UserActionResponse(
        success=True,
        action=action_request.action,
        message=message,
        user=_user_response(user, counts.get(str(user.id), 0)),
    )
