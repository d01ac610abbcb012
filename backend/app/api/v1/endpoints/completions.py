"""
Quiz completion endpoints

Submitting a result updates the caller's best score, their private
league stats and their achievements in one transaction.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_permission
from app.modules.auth.permissions import Action, Resource
from app.schemas.quiz import CompletionCreate, CompletionResponse, CompletionResult, CompletionLookup
from app.services.completion_service import completion_service

router = APIRouter()


@router.post("/completion", response_model=CompletionResult)
async def submit_completion(
    data: CompletionCreate,
    current_user: User = Depends(require_permission(Action.PLAY, Resource.QUIZ)),
    db: AsyncSession = Depends(get_db)
):
    return await completion_service.submit(db, current_user, data)


@router.get("/completion", response_model=CompletionLookup)
async def get_completion(
    quiz_slug: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The caller's stored result for a quiz, or ``{"completion": null}``"""
    completion = await completion_service.get_completion(db, current_user, quiz_slug)
    return CompletionLookup(
        completion=CompletionResponse.model_validate(completion) if completion else None
    )
