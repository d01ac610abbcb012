"""
Admin Quiz Management endpoints.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.schemas.quiz import QuizCreate, QuizUpdate, QuizResponse, QuizSummary, QuizListResponse
from app.services.quiz_service import quiz_service
from app.api.v1.endpoints.admin.audit_logs import log_admin_action

router = APIRouter()


@router.get("", response_model=QuizListResponse)
async def list_quizzes(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search title, blurb and slug"),
    status: Optional[str] = Query(None, description="draft, scheduled, published or archived"),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    quizzes, pagination = await quiz_service.list_quizzes(db, page, limit, search, status)
    return QuizListResponse(
        quizzes=[QuizSummary.model_validate(q) for q in quizzes],
        pagination=pagination,
    )


@router.post("", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz(
    data: QuizCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """
    Create a quiz with its rounds and questions.

    Without a slug the quiz gets the next free number ("12" after "11").
    """
    quiz = await quiz_service.create_quiz(db, data, current_admin)
    await log_admin_action(
        db, current_admin.id, "quiz_created", "quiz", quiz.id,
        {"slug": quiz.slug, "title": quiz.title}, request
    )
    return quiz


@router.get("/{quiz_id}", response_model=QuizResponse)
async def get_quiz(
    quiz_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    return await quiz_service.get_quiz(db, quiz_id)


@router.patch("/{quiz_id}", response_model=QuizResponse)
async def update_quiz(
    quiz_id: str,
    data: QuizUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Update quiz fields; sending ``rounds`` replaces every round"""
    quiz = await quiz_service.update_quiz(db, quiz_id, data)
    await log_admin_action(
        db, current_admin.id, "quiz_updated", "quiz", quiz.id,
        {"fields": sorted(data.model_dump(exclude_unset=True).keys())}, request
    )
    return quiz


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    quiz = await quiz_service.delete_quiz(db, quiz_id)
    await log_admin_action(
        db, current_admin.id, "quiz_deleted", "quiz", quiz_id, {"slug": quiz.slug}, request
    )
    return {"success": True, "message": f"Quiz {quiz.slug} deleted"}


@router.post("/{quiz_id}/publish", response_model=QuizResponse)
async def publish_quiz(
    quiz_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Publish after checking the 4 x 6 + people's round structure"""
    quiz = await quiz_service.publish_quiz(db, quiz_id)
    await log_admin_action(
        db, current_admin.id, "quiz_published", "quiz", quiz.id, {"slug": quiz.slug}, request
    )
    return quiz


@router.post("/{quiz_id}/duplicate", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_quiz(
    quiz_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    quiz = await quiz_service.duplicate_quiz(db, quiz_id, current_admin)
    await log_admin_action(
        db, current_admin.id, "quiz_duplicated", "quiz", quiz.id,
        {"source_id": quiz_id, "slug": quiz.slug}, request
    )
    return quiz
