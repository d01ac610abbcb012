"""
Quiz catalogue for players

Only published quizzes are visible here; drafts live behind the admin API.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.quiz import PublicQuizListResponse, QuizResponse, QuizSummary
from app.services.quiz_service import quiz_service

router = APIRouter()


@router.get("", response_model=PublicQuizListResponse)
async def list_quizzes(db: AsyncSession = Depends(get_db)):
    """Published quizzes, newest first"""
    quizzes = await quiz_service.list_published(db)
    return PublicQuizListResponse(quizzes=[QuizSummary.model_validate(q) for q in quizzes])


@router.get("/{slug}", response_model=QuizResponse)
async def get_quiz(slug: str, db: AsyncSession = Depends(get_db)):
    return await quiz_service.get_published(db, slug)
