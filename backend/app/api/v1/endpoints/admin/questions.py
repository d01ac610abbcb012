"""
Admin Question Bank endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.schemas.quiz import QuestionBankResponse
from app.services.quiz_service import quiz_service

router = APIRouter()


@router.get("", response_model=QuestionBankResponse)
async def list_questions(
    search: Optional[str] = Query(None, description="Search question text and answer"),
    category: Optional[str] = Query(None, description="Round category"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Questions across every quiz, newest first"""
    questions, total = await quiz_service.question_bank(db, search, category, limit, offset)
    return QuestionBankResponse(questions=questions, total=total)
