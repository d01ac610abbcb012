"""
Quiz Schemas - admin authoring, consumer play, completions
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.quiz import QuizStatus
from app.utils.pagination import PaginationMeta


def _enum_value(v):
    return getattr(v, 'value', v)


# ============== Authoring ==============

class QuestionCreate(BaseModel):
    text: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    explanation: Optional[str] = None
    points: int = Field(1, ge=0)
    order: Optional[int] = None


class RoundCreate(BaseModel):
    round_number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    blurb: Optional[str] = None
    is_peoples_round: bool = False
    questions: List[QuestionCreate] = []


class QuizCreate(BaseModel):
    slug: Optional[str] = Field(None, max_length=255)
    title: str = Field(..., min_length=1, max_length=255)
    blurb: Optional[str] = None
    audience: Optional[str] = Field(None, max_length=100)
    difficulty: Optional[str] = Field(None, max_length=50)
    week_of: Optional[datetime] = None
    scheduled_for: Optional[datetime] = None
    rounds: List[RoundCreate] = []

    @field_validator('slug')
    @classmethod
    def normalise_slug(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        return v or None


class QuizUpdate(BaseModel):
    """Any field left out is unchanged; ``rounds`` replaces every round when given"""
    slug: Optional[str] = Field(None, max_length=255)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    blurb: Optional[str] = None
    audience: Optional[str] = Field(None, max_length=100)
    difficulty: Optional[str] = Field(None, max_length=50)
    status: Optional[QuizStatus] = None
    week_of: Optional[datetime] = None
    scheduled_for: Optional[datetime] = None
    rounds: Optional[List[RoundCreate]] = None

    @field_validator('slug')
    @classmethod
    def normalise_slug(cls, v):
        return v.strip().lower() if v else v


# ============== Responses ==============

class QuestionResponse(BaseModel):
    id: str
    text: str
    answer: str
    explanation: Optional[str] = None
    points: int
    order: int

    class Config:
        from_attributes = True


class RoundResponse(BaseModel):
    id: str
    round_number: int
    title: str
    category: Optional[str] = None
    blurb: Optional[str] = None
    is_peoples_round: bool
    questions: List[QuestionResponse] = []

    class Config:
        from_attributes = True


class QuizSummary(BaseModel):
    id: str
    slug: str
    title: str
    blurb: Optional[str] = None
    audience: Optional[str] = None
    difficulty: Optional[str] = None
    status: str
    week_of: Optional[datetime] = None
    published_at: Optional[datetime] = None
    question_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('status', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)


class QuizResponse(QuizSummary):
    scheduled_for: Optional[datetime] = None
    created_by_user_id: Optional[str] = None
    updated_at: Optional[datetime] = None
    rounds: List[RoundResponse] = []


class QuizListResponse(BaseModel):
    quizzes: List[QuizSummary]
    pagination: PaginationMeta


class PublicQuizListResponse(BaseModel):
    quizzes: List[QuizSummary]


class QuestionBankEntry(BaseModel):
    id: str
    text: str
    answer: str
    explanation: Optional[str] = None
    category: Optional[str] = None
    round_title: str
    quiz_id: str
    quiz_slug: str
    quiz_title: str


class QuestionBankResponse(BaseModel):
    questions: List[QuestionBankEntry]
    total: int


# ============== Completions ==============

class RoundResult(BaseModel):
    round_number: int
    category: Optional[str] = None
    correct: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    time_seconds: Optional[int] = Field(None, ge=0)


class CompletionCreate(BaseModel):
    quiz_slug: str = Field(..., min_length=1)
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=1)
    time_seconds: Optional[int] = Field(None, ge=0)
    round_results: Optional[List[RoundResult]] = None
    event_tag: Optional[str] = Field(None, max_length=100)


class CompletionResponse(BaseModel):
    id: str
    user_id: str
    quiz_slug: str
    score: int
    total_questions: int
    time_seconds: Optional[int] = None
    round_results: Optional[List[Dict[str, Any]]] = None
    attempts: int
    completed_at: datetime

    class Config:
        from_attributes = True


class UnlockedAchievement(BaseModel):
    id: str
    slug: str
    name: str
    rarity: str
    unlocked_at: datetime


class CompletionResult(BaseModel):
    completion: CompletionResponse
    new_achievements: List[UnlockedAchievement] = []


class CompletionLookup(BaseModel):
    completion: Optional[CompletionResponse] = None
