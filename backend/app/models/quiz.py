from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey, Boolean, JSON, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


# Standard weekly quiz: 4 rounds x 6 questions + 1 people's round question
STANDARD_ROUND_COUNT = 4
QUESTIONS_PER_STANDARD_ROUND = 6
PEOPLES_ROUND_QUESTION_COUNT = 1
PEOPLES_ROUND_NUMBER = 5
TOTAL_QUESTIONS = STANDARD_ROUND_COUNT * QUESTIONS_PER_STANDARD_ROUND + PEOPLES_ROUND_QUESTION_COUNT


class QuizStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Quiz(Base):
    """A weekly quiz made of rounds of questions"""
    __tablename__ = "quizzes"

    __table_args__ = (
        Index('ix_quizzes_status_published', 'status', 'published_at'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    blurb = Column(Text, nullable=True)
    audience = Column(String(100), nullable=True)
    difficulty = Column(String(50), nullable=True)
    status = Column(SQLEnum(QuizStatus), default=QuizStatus.DRAFT, nullable=False)

    week_of = Column(DateTime, nullable=True)
    scheduled_for = Column(DateTime, nullable=True)
    published_at = Column(DateTime, nullable=True)

    created_by_user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rounds = relationship(
        "QuizRound",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizRound.round_number",
        lazy="selectin",
    )

    @property
    def question_count(self) -> int:
        return sum(len(r.questions) for r in self.rounds)

    def __repr__(self):
        return f"<Quiz {self.slug}: {self.title}>"


class QuizRound(Base):
    __tablename__ = "quiz_rounds"

    __table_args__ = (
        UniqueConstraint('quiz_id', 'round_number', name='uq_quiz_round_number'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    quiz_id = Column(GUID, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    category = Column(String(100), nullable=True)
    title = Column(String(255), nullable=False)
    blurb = Column(Text, nullable=True)
    is_peoples_round = Column(Boolean, default=False, nullable=False)

    quiz = relationship("Quiz", back_populates="rounds")
    questions = relationship(
        "Question",
        back_populates="round",
        cascade="all, delete-orphan",
        order_by="Question.order",
        lazy="selectin",
    )


class Question(Base):
    __tablename__ = "questions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    round_id = Column(GUID, ForeignKey("quiz_rounds.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    points = Column(Integer, default=1, nullable=False)
    order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    round = relationship("QuizRound", back_populates="questions")


class QuizCompletion(Base):
    """
    A user's best result for a quiz.

    One row per (user, quiz). Replays bump ``attempts`` and replace the
    result only when the new score is at least as good.
    """
    __tablename__ = "quiz_completions"

    __table_args__ = (
        UniqueConstraint('user_id', 'quiz_slug', name='uq_completion_user_quiz'),
        Index('ix_completions_completed_at', 'completed_at'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_slug = Column(String(255), ForeignKey("quizzes.slug", ondelete="CASCADE"), nullable=False, index=True)

    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    time_seconds = Column(Integer, nullable=True)
    round_results = Column(JSON, nullable=True)  # [{round_number, category, correct, total, time_seconds}]
    attempts = Column(Integer, default=1, nullable=False)

    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
