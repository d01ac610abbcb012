"""
Quiz Service - authoring, publishing and the public catalogue

Handles:
- Admin CRUD over quizzes with nested rounds and questions
- Structure validation on publish (4 x 6 standard questions + 1 people's question)
- Duplicating quizzes and the question bank
- Published quizzes for players
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from sqlalchemy.orm import selectinload
from datetime import datetime
from typing import Optional, List, Tuple, Dict, Any

from app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.user import User
from app.models.quiz import (
    Quiz,
    QuizRound,
    Question,
    QuizCompletion,
    QuizStatus,
    STANDARD_ROUND_COUNT,
    QUESTIONS_PER_STANDARD_ROUND,
    PEOPLES_ROUND_QUESTION_COUNT,
)
from app.schemas.quiz import QuizCreate, QuizUpdate, RoundCreate
from app.utils.pagination import PaginationMeta, paginate


def validate_quiz_structure(quiz: Quiz) -> List[str]:
    """Problems that stop ``quiz`` being published; empty when it is complete"""
    errors: List[str] = []
    standard = [r for r in quiz.rounds if not r.is_peoples_round]
    peoples = [r for r in quiz.rounds if r.is_peoples_round]

    if len(standard) != STANDARD_ROUND_COUNT:
        errors.append(f"Quiz must have {STANDARD_ROUND_COUNT} standard rounds (has {len(standard)})")
    for rnd in standard:
        if len(rnd.questions) != QUESTIONS_PER_STANDARD_ROUND:
            errors.append(
                f"Round {rnd.round_number} must have {QUESTIONS_PER_STANDARD_ROUND} questions "
                f"(has {len(rnd.questions)})"
            )

    if len(peoples) != 1:
        errors.append(f"Quiz must have exactly one people's round (has {len(peoples)})")
    elif len(peoples[0].questions) != PEOPLES_ROUND_QUESTION_COUNT:
        errors.append(
            f"People's round must have {PEOPLES_ROUND_QUESTION_COUNT} question "
            f"(has {len(peoples[0].questions)})"
        )
    return errors


def build_rounds(rounds: List[RoundCreate]) -> List[QuizRound]:
    built = []
    for rnd in rounds:
        built.append(QuizRound(
            round_number=rnd.round_number,
            title=rnd.title,
            category=rnd.category,
            blurb=rnd.blurb,
            is_peoples_round=rnd.is_peoples_round,
            questions=[
                Question(
                    text=q.text,
                    answer=q.answer,
                    explanation=q.explanation,
                    points=q.points,
                    order=q.order if q.order is not None else index + 1,
                )
                for index, q in enumerate(rnd.questions)
            ],
        ))
    return built


class QuizService:
    """Service for quiz authoring and the quiz catalogue"""

    # ==================== LOOKUPS ====================

    async def _load(self, db: AsyncSession, **criteria) -> Optional[Quiz]:
        query = (
            select(Quiz)
            .options(selectinload(Quiz.rounds).selectinload(QuizRound.questions))
            .execution_options(populate_existing=True)
        )
        for column, value in criteria.items():
            query = query.where(getattr(Quiz, column) == value)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_quiz(self, db: AsyncSession, quiz_id: str) -> Quiz:
        quiz = await self._load(db, id=quiz_id)
        if quiz is None:
            raise ResourceNotFoundError("Quiz", quiz_id)
        return quiz

    async def get_by_slug(self, db: AsyncSession, slug: str) -> Optional[Quiz]:
        return await self._load(db, slug=slug)

    async def _slug_taken(self, db: AsyncSession, slug: str) -> bool:
        return await db.scalar(select(Quiz.id).where(Quiz.slug == slug)) is not None

    async def next_numeric_slug(self, db: AsyncSession) -> str:
        """One more than the highest all-digit slug ('1' for the first quiz)"""
        slugs = (await db.execute(select(Quiz.slug))).scalars().all()
        numbers = [int(s) for s in slugs if s and s.isdigit()]
        return str(max(numbers) + 1 if numbers else 1)

    # ==================== ADMIN ====================

    async def list_quizzes(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        status: Optional[str] = None
    ) -> Tuple[List[Quiz], PaginationMeta]:
        query = select(Quiz)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Quiz.title.ilike(pattern),
                Quiz.blurb.ilike(pattern),
                Quiz.slug.ilike(pattern),
            ))
        if status:
            try:
                query = query.where(Quiz.status == QuizStatus(status.lower()))
            except ValueError:
                raise ValidationError(f"Invalid status: {status}", field="status")
        query = query.order_by(Quiz.created_at.desc())
        return await paginate(db, query, page, limit)

    async def create_quiz(self, db: AsyncSession, data: QuizCreate, author: User) -> Quiz:
        slug = data.slug or await self.next_numeric_slug(db)
        if await self._slug_taken(db, slug):
            raise ConflictError(f"Quiz with slug '{slug}' already exists", field="slug")

        quiz = Quiz(
            slug=slug,
            title=data.title,
            blurb=data.blurb,
            audience=data.audience,
            difficulty=data.difficulty,
            week_of=data.week_of,
            scheduled_for=data.scheduled_for,
            status=QuizStatus.DRAFT,
            created_by_user_id=author.id,
            rounds=build_rounds(data.rounds),
        )
        db.add(quiz)
        await db.flush()

        logger.log_domain_event("quiz", "created", str(quiz.id), slug=slug)
        return await self.get_quiz(db, quiz.id)

    async def update_quiz(self, db: AsyncSession, quiz_id: str, data: QuizUpdate) -> Quiz:
        quiz = await self.get_quiz(db, quiz_id)
        updates = data.model_dump(exclude_unset=True, exclude={"rounds"})

        new_slug = updates.get("slug")
        if new_slug and new_slug != quiz.slug:
            if await self._slug_taken(db, new_slug):
                raise ConflictError(f"Quiz with slug '{new_slug}' already exists", field="slug")
            played = await db.scalar(
                select(func.count(QuizCompletion.id)).where(QuizCompletion.quiz_slug == quiz.slug)
            )
            if played:
                raise ValidationError("Cannot change the slug of a quiz that has been played", field="slug")

        if updates.get("status") == QuizStatus.PUBLISHED and quiz.status != QuizStatus.PUBLISHED:
            raise ValidationError("Use the publish action to publish a quiz", field="status")

        for key, value in updates.items():
            if key in ("slug", "title", "status") and value is None:
                continue
            setattr(quiz, key, value)

        if data.rounds is not None:
            if quiz.status == QuizStatus.PUBLISHED:
                raise ValidationError("Published quizzes cannot be restructured", field="rounds")
            # Flush the removals first so round numbers can be reused
            quiz.rounds.clear()
            await db.flush()
            quiz.rounds.extend(build_rounds(data.rounds))

        quiz.updated_at = datetime.utcnow()
        await db.flush()
        return await self.get_quiz(db, quiz_id)

    async def delete_quiz(self, db: AsyncSession, quiz_id: str) -> Quiz:
        quiz = await self.get_quiz(db, quiz_id)
        await db.delete(quiz)
        await db.flush()
        logger.log_domain_event("quiz", "deleted", quiz_id, slug=quiz.slug)
        return quiz

    async def publish_quiz(self, db: AsyncSession, quiz_id: str) -> Quiz:
        quiz = await self.get_quiz(db, quiz_id)
        errors = validate_quiz_structure(quiz)
        if errors:
            raise ValidationError("; ".join(errors), field="rounds")

        quiz.status = QuizStatus.PUBLISHED
        quiz.published_at = datetime.utcnow()
        await db.flush()

        logger.log_domain_event("quiz", "published", quiz_id, slug=quiz.slug)
        return await self.get_quiz(db, quiz_id)

    async def duplicate_quiz(self, db: AsyncSession, quiz_id: str, author: User) -> Quiz:
        """Draft copy with slug '<slug>-copy', then '-copy-2', '-copy-3'..."""
        source = await self.get_quiz(db, quiz_id)

        slug = f"{source.slug}-copy"
        suffix = 2
        while await self._slug_taken(db, slug):
            slug = f"{source.slug}-copy-{suffix}"
            suffix += 1

        copy = Quiz(
            slug=slug,
            title=f"{source.title} (Copy)",
            blurb=source.blurb,
            audience=source.audience,
            difficulty=source.difficulty,
            week_of=source.week_of,
            status=QuizStatus.DRAFT,
            created_by_user_id=author.id,
            rounds=[
                QuizRound(
                    round_number=r.round_number,
                    title=r.title,
                    category=r.category,
                    blurb=r.blurb,
                    is_peoples_round=r.is_peoples_round,
                    questions=[
                        Question(
                            text=q.text,
                            answer=q.answer,
                            explanation=q.explanation,
                            points=q.points,
                            order=q.order,
                        )
                        for q in r.questions
                    ],
                )
                for r in source.rounds
            ],
        )
        db.add(copy)
        await db.flush()

        logger.log_domain_event("quiz", "duplicated", str(copy.id), source_id=quiz_id, slug=slug)
        return await self.get_quiz(db, copy.id)

    async def question_bank(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = (
            select(Question, QuizRound, Quiz)
            .join(QuizRound, QuizRound.id == Question.round_id)
            .join(Quiz, Quiz.id == QuizRound.quiz_id)
        )
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Question.text.ilike(pattern), Question.answer.ilike(pattern)))
        if category:
            query = query.where(QuizRound.category.ilike(category))

        total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0
        rows = (await db.execute(
            query.order_by(Question.created_at.desc()).offset(offset).limit(limit)
        )).all()

        return [
            {
                "id": str(question.id),
                "text": question.text,
                "answer": question.answer,
                "explanation": question.explanation,
                "category": rnd.category,
                "round_title": rnd.title,
                "quiz_id": str(quiz.id),
                "quiz_slug": quiz.slug,
                "quiz_title": quiz.title,
            }
            for question, rnd, quiz in rows
        ], total

    # ==================== CONSUMER ====================

    async def list_published(self, db: AsyncSession) -> List[Quiz]:
        result = await db.execute(
            select(Quiz)
            .where(Quiz.status == QuizStatus.PUBLISHED)
            .order_by(Quiz.published_at.desc())
        )
        return list(result.scalars().all())

    async def get_published(self, db: AsyncSession, slug: str) -> Quiz:
        quiz = await self.get_by_slug(db, slug)
        if quiz is None or quiz.status != QuizStatus.PUBLISHED:
            raise ResourceNotFoundError("Quiz", slug)
        return quiz


quiz_service = QuizService()
