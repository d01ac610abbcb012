"""
Completion Service - recording quiz results

A submission upserts the user's single completion row for the quiz,
feeds the private league stats and unlocks achievements, all in one
transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from datetime import datetime
from typing import Optional, Dict, Any

from app.core.exceptions import ResourceNotFoundError
from app.core.logging_config import logger
from app.models.user import User
from app.models.quiz import Quiz, QuizCompletion
from app.schemas.quiz import CompletionCreate
from app.services.achievement_service import achievement_service
from app.services.league_service import league_service


class CompletionService:

    async def get_completion(self, db: AsyncSession, user: User, quiz_slug: str) -> Optional[QuizCompletion]:
        result = await db.execute(
            select(QuizCompletion).where(and_(
                QuizCompletion.user_id == user.id,
                QuizCompletion.quiz_slug == quiz_slug,
            ))
        )
        return result.scalar_one_or_none()

    async def submit(self, db: AsyncSession, user: User, data: CompletionCreate) -> Dict[str, Any]:
        """
        Record a completion and return it with any newly unlocked achievements.

        A replay always counts as an attempt but only replaces the stored
        result when the new score is at least as good.
        """
        quiz = (await db.execute(
            select(Quiz).where(Quiz.slug == data.quiz_slug)
        )).scalar_one_or_none()
        if quiz is None:
            raise ResourceNotFoundError("Quiz", data.quiz_slug)

        now = datetime.utcnow()
        round_results = [r.model_dump() for r in data.round_results] if data.round_results else None

        completion = await self.get_completion(db, user, data.quiz_slug)
        improved = True
        if completion is None:
            completion = QuizCompletion(
                user_id=user.id,
                quiz_slug=data.quiz_slug,
                score=data.score,
                total_questions=data.total_questions,
                time_seconds=data.time_seconds,
                round_results=round_results,
                attempts=1,
                completed_at=now,
            )
            db.add(completion)
        else:
            completion.attempts = (completion.attempts or 1) + 1
            improved = data.score >= completion.score
            if improved:
                completion.score = data.score
                completion.total_questions = data.total_questions
                completion.time_seconds = data.time_seconds
                completion.round_results = round_results
                completion.completed_at = now
        await db.flush()

        leagues = await league_service.record_completion(db, user, completion, played_at=now)
        unlocked = await achievement_service.evaluate_for_completion(
            db, user, completion, quiz=quiz, event_tag=data.event_tag, played_at=now
        )
        await db.commit()

        logger.log_domain_event(
            "completion", "recorded", str(completion.id),
            user_id=str(user.id),
            quiz_slug=data.quiz_slug,
            score=data.score,
            improved=improved,
            attempts=completion.attempts,
            leagues_updated=leagues,
            achievements_unlocked=len(unlocked),
        )

        return {
            "completion": completion,
            "new_achievements": [
                {
                    "id": str(a.id),
                    "slug": a.slug,
                    "name": a.name,
                    "rarity": getattr(a.rarity, "value", a.rarity),
                    "unlocked_at": now,
                }
                for a in unlocked
            ],
        }


completion_service = CompletionService()
