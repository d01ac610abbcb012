"""Private leagues - premium user-created groups joined by invite code"""
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, UniqueConstraint, Index
from datetime import datetime

from app.core.database import Base
from app.core.types import GUID, generate_uuid, SoftDeleteMixin


class PrivateLeague(SoftDeleteMixin, Base):
    __tablename__ = "private_leagues"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    invite_code = Column(String(16), unique=True, index=True, nullable=False)

    created_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    organisation_id = Column(GUID, ForeignKey("organisations.id", ondelete="SET NULL"), nullable=True)
    max_members = Column(Integer, default=50, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<PrivateLeague {self.name} [{self.invite_code}]>"


class PrivateLeagueMember(Base):
    __tablename__ = "private_league_members"

    __table_args__ = (
        UniqueConstraint('league_id', 'user_id', name='uq_league_member'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    league_id = Column(GUID, ForeignKey("private_leagues.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    left_at = Column(DateTime, nullable=True)


class PrivateLeagueStats(Base):
    """
    Per-member league stats.

    quiz_slug NULL is the member's overall row; other rows hold the
    member's result for a single quiz.
    """
    __tablename__ = "private_league_stats"

    __table_args__ = (
        UniqueConstraint('league_id', 'user_id', 'quiz_slug', name='uq_league_stats'),
        Index('ix_league_stats_league_quiz', 'league_id', 'quiz_slug'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    league_id = Column(GUID, ForeignKey("private_leagues.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_slug = Column(String(255), nullable=True)

    score = Column(Integer, default=0, nullable=False)
    total_correct_answers = Column(Integer, default=0, nullable=False)
    quizzes_played = Column(Integer, default=0, nullable=False)
    current_streak = Column(Integer, default=0, nullable=False)
    best_streak = Column(Integer, default=0, nullable=False)

    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
