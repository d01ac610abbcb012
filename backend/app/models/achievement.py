from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey, Boolean, JSON, UniqueConstraint
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class AchievementRarity(str, enum.Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class UnlockConditionType(str, enum.Enum):
    """How an achievement is earned - config keys live in unlock_condition_config"""
    SCORE_5_OF_5 = "score_5_of_5"        # requiredScore, category
    PLAY_N_QUIZZES = "play_n_quizzes"    # count, timeWindow (day|week|month)
    TIME_WINDOW = "time_window"          # weeksAgo
    REPEAT_QUIZ = "repeat_quiz"          # minCompletions
    TIME_LIMIT = "time_limit"            # maxSeconds, scope (round|quiz)
    STREAK = "streak"                    # weeks
    EVENT_ROUND = "event_round"          # eventTag


class Achievement(Base):
    """Collectible achievement card"""
    __tablename__ = "achievements"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    short_description = Column(String(500), nullable=False)
    long_description = Column(Text, nullable=True)

    category = Column(String(100), nullable=False)
    rarity = Column(SQLEnum(AchievementRarity), default=AchievementRarity.COMMON, nullable=False)
    is_premium_only = Column(Boolean, default=False, nullable=False)

    # Presentation
    series_slug = Column(String(255), nullable=True)
    card_variant = Column(String(50), nullable=True)
    season_tag = Column(String(100), nullable=True)
    icon_key = Column(String(100), nullable=True)
    appearance = Column(JSON, nullable=True)
    points = Column(Integer, default=0, nullable=False)

    unlock_condition_type = Column(SQLEnum(UnlockConditionType), nullable=False)
    unlock_condition_config = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Achievement {self.slug}>"


class UserAchievement(Base):
    __tablename__ = "user_achievements"

    __table_args__ = (
        UniqueConstraint('user_id', 'achievement_id', name='uq_user_achievement'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    achievement_id = Column(GUID, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False, index=True)

    unlocked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    quiz_slug = Column(String(255), nullable=True)
    progress_value = Column(Integer, nullable=True)
    progress_max = Column(Integer, nullable=True)
    meta = Column(JSON, nullable=True)
