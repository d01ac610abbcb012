from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.achievement import AchievementRarity, UnlockConditionType


class AchievementBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    short_description: str = Field(..., min_length=1, max_length=500)
    long_description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    rarity: AchievementRarity
    is_premium_only: bool = False
    series_slug: Optional[str] = None
    card_variant: Optional[str] = None
    season_tag: Optional[str] = None
    icon_key: Optional[str] = None
    appearance: Optional[Dict[str, Any]] = None
    points: int = Field(0, ge=0)
    unlock_condition_type: UnlockConditionType
    unlock_condition_config: Optional[Dict[str, Any]] = None
    is_active: bool = True


class AchievementCreate(AchievementBase):
    slug: str = Field(..., min_length=1, max_length=255)

    @field_validator('slug')
    @classmethod
    def normalise_slug(cls, v):
        v = v.strip().lower()
        if not v:
            raise ValueError("Slug is required")
        return v


class AchievementUpdate(BaseModel):
    slug: Optional[str] = Field(None, min_length=1, max_length=255)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    short_description: Optional[str] = Field(None, min_length=1, max_length=500)
    long_description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    rarity: Optional[AchievementRarity] = None
    is_premium_only: Optional[bool] = None
    series_slug: Optional[str] = None
    card_variant: Optional[str] = None
    season_tag: Optional[str] = None
    icon_key: Optional[str] = None
    appearance: Optional[Dict[str, Any]] = None
    points: Optional[int] = Field(None, ge=0)
    unlock_condition_type: Optional[UnlockConditionType] = None
    unlock_condition_config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None

    @field_validator('slug')
    @classmethod
    def normalise_slug(cls, v):
        return v.strip().lower() if v else v


class AchievementResponse(BaseModel):
    id: str
    slug: str
    name: str
    short_description: str
    long_description: Optional[str] = None
    category: str
    rarity: str
    is_premium_only: bool
    series_slug: Optional[str] = None
    card_variant: Optional[str] = None
    season_tag: Optional[str] = None
    icon_key: Optional[str] = None
    appearance: Optional[Dict[str, Any]] = None
    points: int
    unlock_condition_type: str
    unlock_condition_config: Optional[Dict[str, Any]] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator('rarity', 'unlock_condition_type', mode='before')
    @classmethod
    def enum_value(cls, v):
        return getattr(v, 'value', v)


class AchievementListResponse(BaseModel):
    achievements: List[AchievementResponse]


class UserAchievementStatus(AchievementResponse):
    """Achievement plus the caller's unlock state"""
    unlocked: bool = False
    unlocked_at: Optional[datetime] = None
    can_earn: bool = True
    progress_value: Optional[int] = None
    progress_max: Optional[int] = None


class UserAchievementResponse(BaseModel):
    id: str
    achievement: AchievementResponse
    unlocked_at: datetime
    quiz_slug: Optional[str] = None
    progress_value: Optional[int] = None
    progress_max: Optional[int] = None
    meta: Optional[Dict[str, Any]] = None


class AchievementStat(BaseModel):
    id: str
    slug: str
    name: str
    rarity: str
    total_unlocks: int
    free_unlocks: int
    premium_unlocks: int
    percent_of_users: float


class AchievementStatsResponse(BaseModel):
    total_users: int
    achievements: List[AchievementStat]
