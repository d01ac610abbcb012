from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from app.core.config import settings


class UserRegister(BaseModel):
    email: EmailStr
    password: str
    name: Optional[str] = Field(None, max_length=255)
    referral_code: Optional[str] = Field(None, max_length=16)

    @field_validator('email')
    @classmethod
    def normalise_email(cls, v):
        return v.strip().lower()

    @field_validator('password')
    @classmethod
    def password_length(cls, v):
        if len(v) < settings.PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")
        return v

    @field_validator('referral_code')
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper() if v else v


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalise_email(cls, v):
        return v.strip().lower()


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class Token(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    team_name: Optional[str] = None
    role: str
    tier: str
    subscription_status: str
    free_trial_until: Optional[datetime] = None
    is_premium: bool
    referral_code: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('role', 'tier', 'subscription_status', mode='before')
    @classmethod
    def enum_value(cls, v):
        return getattr(v, 'value', v)


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    team_name: Optional[str] = Field(None, max_length=255)


class ReferralSummary(BaseModel):
    referral_code: Optional[str]
    referrals: int
    rewarded: int
    free_months_granted: int
    max_free_months: int
