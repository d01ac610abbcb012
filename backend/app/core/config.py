from pydantic_settings import BaseSettings
from typing import List, Dict, Any
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


def parse_plan(v: str) -> Dict[str, Any]:
    """Parse a billing plan from format: price_in_cents,period_days,name"""
    if not v:
        return {}
    parts = v.split(',')
    if len(parts) >= 3:
        return {
            "price_cents": int(parts[0].strip()),
            "period_days": int(parts[1].strip()),
            "name": parts[2].strip()
        }
    return {}


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "SchoolQuiz"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    BCRYPT_ROUNDS: int = 12  # 4 for tests, 12 for prod
    PASSWORD_MIN_LENGTH: int = 8

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:3001,http://127.0.0.1:3000,http://127.0.0.1:3001"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # ==========================================
    # Invite Codes (private leagues, offer codes)
    # ==========================================
    INVITE_CODE_LENGTH: int = 8
    INVITE_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # No 0/O/1/I
    INVITE_CODE_MAX_ATTEMPTS: int = 10

    # ==========================================
    # Leagues & Leaderboards
    # ==========================================
    LEAGUE_DEFAULT_MAX_MEMBERS: int = 50
    LEADERBOARD_PAGE_LIMIT: int = 50
    ORG_ACTIVITY_LIMIT: int = 50

    # ==========================================
    # Organisations
    # ==========================================
    ORG_DEFAULT_MAX_SEATS: int = 10
    ORG_GRACE_PERIOD_DAYS: int = 14

    # ==========================================
    # Billing
    # ==========================================
    # Plans (format: price_in_cents,period_days,name)
    PLAN_INDIVIDUAL: str = "499,30,Individual Monthly"
    PLAN_ORG_MONTHLY: str = "4900,30,Organisation Monthly"
    PLAN_ORG_ANNUAL: str = "49000,365,Organisation Annual"
    BILLING_CURRENCY: str = "GBP"

    # ==========================================
    # Referrals
    # ==========================================
    REFERRAL_MAX_FREE_MONTHS: int = 3
    REFERRAL_FREE_MONTH_DAYS: int = 30

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.LOG_FILE:
            Path(self.LOG_FILE).parent.mkdir(exist_ok=True, parents=True)

    # ==========================================
    # Helper Methods for Billing Configuration
    # ==========================================
    def get_plans(self) -> Dict[str, Dict[str, Any]]:
        """Get billing plans keyed by plan code"""
        return {
            "INDIVIDUAL": parse_plan(self.PLAN_INDIVIDUAL),
            "ORG_MONTHLY": parse_plan(self.PLAN_ORG_MONTHLY),
            "ORG_ANNUAL": parse_plan(self.PLAN_ORG_ANNUAL),
        }


# Create settings instance
settings = Settings()
