"""
Rate Limiting for SchoolQuiz API
================================
slowapi limiter keyed by authenticated user id, falling back to client IP.

Storage defaults to in-process memory; point RATE_LIMIT_STORAGE_URI at a
shared backend when running more than one worker.

Special endpoints have tighter limits:
- /auth/login: 5 req/min (brute force protection)
- /auth/register: 3 req/min
- /private-leagues/join-by-code: 10 req/min (invite code guessing)
- /billing/offer-codes/validate: 10 req/min (offer code guessing)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Rate limit key.

    Priority:
    1. Authenticated user ID (set on request.state by the auth dependency)
    2. IP address
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """JSON 429 with a Retry-After hint"""
    retry_after = "60"

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}",
        extra={"event_type": "rate_limited", "http_path": request.url.path}
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests. Please slow down.",
            "code": "RATE_LIMITED",
            "details": {"limit": str(exc.detail), "retry_after_seconds": int(retry_after)},
        },
        headers={"Retry-After": retry_after},
    )


def auth_rate_limit():
    """Rate limit for login (5/min)"""
    return limiter.limit("5/minute", key_func=get_user_identifier)


def strict_rate_limit():
    """Very strict rate limit for account creation (3/min)"""
    return limiter.limit("3/minute", key_func=get_user_identifier)


def code_guess_rate_limit():
    """Rate limit for endpoints that accept guessable codes (10/min)"""
    return limiter.limit("10/minute", key_func=get_user_identifier)
