from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import close_db, get_session_local, init_db
from app.core.exceptions import register_exception_handlers
from app.core.logging_config import logger
from app.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from app.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.api.v1.router import api_router
from slowapi.errors import RateLimitExceeded
import app.models  # noqa: F401  register models on Base.metadata

APP_VERSION = "1.0.0"


def validate_critical_config() -> None:
    """Refuse to start with placeholder secrets or a broken plan table"""
    problems = []

    if not settings.DATABASE_URL:
        problems.append("DATABASE_URL is not set")
    for name in ("SECRET_KEY", "JWT_SECRET_KEY"):
        value = getattr(settings, name)
        if not value or value == "CHANGE_ME":
            problems.append(f"{name} is not set or using default value")

    try:
        plans = settings.get_plans()
    except ValueError as e:
        problems.append(f"Invalid plan configuration: {e}")
    else:
        for code, plan in plans.items():
            if not plan:
                logger.warning(f"[Startup] Plan {code} is not configured")
                continue
            logger.info(
                f"[Startup] Plan {code}: {plan['price_cents']} {settings.BILLING_CURRENCY} "
                f"every {plan['period_days']} days"
            )

    if problems:
        for problem in problems:
            logger.critical(f"[Startup] CRITICAL: {problem}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(problems)}")

    if settings.RATE_LIMIT_ENABLED and settings.RATE_LIMIT_STORAGE_URI.startswith("memory://") \
            and settings.ENVIRONMENT == "production":
        logger.warning("[Startup] Rate limits are kept in process memory - not shared between workers")


async def ensure_database_ready() -> bool:
    """Create the schema on an empty database"""
    try:
        async with get_session_local()() as session:
            try:
                await session.execute(text("SELECT 1 FROM quizzes LIMIT 1"))
                return True
            except SQLAlchemyError:
                logger.warning("[Startup] Quiz tables not found, creating schema")

        await init_db()
        logger.info("[Startup] Schema created")
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.log_error_with_context(e, "startup schema check")
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} {APP_VERSION} ({settings.ENVIRONMENT})")

    validate_critical_config()
    if not await ensure_database_ready():
        logger.warning("[Startup] Database not ready - requests touching it will fail")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Weekly pub-style quizzes with leaderboards, private leagues, organisations and achievements",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)

# Last added runs first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=2 * 1024 * 1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.log_error_with_context(exc, f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred",
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
