from fastapi import APIRouter
from app.api.v1.endpoints import (
    auth, users, organisations, leaderboards, private_leagues, quizzes, completions, achievements, billing
)
from app.api.v1.endpoints.admin import admin_router

api_router = APIRouter()


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "schoolquiz-api"}


api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(organisations.router, prefix="/organisations", tags=["Organisations"])
# Mounted at the root: /leaderboards/{id}/... and /my-leaderboards
api_router.include_router(leaderboards.router, tags=["Leaderboards"])
api_router.include_router(private_leagues.router, prefix="/private-leagues", tags=["Private Leagues"])
api_router.include_router(quizzes.router, prefix="/quizzes", tags=["Quizzes"])
api_router.include_router(completions.router, prefix="/quiz", tags=["Quiz Completions"])
api_router.include_router(achievements.router, prefix="/achievements", tags=["Achievements"])
api_router.include_router(billing.router, prefix="/billing", tags=["Billing"])

# Admin dashboard
api_router.include_router(admin_router)
