"""
Admin API endpoints for the SchoolQuiz admin dashboard.
All endpoints require platform admin or superuser privileges.
"""
from fastapi import APIRouter

from app.api.v1.endpoints.admin import (
    dashboard, analytics, quizzes, questions, achievements, billing, organisations, users, audit_logs
)

admin_router = APIRouter(prefix="/admin", tags=["Admin Dashboard"])

# Include all admin sub-routers
admin_router.include_router(dashboard.router, tags=["Admin Dashboard"])
admin_router.include_router(analytics.router, prefix="/analytics", tags=["Admin Analytics"])
admin_router.include_router(quizzes.router, prefix="/quizzes", tags=["Admin Quizzes"])
admin_router.include_router(questions.router, prefix="/questions", tags=["Admin Questions"])
admin_router.include_router(achievements.router, prefix="/achievements", tags=["Admin Achievements"])
admin_router.include_router(billing.router, prefix="/billing", tags=["Admin Billing"])
admin_router.include_router(organisations.router, prefix="/organisations", tags=["Admin Organisations"])
admin_router.include_router(users.router, prefix="/users", tags=["Admin Users"])
admin_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["Admin Audit Logs"])
