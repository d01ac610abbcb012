"""
Custom Exceptions for SchoolQuiz
================================

Services raise these; the API layer turns them into JSON error bodies
with the matching HTTP status (see ``register_exception_handlers``).

Usage:
    from app.core.exceptions import ResourceNotFoundError, PermissionDeniedError

    if not league:
        raise ResourceNotFoundError("League", league_id)

    if not has_permission(ctx, "org:groups:create"):
        raise PermissionDeniedError("org:groups:create")
"""

from typing import Optional, Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class SchoolQuizError(Exception):
    """Base exception for all SchoolQuiz errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details
        return body


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(SchoolQuizError):
    """User authentication failed"""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED")


class AuthorizationError(SchoolQuizError):
    """User not allowed to perform this action"""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN")


class PermissionDeniedError(AuthorizationError):
    """Organisation permission check failed"""

    def __init__(self, permission: str):
        super().__init__(f"Permission denied: {permission}")
        self.details = {"permission": permission}


class SubscriptionInactiveError(AuthorizationError):
    """Organisation subscription no longer allows writes"""

    def __init__(self, message: str = "Subscription expired"):
        super().__init__(message)
        self.code = "SUBSCRIPTION_INACTIVE"


class PremiumRequiredError(AuthorizationError):
    """Feature is limited to premium users"""

    def __init__(self, feature: str = "This feature"):
        super().__init__(f"{feature} is only available to premium users")
        self.code = "PREMIUM_REQUIRED"


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(SchoolQuizError):
    """Requested resource does not exist (or was soft-deleted)"""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Optional[str] = None, message: Optional[str] = None):
        super().__init__(
            message or f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_id else {}
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(SchoolQuizError):
    """Input validation or business rule failed"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(SchoolQuizError):
    """Unique value already taken (slug, email, code)"""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFLICT", details=details)


# ============================================
# Server Errors
# ============================================

class CodeGenerationError(SchoolQuizError):
    """Could not find an unused random code"""

    def __init__(self, attempts: int):
        super().__init__(
            "Failed to generate unique invite code",
            code="CODE_GENERATION_FAILED",
            details={"attempts": attempts}
        )


# ============================================
# Helpers for API responses
# ============================================

def error_response(error: SchoolQuizError) -> JSONResponse:
    """Convert exception to API error response"""
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Map SchoolQuizError subclasses to JSON responses"""

    @app.exception_handler(SchoolQuizError)
    async def schoolquiz_error_handler(request: Request, exc: SchoolQuizError):
        from app.core.logging_config import logger

        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", extra={"error_code": exc.code})
        else:
            logger.info(f"{exc.code}: {exc.message}", extra={"error_code": exc.code})
        return error_response(exc)
