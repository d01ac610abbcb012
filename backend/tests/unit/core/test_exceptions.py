"""
Unit Tests for Exceptions
Tests for: error bodies, status codes, JSON error responses
"""
import json
import pytest

from app.core.exceptions import (
    SchoolQuizError,
    AuthenticationError,
    PermissionDeniedError,
    SubscriptionInactiveError,
    PremiumRequiredError,
    ResourceNotFoundError,
    ValidationError,
    ConflictError,
    CodeGenerationError,
    error_response,
)


class TestErrorBodies:

    def test_base_error_defaults_to_500(self):
        error = SchoolQuizError("Boom")

        assert error.status_code == 500
        assert error.to_dict() == {"error": "Boom", "code": "INTERNAL_ERROR"}

    def test_not_found_code_from_resource_type(self):
        error = ResourceNotFoundError("Group member", "abc")

        assert error.status_code == 404
        assert error.code == "GROUP_MEMBER_NOT_FOUND"
        assert error.details == {"resource_type": "Group member", "resource_id": "abc"}

    def test_not_found_custom_message(self):
        error = ResourceNotFoundError("League", message="Invalid invite code")

        assert error.message == "Invalid invite code"
        assert error.details == {}

    def test_validation_error_field(self):
        error = ValidationError("No available seats", field="email")

        assert error.status_code == 400
        assert error.to_dict() == {
            "error": "No available seats",
            "code": "VALIDATION_ERROR",
            "details": {"field": "email"},
        }

    def test_permission_denied(self):
        error = PermissionDeniedError("org:groups:create")

        assert error.status_code == 403
        assert error.code == "FORBIDDEN"
        assert error.details == {"permission": "org:groups:create"}

    def test_subscription_inactive(self):
        error = SubscriptionInactiveError()

        assert error.status_code == 403
        assert error.code == "SUBSCRIPTION_INACTIVE"
        assert error.message == "Subscription expired"

    @pytest.mark.parametrize("error, status, code", [
        (AuthenticationError(), 401, "UNAUTHORIZED"),
        (PremiumRequiredError("Private leagues"), 403, "PREMIUM_REQUIRED"),
        (ConflictError("Slug taken", field="slug"), 409, "CONFLICT"),
        (CodeGenerationError(10), 500, "CODE_GENERATION_FAILED"),
    ])
    def test_status_and_code(self, error, status, code):
        assert error.status_code == status
        assert error.code == code

    def test_error_response(self):
        response = error_response(ConflictError("Slug taken", field="slug"))

        assert response.status_code == 409
        assert json.loads(response.body) == {
            "error": "Slug taken",
            "code": "CONFLICT",
            "details": {"field": "slug"},
        }
