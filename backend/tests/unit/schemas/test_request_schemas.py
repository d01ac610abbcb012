"""
Unit Tests for request schemas
Tests for: normalisation and cross-field validation of incoming bodies
"""
import pytest
from pydantic import ValidationError
from datetime import datetime, timedelta

from app.schemas.auth import UserRegister, UserLogin, UserResponse
from app.schemas.billing import OfferCodeCreate
from app.schemas.league import LeagueCreate, LeagueUpdate, JoinByCodeRequest
from app.schemas.quiz import QuizCreate, CompletionCreate
from app.schemas.organisation import OrganisationCreate, MemberInvite
from app.schemas.admin import OrganisationActionRequest
from app.schemas.achievement import AchievementCreate
from app.models.organisation import OrganisationMemberRole
from app.models.user import User, UserRole, UserTier, UserSubscriptionStatus


class TestAuthSchemas:

    def test_register_lowercases_email(self):
        user = UserRegister(email="Quiz.Master@Example.COM", password="longenough")

        assert user.email == "quiz.master@example.com"

    def test_register_short_password(self):
        with pytest.raises(ValidationError) as exc_info:
            UserRegister(email="a@example.com", password="short")

        assert "at least 8 characters" in str(exc_info.value)

    def test_register_invalid_email(self):
        with pytest.raises(ValidationError):
            UserRegister(email="not-an-email", password="longenough")

    def test_referral_code_uppercased(self):
        user = UserRegister(email="a@example.com", password="longenough", referral_code=" ab12cd34 ")

        assert user.referral_code == "AB12CD34"

    def test_login_lowercases_email(self):
        assert UserLogin(email="A@Example.com", password="x").email == "a@example.com"

    def test_user_response_from_model(self):
        user = User(
            id="7d8f7a1e-0000-4000-8000-000000000001",
            email="a@example.com",
            role=UserRole.STUDENT,
            tier=UserTier.PREMIUM,
            subscription_status=UserSubscriptionStatus.ACTIVE,
            created_at=datetime.utcnow(),
        )

        response = UserResponse.model_validate(user)

        assert response.tier == "premium"
        assert response.subscription_status == "ACTIVE"
        assert response.is_premium is True


class TestOfferCodeCreate:

    def test_code_uppercased(self):
        offer = OfferCodeCreate(code=" spring24 ", discount_type="PERCENTAGE", discount_value=20)

        assert offer.code == "SPRING24"

    def test_blank_code_is_generated_later(self):
        offer = OfferCodeCreate(code=None, discount_type="FIXED_AMOUNT", discount_value=100)

        assert offer.code is None

    def test_percentage_over_100(self):
        with pytest.raises(ValidationError) as exc_info:
            OfferCodeCreate(discount_type="PERCENTAGE", discount_value=101)

        assert "cannot exceed 100" in str(exc_info.value)

    def test_fixed_amount_over_100_is_fine(self):
        offer = OfferCodeCreate(discount_type="FIXED_AMOUNT", discount_value=2500)

        assert offer.discount_value == 2500

    def test_window_must_end_after_start(self):
        start = datetime(2024, 6, 1)

        with pytest.raises(ValidationError):
            OfferCodeCreate(
                discount_type="PERCENTAGE",
                discount_value=10,
                valid_from=start,
                valid_until=start - timedelta(days=1),
            )

    def test_zero_discount(self):
        with pytest.raises(ValidationError):
            OfferCodeCreate(discount_type="PERCENTAGE", discount_value=0)


class TestLeagueSchemas:

    def test_blank_name(self):
        with pytest.raises(ValidationError):
            LeagueCreate(name="   ")

    def test_name_stripped(self):
        assert LeagueCreate(name="  Staff Room ").name == "Staff Room"

    def test_max_members_bounds(self):
        with pytest.raises(ValidationError):
            LeagueUpdate(max_members=1)

    def test_join_code_uppercased(self):
        assert JoinByCodeRequest(code=" abcd2345 ").code == "ABCD2345"


class TestQuizSchemas:

    def test_slug_normalised(self):
        assert QuizCreate(title="Weekly", slug="  Week-12 ").slug == "week-12"

    def test_blank_slug_means_auto(self):
        assert QuizCreate(title="Weekly", slug="   ").slug is None

    def test_completion_needs_questions(self):
        with pytest.raises(ValidationError):
            CompletionCreate(quiz_slug="1", score=0, total_questions=0)


class TestOrganisationSchemas:

    def test_domain_normalised(self):
        org = OrganisationCreate(name="Hill School", email_domain=" @Hill.SCH.uk ")

        assert org.email_domain == "hill.sch.uk"

    def test_invite_defaults_to_teacher(self):
        invite = MemberInvite(email="Head@Hill.sch.uk")

        assert invite.role == OrganisationMemberRole.TEACHER
        assert invite.email == "head@hill.sch.uk"

    @pytest.mark.parametrize("body", [
        {"action": "changePlan"},
        {"action": "changeMaxSeats", "max_seats": -1},
        {"action": "transferOwnership"},
    ])
    def test_admin_action_arguments(self, body):
        with pytest.raises(ValidationError):
            OrganisationActionRequest(**body)

    def test_unknown_action_passes_schema(self):
        assert OrganisationActionRequest(action="explode").action == "explode"


class TestAchievementSchemas:

    def test_slug_normalised(self):
        achievement = AchievementCreate(
            slug=" Night-Owl ",
            name="Night Owl",
            short_description="Play after midnight",
            category="timing",
            rarity="rare",
            unlock_condition_type="time_window",
        )

        assert achievement.slug == "night-owl"
