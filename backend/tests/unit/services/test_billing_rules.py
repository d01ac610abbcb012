"""
Unit Tests for billing rules
Tests for: offer code validity, discounts, plans, referral free months
"""
import pytest
from datetime import datetime, timedelta

from app.core.exceptions import ValidationError
from app.models.billing import OfferCode, DiscountType, PlanCode
from app.models.user import User, UserTier, UserSubscriptionStatus
from app.services.billing_service import offer_code_problem, calculate_discount, get_plan
from app.services.referral_service import referral_service

NOW = datetime(2024, 6, 1, 12, 0)


def offer(**overrides) -> OfferCode:
    values = dict(
        code="SPRING",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=20,
        is_active=True,
        valid_from=None,
        valid_until=None,
        max_uses=None,
        current_uses=0,
        applicable_plans=[],
    )
    values.update(overrides)
    return OfferCode(**values)


class TestOfferCodeProblem:

    def test_usable_code(self):
        assert offer_code_problem(offer(), PlanCode.INDIVIDUAL, NOW) is None

    def test_unknown_code(self):
        assert offer_code_problem(None, PlanCode.INDIVIDUAL, NOW) == "Invalid offer code"

    @pytest.mark.parametrize("overrides, fragment", [
        ({"is_active": False}, "no longer active"),
        ({"valid_from": NOW + timedelta(days=1)}, "not valid yet"),
        ({"valid_until": NOW - timedelta(days=1)}, "expired"),
        ({"max_uses": 5, "current_uses": 5}, "usage limit"),
        ({"applicable_plans": ["ORG_ANNUAL"]}, "does not apply"),
    ])
    def test_rejections(self, overrides, fragment):
        problem = offer_code_problem(offer(**overrides), PlanCode.INDIVIDUAL, NOW)

        assert fragment in problem

    def test_plan_list_matches(self):
        code = offer(applicable_plans=["INDIVIDUAL", "ORG_MONTHLY"])

        assert offer_code_problem(code, "ORG_MONTHLY", NOW) is None


class TestDiscounts:

    def test_no_code(self):
        assert calculate_discount(None, 499) == (0, 0)

    def test_percentage(self):
        assert calculate_discount(offer(discount_value=20), 499) == (99, 0)

    def test_percentage_capped_at_full_price(self):
        assert calculate_discount(offer(discount_value=150), 499) == (499, 0)

    def test_fixed_amount_capped_at_price(self):
        code = offer(discount_type=DiscountType.FIXED_AMOUNT, discount_value=1000)

        assert calculate_discount(code, 499) == (499, 0)

    def test_trial_extension_returns_days(self):
        code = offer(discount_type=DiscountType.FREE_TRIAL_EXTENSION, discount_value=14)

        assert calculate_discount(code, 499) == (0, 14)


class TestPlans:

    def test_individual_plan(self):
        plan = get_plan(PlanCode.INDIVIDUAL)

        assert plan["price_cents"] == 499
        assert plan["period_days"] == 30

    def test_unknown_plan(self):
        with pytest.raises(ValidationError):
            get_plan("LIFETIME")


class TestReferralFreeMonth:

    def make_user(self, **overrides) -> User:
        values = dict(
            tier=UserTier.FREE,
            subscription_status=UserSubscriptionStatus.FREE_TRIAL,
            free_trial_until=None,
            free_months_granted=0,
            next_cycle_free=False,
        )
        values.update(overrides)
        return User(**values)

    def test_free_user_gets_a_trial_month(self):
        user = self.make_user()

        assert referral_service.grant_free_month(user, now=NOW) is True
        assert user.tier == UserTier.PREMIUM
        assert user.free_trial_until == NOW + timedelta(days=30)
        assert user.free_months_granted == 1

    def test_months_stack_on_a_running_trial(self):
        user = self.make_user(free_trial_until=NOW + timedelta(days=10), free_months_granted=1)

        referral_service.grant_free_month(user, now=NOW)

        assert user.free_trial_until == NOW + timedelta(days=40)

    def test_paying_user_gets_next_cycle_free(self):
        user = self.make_user(tier=UserTier.PREMIUM, subscription_status=UserSubscriptionStatus.ACTIVE)

        referral_service.grant_free_month(user, now=NOW)

        assert user.next_cycle_free is True
        assert user.free_trial_until is None
        assert user.subscription_status == UserSubscriptionStatus.ACTIVE

    def test_capped_at_three(self):
        user = self.make_user(free_months_granted=3)

        assert referral_service.grant_free_month(user, now=NOW) is False
        assert user.free_months_granted == 3
        assert user.free_trial_until is None
