"""
Unit Tests for settings parsing
Tests for: plan strings, CORS origins, default plan table
"""
from app.core.config import settings, parse_plan, parse_cors_origins


class TestSettingsParsing:

    def test_parse_plan(self):
        assert parse_plan("499,30,Individual Monthly") == {
            "price_cents": 499, "period_days": 30, "name": "Individual Monthly",
        }

    def test_parse_plan_incomplete(self):
        assert parse_plan("") == {}
        assert parse_plan("499,30") == {}

    def test_parse_cors_origins(self):
        assert parse_cors_origins("http://a.test, http://b.test") == ["http://a.test", "http://b.test"]
        assert parse_cors_origins('["http://a.test"]') == ["http://a.test"]

    def test_default_plans(self):
        plans = settings.get_plans()

        assert set(plans) == {"INDIVIDUAL", "ORG_MONTHLY", "ORG_ANNUAL"}
        assert plans["ORG_ANNUAL"]["period_days"] == 365
