"""
Unit Tests for application startup checks and the fallback error handler
"""
import json
import pytest
from starlette.requests import Request

from app.core.config import settings
from app.main import validate_critical_config, unhandled_exception_handler


def make_request(path: str = '/api/v1/quizzes') -> Request:
    return Request({
        'type': 'http',
        'method': 'GET',
        'path': path,
        'headers': [],
        'query_string': b'',
    })


class TestValidateCriticalConfig:

    def test_accepts_test_settings(self):
        validate_critical_config()

    def test_rejects_placeholder_secret(self, monkeypatch):
        monkeypatch.setattr(settings, 'JWT_SECRET_KEY', 'CHANGE_ME')

        with pytest.raises(RuntimeError) as exc_info:
            validate_critical_config()

        assert 'JWT_SECRET_KEY' in str(exc_info.value)

    def test_rejects_missing_database_url(self, monkeypatch):
        monkeypatch.setattr(settings, 'DATABASE_URL', '')

        with pytest.raises(RuntimeError) as exc_info:
            validate_critical_config()

        assert 'DATABASE_URL is not set' in str(exc_info.value)


class TestUnhandledExceptionHandler:

    @pytest.mark.asyncio
    async def test_body(self, monkeypatch):
        monkeypatch.setattr(settings, 'DEBUG', False)

        response = await unhandled_exception_handler(make_request(), RuntimeError('db went away'))

        assert response.status_code == 500
        assert json.loads(response.body) == {
            'detail': 'Internal server error',
            'message': 'An error occurred',
        }

    @pytest.mark.asyncio
    async def test_debug_includes_message(self, monkeypatch):
        monkeypatch.setattr(settings, 'DEBUG', True)

        response = await unhandled_exception_handler(make_request(), RuntimeError('db went away'))

        assert json.loads(response.body)['message'] == 'db went away'
