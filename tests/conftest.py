"""
Pytest configuration and fixtures for relay tests.

Provides a fake Telethon client, a config factory and a FastAPI TestClient
wired to an overridden application context.
"""
import os
from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient

from fakes import build_test_context, make_telegram_client


# Set test environment variables before ANY imports
os.environ["APP_ENV"] = "test"
os.environ["LOG_TO_FILE"] = "false"
os.environ["OTEL_ENABLED"] = "0"
os.environ["SENTRY_DSN"] = ""
os.environ["CORS_ALLOW_ORIGINS"] = "*"


BASE_CONFIG = {
    "API_ID": "12345",
    "API_HASH": "0123456789abcdef0123456789abcdef",
    "PHONE_NUMBER": "+911234567890",
    "USER_STRING_SESSION": "1Aexisting-session",
    "TARGET_GROUP_CHAT_ID": "-1001234567890",
    "TIMEZONE": "Asia/Kolkata",
    "DELAY_BETWEEN_FORWARDS_MS": "0",
}


@pytest.fixture
def make_config() -> Callable[..., Any]:
    """Build a RelayConfig from the test defaults; keyword overrides use env names."""
    from shared.config import RelayConfig

    def _make(**overrides: Any):
        values = dict(BASE_CONFIG)
        values.update(overrides)
        return RelayConfig(_env_file=None, **values)

    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def telegram_client():
    return make_telegram_client()


@pytest.fixture(scope="session")
def test_app():
    """Import the FastAPI app with the test environment applied."""
    from RelayBackend.app import app
    return app


@pytest.fixture
def make_client(test_app, telegram_client) -> Generator[Callable[..., TestClient], None, None]:
    """Factory for a TestClient whose app context is built from the given config."""
    from RelayBackend.app_context import get_app_context

    def _make(cfg) -> TestClient:
        ctx = build_test_context(cfg, telegram_client)
        test_app.dependency_overrides[get_app_context] = lambda: ctx
        # Not entered as a context manager: startup hooks would build the real context.
        return TestClient(test_app)

    yield _make

    test_app.dependency_overrides.pop(get_app_context, None)


@pytest.fixture
def client(make_client, config) -> TestClient:
    return make_client(config)
