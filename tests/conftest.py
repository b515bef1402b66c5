"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, shared settings and
database fixtures, and automatic API test skipping. Fixtures here are
autouse only where noted.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import pytest

from llm_orchestrator.config import Settings
from llm_orchestrator.db import create_engine_for, create_tables, session_factory

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================

_PROVIDER_ENV_PREFIXES = ("OPENAI_", "CLAUDE_", "ANTHROPIC_", "GEMINI_", "LLM_")


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    monkeypatch.setattr(
        "llm_orchestrator.config.load_dotenv", lambda *_args, **_kwargs: False
    )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears OPENAI_*, CLAUDE_*, GEMINI_* and LLM_* env vars to prevent test
    pollution. Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith(_PROVIDER_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# =============================================================================
# Shared Fixtures
# =============================================================================


def make_settings(**overrides: Any) -> Settings:
    """Settings with the three built-in clients and fast, single-attempt HTTP."""
    data: dict[str, Any] = {
        "default": {"client": "openai", "max_retries": 1, "timeout": 5},
        "clients": {
            "openai": {
                "driver": "openai",
                "api_key": "sk-test",
                "base_url": "https://api.openai.test",
                "model": "gpt-4o-mini",
            },
            "claude": {
                "driver": "claude",
                "api_key": "sk-ant-test",
                "base_url": "https://api.anthropic.test",
                "model": "claude-3-5-sonnet-20241022",
            },
            "gemini": {
                "driver": "gemini",
                "api_key": "g-test",
                "base_url": "https://gemini.test",
                "model": "gemini-1.5-pro",
            },
        },
    }
    data.update(overrides)
    return Settings.from_mapping(data)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def db_session_factory(tmp_path):
    """A file-backed SQLite database with all tables created."""
    engine = create_engine_for(f"sqlite:///{tmp_path / 'llm.db'}")
    create_tables(engine)
    yield session_factory(engine)
    engine.dispose()


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


@pytest.fixture
def openai_api_key():
    """Return OPENAI_API_KEY or skip the test if unavailable."""
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        pytest.skip("OPENAI_API_KEY not set")
    return key
