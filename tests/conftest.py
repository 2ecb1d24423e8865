"""Shared fixtures for the chatbridge test suite."""

from __future__ import annotations

import pytest

from chatbridge.core.config import ProvidersConfig

_KEY_VARS = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "CHATBRIDGE_OPENAI_API_KEY",
    "CHATBRIDGE_ANTHROPIC_API_KEY",
    "CHATBRIDGE_CONFIG",
    "CHATBRIDGE_DB_PATH",
    "CHATBRIDGE_LOG_LEVEL",
    "CHATBRIDGE_DEFAULT_PROVIDER",
    "CHATBRIDGE_ALLOW_DEMO",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer API keys and overrides out of every test."""
    for name in _KEY_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> ProvidersConfig:
    """Provider settings with no artificial mock delay and a short cancel grace."""
    return ProvidersConfig(mock_token_delay_s=0.0, cancel_grace_s=1.0)
