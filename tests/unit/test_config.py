"""Unit tests for chatbridge.core.config — ChatBridgeConfig loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from chatbridge.core.config import ChatBridgeConfig, ProvidersConfig, load_config
from chatbridge.core.exceptions import ConfigError, ConfigNotFoundError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_config(tmp_path: Path, content: str) -> Path:
    p = tmp_path / "config.toml"
    p.write_text(content)
    return p


FULL_TOML = """
[logging]
level = "debug"
format = "json"

[database]
path = "/tmp/chatbridge-test.db"

[providers]
chat_timeout_s = 10
stream_setup_timeout_s = 20
stream_buffer_size = 4
cancel_grace_s = 0.5
mock_token_delay_s = 0

[chat]
default_provider = " Anthropic "
allow_demo_mode = true
"""


# ---------------------------------------------------------------------------
# Load config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_defaults(self) -> None:
        cfg = ChatBridgeConfig()
        assert cfg.providers.chat_timeout_s == 30.0
        assert cfg.providers.stream_setup_timeout_s == 60.0
        assert cfg.providers.stream_buffer_size == 10
        assert cfg.providers.anthropic_version == "2023-06-01"
        assert cfg.providers.anthropic_max_tokens == 1024
        assert cfg.chat.allow_demo_mode is False
        assert cfg.chat.default_provider == ""

    def test_full_file(self, tmp_path: Path) -> None:
        cfg = load_config(_write_config(tmp_path, FULL_TOML))
        assert cfg.logging.level == "DEBUG"
        assert cfg.logging.format == "json"
        assert cfg.db_path == Path("/tmp/chatbridge-test.db")
        assert cfg.providers.chat_timeout_s == 10
        assert cfg.providers.stream_buffer_size == 4
        assert cfg.providers.mock_token_delay_s == 0
        assert cfg.chat.default_provider == "anthropic"
        assert cfg.chat.allow_demo_mode is True

    def test_missing_explicit_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigNotFoundError):
            load_config(tmp_path / "nonexistent.toml")

    def test_missing_default_file_gives_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CHATBRIDGE_CONFIG", str(tmp_path / "absent.toml"))
        cfg = load_config()
        assert cfg == ChatBridgeConfig()

    def test_invalid_toml_raises(self, tmp_path: Path) -> None:
        p = _write_config(tmp_path, "this is not valid toml %%% [[[")
        with pytest.raises(ConfigError):
            load_config(p)

    def test_unknown_section_rejected(self, tmp_path: Path) -> None:
        p = _write_config(tmp_path, "[telegram]\nbot_token = 'x'\n")
        with pytest.raises(ConfigError):
            load_config(p)

    def test_invalid_log_level_rejected(self, tmp_path: Path) -> None:
        p = _write_config(tmp_path, "[logging]\nlevel = 'LOUD'\n")
        with pytest.raises(ConfigError):
            load_config(p)


class TestProvidersValidation:
    @pytest.mark.parametrize("value", [0.5, 601.0])
    def test_timeout_bounds(self, value: float) -> None:
        with pytest.raises(ValueError):
            ProvidersConfig(chat_timeout_s=value)

    def test_buffer_bounds(self) -> None:
        with pytest.raises(ValueError):
            ProvidersConfig(stream_buffer_size=0)

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValueError):
            ProvidersConfig(mock_token_delay_s=-1)


class TestEnvOverrides:
    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        p = _write_config(tmp_path, FULL_TOML)
        monkeypatch.setenv("CHATBRIDGE_LOG_LEVEL", "warning")
        monkeypatch.setenv("CHATBRIDGE_DB_PATH", str(tmp_path / "other.db"))
        monkeypatch.setenv("CHATBRIDGE_DEFAULT_PROVIDER", "openai")
        monkeypatch.setenv("CHATBRIDGE_ALLOW_DEMO", "no")

        cfg = load_config(p)
        assert cfg.logging.level == "WARNING"
        assert cfg.db_path == tmp_path / "other.db"
        assert cfg.chat.default_provider == "openai"
        assert cfg.chat.allow_demo_mode is False

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_allow_demo_truthy(
        self, value: str, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CHATBRIDGE_CONFIG", str(tmp_path / "absent.toml"))
        monkeypatch.setenv("CHATBRIDGE_ALLOW_DEMO", value)
        assert load_config().chat.allow_demo_mode is True
