"""chatbridge configuration: Pydantic model, TOML load, environment overlay."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from chatbridge.core.constants import (
    ANTHROPIC_API_VERSION,
    ANTHROPIC_DEFAULT_MAX_TOKENS,
    CANCEL_GRACE_SECONDS,
    CHAT_TIMEOUT_SECONDS,
    CONFIG_FILENAME,
    DB_FILENAME,
    MOCK_TOKEN_DELAY_SECONDS,
    STREAM_BUFFER_SIZE,
    STREAM_SETUP_TIMEOUT_SECONDS,
    _default_data_dir,
)
from chatbridge.core.exceptions import ConfigError, ConfigNotFoundError


def chatbridge_dir() -> Path:
    """Return the chatbridge data directory, creating it if needed."""
    d = _default_data_dir()
    d.mkdir(mode=0o700, parents=True, exist_ok=True)
    return d


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v


class DatabaseConfig(BaseModel):
    path: str = ""  # empty → use default


class ProvidersConfig(BaseModel):
    """Timeouts and wire settings shared by every vendor adapter."""

    chat_timeout_s: float = CHAT_TIMEOUT_SECONDS
    stream_setup_timeout_s: float = STREAM_SETUP_TIMEOUT_SECONDS
    stream_buffer_size: int = STREAM_BUFFER_SIZE
    cancel_grace_s: float = CANCEL_GRACE_SECONDS
    mock_token_delay_s: float = MOCK_TOKEN_DELAY_SECONDS
    anthropic_version: str = ANTHROPIC_API_VERSION
    anthropic_max_tokens: int = ANTHROPIC_DEFAULT_MAX_TOKENS

    @field_validator("chat_timeout_s", "stream_setup_timeout_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if not (1.0 <= v <= 600.0):
            raise ValueError("timeouts must be between 1 and 600 seconds")
        return v

    @field_validator("stream_buffer_size")
    @classmethod
    def validate_buffer(cls, v: int) -> int:
        if not (1 <= v <= 1000):
            raise ValueError("stream_buffer_size must be between 1 and 1000")
        return v

    @field_validator("cancel_grace_s", "mock_token_delay_s")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v


class ChatConfig(BaseModel):
    """Dispatch behaviour."""

    default_provider: str = ""
    """Provider used when a model reference matches no catalog entry."""

    allow_demo_mode: bool = False
    """Serve requests from the mock adapters when no real credential exists."""

    @field_validator("default_provider")
    @classmethod
    def normalise_provider(cls, v: str) -> str:
        return v.strip().lower()


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class ChatBridgeConfig(BaseModel):
    """Root chatbridge configuration model."""

    model_config = {"extra": "forbid"}

    config_version: int = 1
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)

    @property
    def db_path(self) -> Path:
        if self.database.path:
            return Path(self.database.path).expanduser()
        return chatbridge_dir() / DB_FILENAME


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def _config_file_path() -> Path:
    if env_path := os.environ.get("CHATBRIDGE_CONFIG"):
        return Path(env_path)
    return _default_data_dir() / CONFIG_FILENAME


def load_config(path: Path | str | None = None) -> ChatBridgeConfig:
    """
    Load ChatBridgeConfig from a TOML file, overlaid with environment variables.

    Priority (highest to lowest):
      1. Environment variables (CHATBRIDGE_*)
      2. Config file (platform data dir / config.toml, or CHATBRIDGE_CONFIG)
      3. Built-in defaults

    An explicitly passed *path* must exist; the default location may be absent.
    """
    import tomllib

    explicit = path is not None
    cfg_path = Path(path) if path is not None else _config_file_path()

    data: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            with open(cfg_path, "rb") as f:
                data = tomllib.load(f)
        except Exception as exc:
            raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc
    elif explicit:
        raise ConfigNotFoundError(f"Config file not found: {cfg_path}")

    _apply_env_overrides(data)

    try:
        return ChatBridgeConfig.model_validate(data)
    except Exception as exc:
        raise ConfigError(f"Invalid config at {cfg_path}: {exc}") from exc


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay CHATBRIDGE_* environment variables onto parsed TOML."""
    if level := os.environ.get("CHATBRIDGE_LOG_LEVEL", ""):
        data.setdefault("logging", {})["level"] = level
    if db := os.environ.get("CHATBRIDGE_DB_PATH", ""):
        data.setdefault("database", {})["path"] = db
    if provider := os.environ.get("CHATBRIDGE_DEFAULT_PROVIDER", ""):
        data.setdefault("chat", {})["default_provider"] = provider
    if demo := os.environ.get("CHATBRIDGE_ALLOW_DEMO", ""):
        data.setdefault("chat", {})["allow_demo_mode"] = demo.strip().lower() in (
            "1",
            "true",
            "yes",
            "on",
        )
