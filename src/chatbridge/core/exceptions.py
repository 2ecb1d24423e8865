"""chatbridge exception hierarchy."""

from __future__ import annotations


class ChatBridgeError(Exception):
    """Base exception for all chatbridge errors."""


class ConfigError(ChatBridgeError):
    """Raised when the configuration file is invalid or cannot be read."""


class ConfigNotFoundError(ConfigError):
    """Raised when an explicitly requested configuration file does not exist."""


class ConfigurationError(ChatBridgeError):
    """Raised when no usable (non-placeholder) credential is configured.

    Checked before any vendor call is attempted.
    """


class ResolutionError(ChatBridgeError):
    """Raised when a model reference cannot be mapped to a registered provider."""


class UpstreamError(ChatBridgeError):
    """Raised when a vendor returns a non-success response or a malformed payload."""

    def __init__(self, message: str, *, provider: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class AuthorizationError(ChatBridgeError):
    """Raised when the caller does not own the target conversation."""


class ConversationNotFoundError(ChatBridgeError):
    """Raised when a conversation id does not exist in the store."""


class PersistenceError(ChatBridgeError):
    """Raised when a storage write fails."""
