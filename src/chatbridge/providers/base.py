"""
BaseProvider — abstract interface for LLM vendor adapters.

A provider is responsible for:
  1. Translating a canonical ChatRequest into its vendor's wire request
  2. Executing one chat completion, blocking or streamed
  3. Normalising the vendor response (or SSE events) into ChatResponse

Every vendor peculiarity stays inside its adapter; dispatch, the stream
bridge and persistence only ever see the types defined here.

Streaming asymmetry:
  ``chat()`` raises on any failure.  ``chat_stream()`` raises only while
  setting the stream up (bad credentials, connection refused, non-2xx).
  Once a stream has started, failures end it with one terminal response
  whose finish_reason is ``error`` (message in ``metadata["error"]``) and
  the channel closes.  Content already delivered is never retracted.

Adapter registry:
  Use @AdapterRegistry.register("name") to register a vendor adapter class,
  @AdapterRegistry.register_demo("name") for its non-networked stand-in.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    import httpx

    from chatbridge.core.config import ProvidersConfig
    from chatbridge.core.streaming import ResponseChannel

Role = Literal["system", "user", "assistant"]


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


class FinishReason(StrEnum):
    NONE = ""
    STOP = "stop"
    LENGTH = "length"
    ERROR = "error"


def _now() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a conversation. Immutable once created."""

    id: str
    role: Role
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def create(cls, role: Role, content: str, **metadata: Any) -> ChatMessage:
        return cls(id=new_id(), role=role, content=content, metadata=dict(metadata))


@dataclass
class ChatRequest:
    """One chat completion request, messages in conversation order."""

    conversation_id: str
    messages: list[ChatMessage]
    model: str  # catalog id or wire model name
    stream: bool = False
    max_tokens: int | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, prompt_tokens: int, completion_tokens: int) -> TokenUsage:
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


@dataclass
class ChatResponse:
    """Canonical response: a whole reply, or one fragment of a stream."""

    id: str
    conversation_id: str
    message: ChatMessage
    usage: TokenUsage | None = None
    finish_reason: FinishReason = FinishReason.NONE
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def content(self) -> str:
        return self.message.content

    @property
    def is_terminal(self) -> bool:
        return self.finish_reason is not FinishReason.NONE

    @classmethod
    def assistant(
        cls,
        conversation_id: str,
        content: str,
        *,
        response_id: str = "",
        usage: TokenUsage | None = None,
        finish_reason: FinishReason = FinishReason.NONE,
        metadata: dict[str, Any] | None = None,
    ) -> ChatResponse:
        return cls(
            id=response_id or new_id(),
            conversation_id=conversation_id,
            message=ChatMessage.create("assistant", content),
            usage=usage,
            finish_reason=finish_reason,
            metadata=metadata or {},
        )


@dataclass(frozen=True)
class ModelDescriptor:
    """A selectable model as seen by clients. Read-only."""

    id: str
    name: str
    provider: str
    capabilities: tuple[str, ...] = ("text", "chat")
    max_tokens: int = 0
    enabled: bool = True


# ---------------------------------------------------------------------------
# Provider ABC
# ---------------------------------------------------------------------------


class BaseProvider(ABC):
    """Abstract LLM vendor adapter."""

    #: Short lowercase identifier (e.g. "openai", "anthropic")
    provider_name: str = ""

    #: Human-readable name shown in listings
    display_name: str = ""

    #: True for non-networked stand-ins installed when no real credential exists
    is_demo: bool = False

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Run one blocking chat completion."""

    @abstractmethod
    async def chat_stream(self, request: ChatRequest) -> ResponseChannel[ChatResponse]:
        """Set up a stream and return the channel its responses arrive on."""

    @abstractmethod
    def get_models(self) -> list[ModelDescriptor]:
        """Return the models this adapter knows how to serve."""

    async def close(self) -> None:
        """Release held resources. Adapters open one HTTP client per call."""


# ---------------------------------------------------------------------------
# Adapter registry (vendor name → adapter class)
# ---------------------------------------------------------------------------


class _AdapterRegistryMeta(type):
    _registry: dict[str, type[BaseProvider]] = {}
    _demo: dict[str, type[BaseProvider]] = {}


class AdapterRegistry(metaclass=_AdapterRegistryMeta):
    """Global registry of vendor adapter classes."""

    @classmethod
    def register(cls, name: str) -> Any:
        """Decorator: @AdapterRegistry.register("anthropic")"""

        def decorator(provider_cls: type[BaseProvider]) -> type[BaseProvider]:
            cls._registry[name.lower()] = provider_cls
            return provider_cls

        return decorator

    @classmethod
    def register_demo(cls, name: str) -> Any:
        """Decorator: @AdapterRegistry.register_demo("openai")"""

        def decorator(provider_cls: type[BaseProvider]) -> type[BaseProvider]:
            cls._demo[name.lower()] = provider_cls
            return provider_cls

        return decorator

    @classmethod
    def get(cls, name: str) -> type[BaseProvider]:
        key = name.lower()
        if key not in cls._registry:
            available = ", ".join(sorted(cls._registry.keys())) or "(none)"
            raise KeyError(f"Unknown provider: {name!r}. Available: {available}")
        return cls._registry[key]

    @classmethod
    def list_all(cls) -> dict[str, type[BaseProvider]]:
        return dict(cls._registry)

    @classmethod
    def list_demo(cls) -> dict[str, type[BaseProvider]]:
        return dict(cls._demo)


def create_adapter(
    provider_cls: type[BaseProvider],
    *,
    api_key: str,
    api_url: str = "",
    settings: ProvidersConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BaseProvider:
    """Instantiate a vendor adapter with the shared keyword contract."""
    return provider_cls(  # type: ignore[call-arg]
        api_key=api_key,
        api_url=api_url,
        settings=settings,
        transport=transport,
    )
