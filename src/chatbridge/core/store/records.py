"""Records owned by the storage layer: credentials, model catalog, conversations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from chatbridge.providers.base import ChatMessage, ModelDescriptor, Role


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class CredentialRecord:
    """An admin-managed API key for one vendor."""

    id: str
    name: str
    value: str = field(repr=False)
    type: str = "api_key"
    provider: str = ""
    api_url: str = ""
    enabled: bool = True


@dataclass
class ChatModelRecord:
    """A catalog entry: a selectable model id mapped to a provider and wire name."""

    id: str
    name: str
    value: str  # wire model name sent to the vendor
    provider: str
    type: str = "chat"
    enabled: bool = True
    max_tokens: int = 0
    max_context: int = 0
    temperature: float = 0.7
    sort_num: int = 0

    def to_descriptor(self) -> ModelDescriptor:
        return ModelDescriptor(
            id=self.id,
            name=self.name,
            provider=self.provider,
            max_tokens=self.max_tokens,
            enabled=self.enabled,
        )


@dataclass
class Conversation:
    id: str
    user_id: str
    title: str = ""
    model: str = ""
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class StoredMessage:
    id: str
    conversation_id: str
    role: Role
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def from_message(cls, conversation_id: str, message: ChatMessage) -> StoredMessage:
        return cls(
            id=message.id,
            conversation_id=conversation_id,
            role=message.role,
            content=message.content,
            metadata=dict(message.metadata),
            created_at=message.created_at,
        )

    def to_message(self) -> ChatMessage:
        return ChatMessage(
            id=self.id,
            role=self.role,
            content=self.content,
            metadata=dict(self.metadata),
            created_at=self.created_at,
        )
