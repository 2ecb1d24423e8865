"""
Storage protocols consumed by the chat core.

The core never owns a database connection; it only needs three
capabilities from its collaborators:

  CredentialSource    list admin-managed credential records
  ModelCatalog        list model catalog entries
  ConversationStore   look up conversations, read history, append messages

Any object with matching async methods satisfies a protocol.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from chatbridge.core.store.records import (
    ChatModelRecord,
    Conversation,
    CredentialRecord,
    StoredMessage,
)
from chatbridge.providers.base import ChatMessage


@runtime_checkable
class CredentialSource(Protocol):
    async def list_credentials(self) -> list[CredentialRecord]: ...


@runtime_checkable
class ModelCatalog(Protocol):
    async def list_models(self) -> list[ChatModelRecord]: ...


@runtime_checkable
class ConversationStore(Protocol):
    async def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def list_messages(self, conversation_id: str) -> list[StoredMessage]: ...

    async def save_message(self, conversation_id: str, message: ChatMessage) -> StoredMessage: ...

    async def touch_conversation(self, conversation_id: str) -> None: ...
