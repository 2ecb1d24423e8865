"""In-process store implementing every storage protocol. Used by tests and demos."""

from __future__ import annotations

from datetime import UTC, datetime

from chatbridge.core.store.records import (
    ChatModelRecord,
    Conversation,
    CredentialRecord,
    StoredMessage,
)
from chatbridge.providers.base import ChatMessage, new_id


class MemoryStore:
    """Credentials, catalog and conversations held in plain dicts."""

    def __init__(
        self,
        credentials: list[CredentialRecord] | None = None,
        models: list[ChatModelRecord] | None = None,
    ) -> None:
        self.credentials: list[CredentialRecord] = list(credentials or [])
        self.models: list[ChatModelRecord] = list(models or [])
        self.conversations: dict[str, Conversation] = {}
        self.messages: dict[str, list[StoredMessage]] = {}

    # -- CredentialSource / ModelCatalog ---------------------------------

    async def list_credentials(self) -> list[CredentialRecord]:
        return list(self.credentials)

    async def list_models(self) -> list[ChatModelRecord]:
        return sorted(self.models, key=lambda m: m.sort_num)

    # -- ConversationStore -----------------------------------------------

    def create_conversation(self, user_id: str, model: str = "", title: str = "") -> Conversation:
        conv = Conversation(id=new_id(), user_id=user_id, title=title, model=model)
        self.conversations[conv.id] = conv
        self.messages[conv.id] = []
        return conv

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self.conversations.get(conversation_id)

    async def list_messages(self, conversation_id: str) -> list[StoredMessage]:
        return list(self.messages.get(conversation_id, []))

    async def save_message(self, conversation_id: str, message: ChatMessage) -> StoredMessage:
        stored = StoredMessage.from_message(conversation_id, message)
        self.messages.setdefault(conversation_id, []).append(stored)
        return stored

    async def touch_conversation(self, conversation_id: str) -> None:
        conv = self.conversations.get(conversation_id)
        if conv is not None:
            conv.updated_at = datetime.now(UTC)
