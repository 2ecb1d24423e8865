"""
ChatService — conversation-level glue between a transport layer and dispatch.

Both entry points check, in order: a provider is configured, the
conversation exists, the caller owns it.  The request sent to the provider
is the stored history followed by the new user message, addressed to the
conversation's model.
"""

from __future__ import annotations

import structlog

from chatbridge.core.chat.bridge import BridgedStream, StreamBridge
from chatbridge.core.config import ProvidersConfig
from chatbridge.core.dispatch.service import ChatDispatchService
from chatbridge.core.exceptions import (
    AuthorizationError,
    ConversationNotFoundError,
    PersistenceError,
)
from chatbridge.core.store.base import ConversationStore
from chatbridge.core.store.records import Conversation
from chatbridge.providers.base import ChatMessage, ChatRequest

logger = structlog.get_logger()


class ChatService:
    """Send user messages into conversations and persist the replies."""

    def __init__(
        self,
        store: ConversationStore,
        dispatch: ChatDispatchService,
        settings: ProvidersConfig | None = None,
    ) -> None:
        self._store = store
        self._dispatch = dispatch
        self._bridge = StreamBridge(store, settings)

    async def send_message(
        self, conversation_id: str, user_id: str, content: str
    ) -> tuple[ChatMessage, ChatMessage]:
        """Blocking exchange. Returns (user message, assistant message)."""
        self._dispatch.ensure_configured()
        conv = await self._owned_conversation(conversation_id, user_id)
        user_message = ChatMessage.create("user", content)
        request = await self._build_request(conv, user_message, stream=False)

        try:
            await self._store.save_message(conv.id, user_message)
        except Exception as exc:
            raise PersistenceError(f"Failed to save user message: {exc}") from exc

        response = await self._dispatch.chat(request)
        assistant_message = ChatMessage.create(
            "assistant", response.content, finish_reason=str(response.finish_reason)
        )

        try:
            await self._store.save_message(conv.id, assistant_message)
        except Exception as exc:
            logger.error(
                "assistant_message_persist_failed",
                conversation_id=conv.id,
                error=str(exc),
            )
        try:
            await self._store.touch_conversation(conv.id)
        except Exception as exc:
            logger.warning("conversation_touch_failed", conversation_id=conv.id, error=str(exc))

        return user_message, assistant_message

    async def send_message_stream(
        self, conversation_id: str, user_id: str, content: str
    ) -> BridgedStream:
        """Streamed exchange. Persistence happens when the stream ends."""
        self._dispatch.ensure_configured()
        conv = await self._owned_conversation(conversation_id, user_id)
        user_message = ChatMessage.create("user", content)
        request = await self._build_request(conv, user_message, stream=True)
        return await self._bridge.open(self._dispatch, request, user_message)

    async def _owned_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        conv = await self._store.get_conversation(conversation_id)
        if conv is None:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        if conv.user_id != user_id:
            logger.warning(
                "conversation_access_denied",
                conversation_id=conversation_id,
                user_id=user_id,
            )
            raise AuthorizationError("Unauthorized access to conversation")
        return conv

    async def _build_request(
        self, conv: Conversation, user_message: ChatMessage, *, stream: bool
    ) -> ChatRequest:
        history = [m.to_message() for m in await self._store.list_messages(conv.id)]
        return ChatRequest(
            conversation_id=conv.id,
            messages=[*history, user_message],
            model=conv.model,
            stream=stream,
        )
