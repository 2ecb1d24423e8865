"""
StreamBridge — couple a provider stream to the caller and to persistence.

Data flow::

    open(dispatch, request, user_message)
      -> store.save_message(user_message)           # failure: PersistenceError
      -> upstream = await dispatch.stream_chat(request)
      -> forwarding task (the caller channel's producer):
           for each upstream response:
             accumulate content, send to caller channel (in order)
           upstream closed:
             finish caller channel
             store.save_message(assistant message)  # best effort, logged
             store.touch_conversation()             # best effort, logged
           cancelled (caller aclose / disconnect):
             close upstream (aborts the vendor call), persist nothing

Everything after the user message runs inside the one forwarding task, so
no background work outlives the stream and ``wait_persisted()`` reports
exactly what was written.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from chatbridge.core.config import ProvidersConfig
from chatbridge.core.exceptions import PersistenceError
from chatbridge.core.store.base import ConversationStore
from chatbridge.core.streaming import ResponseChannel
from chatbridge.providers.base import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    FinishReason,
)

if TYPE_CHECKING:
    from chatbridge.core.dispatch.service import ChatDispatchService

logger = structlog.get_logger()


@dataclass(frozen=True)
class PersistOutcome:
    """What the forwarding task wrote once the stream ended."""

    persisted: bool
    message: ChatMessage | None = None
    finish_reason: FinishReason = FinishReason.NONE
    cancelled: bool = False
    error: str = ""
    partial_content: str = ""


class BridgedStream:
    """Caller-facing handle of one bridged stream."""

    def __init__(
        self,
        user_message: ChatMessage,
        channel: ResponseChannel[ChatResponse],
        outcome: asyncio.Future[PersistOutcome],
    ) -> None:
        self.user_message = user_message
        self._channel = channel
        self._outcome = outcome

    def __aiter__(self) -> AsyncIterator[ChatResponse]:
        return self._channel.__aiter__()

    @property
    def closed(self) -> bool:
        return self._channel.closed

    async def aclose(self) -> None:
        """Abandon the stream; nothing further is persisted."""
        await self._channel.aclose()

    async def wait_persisted(self) -> PersistOutcome:
        return await asyncio.shield(self._outcome)

    async def __aenter__(self) -> BridgedStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class StreamBridge:
    """Opens bridged streams against one conversation store."""

    def __init__(self, store: ConversationStore, settings: ProvidersConfig | None = None) -> None:
        self._store = store
        self._settings = settings or ProvidersConfig()

    async def open(
        self,
        dispatch: ChatDispatchService,
        request: ChatRequest,
        user_message: ChatMessage,
    ) -> BridgedStream:
        conversation_id = request.conversation_id
        try:
            await self._store.save_message(conversation_id, user_message)
        except Exception as exc:
            logger.error(
                "user_message_persist_failed",
                conversation_id=conversation_id,
                error=str(exc),
            )
            raise PersistenceError(f"Failed to save user message: {exc}") from exc

        upstream = await dispatch.stream_chat(request)

        caller: ResponseChannel[ChatResponse] = ResponseChannel(
            self._settings.stream_buffer_size,
            grace_s=self._settings.cancel_grace_s,
            name=f"bridge-{conversation_id[:8]}",
        )
        outcome: asyncio.Future[PersistOutcome] = asyncio.get_running_loop().create_future()
        caller.start(self._forward(upstream, caller, request, outcome))
        logger.info("stream_bridge_opened", conversation_id=conversation_id)
        return BridgedStream(user_message, caller, outcome)

    async def _forward(
        self,
        upstream: ResponseChannel[ChatResponse],
        caller: ResponseChannel[ChatResponse],
        request: ChatRequest,
        outcome: asyncio.Future[PersistOutcome],
    ) -> None:
        conversation_id = request.conversation_id
        parts: list[str] = []
        terminal: ChatResponse | None = None
        try:
            try:
                async for response in upstream:
                    parts.append(response.content)
                    if response.is_terminal:
                        terminal = response
                    await caller.send(response)
            except asyncio.CancelledError:
                outcome.set_result(
                    PersistOutcome(persisted=False, cancelled=True, partial_content="".join(parts))
                )
                logger.info(
                    "stream_bridge_cancelled",
                    conversation_id=conversation_id,
                    chunks=len(parts),
                )
                raise
            finally:
                await upstream.aclose()

            await caller.finish()
            outcome.set_result(await self._persist_reply(conversation_id, "".join(parts), terminal))
        finally:
            if not outcome.done():
                outcome.set_result(PersistOutcome(persisted=False, partial_content="".join(parts)))

    async def _persist_reply(
        self,
        conversation_id: str,
        content: str,
        terminal: ChatResponse | None,
    ) -> PersistOutcome:
        finish = terminal.finish_reason if terminal is not None else FinishReason.NONE
        error = str(terminal.metadata.get("error", "")) if terminal is not None else ""

        metadata: dict[str, object] = {"finish_reason": str(finish)}
        if error:
            metadata["error"] = error
        if terminal is not None and terminal.usage is not None:
            metadata["usage"] = dataclasses.asdict(terminal.usage)

        message = ChatMessage.create("assistant", content, **metadata)
        persisted = True
        try:
            await self._store.save_message(conversation_id, message)
        except Exception as exc:
            persisted = False
            logger.error(
                "assistant_message_persist_failed",
                conversation_id=conversation_id,
                error=str(exc),
            )

        try:
            await self._store.touch_conversation(conversation_id)
        except Exception as exc:
            logger.warning(
                "conversation_touch_failed",
                conversation_id=conversation_id,
                error=str(exc),
            )

        logger.info(
            "stream_bridge_completed",
            conversation_id=conversation_id,
            finish_reason=str(finish),
            persisted=persisted,
            content_len=len(content),
        )
        return PersistOutcome(
            persisted=persisted,
            message=message if persisted else None,
            finish_reason=finish,
            error=error,
            partial_content=content,
        )

