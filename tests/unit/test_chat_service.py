"""Unit tests for ChatService — ownership, history, persistence order."""

from __future__ import annotations

import pytest

from chatbridge.core.chat.service import ChatService
from chatbridge.core.config import ChatConfig, ProvidersConfig
from chatbridge.core.dispatch.service import ChatDispatchService
from chatbridge.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    ConversationNotFoundError,
    PersistenceError,
    UpstreamError,
)
from chatbridge.core.store.memory import MemoryStore
from chatbridge.core.store.records import ChatModelRecord
from chatbridge.core.streaming import ResponseChannel
from chatbridge.providers.base import (
    BaseProvider,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    FinishReason,
    ModelDescriptor,
)
from chatbridge.providers.mock import MockOpenAIProvider
from chatbridge.providers.registry import ProviderRegistry


class EchoProvider(BaseProvider):
    provider_name = "openai"
    display_name = "Echo"

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.requests: list[ChatRequest] = []

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        if self.fail:
            raise UpstreamError("GPT (OpenAI) API error: 500", provider="openai", status_code=500)
        return ChatResponse.assistant(
            request.conversation_id,
            f"echo: {request.messages[-1].content}",
            finish_reason=FinishReason.LENGTH,
        )

    async def chat_stream(self, request: ChatRequest) -> ResponseChannel[ChatResponse]:
        self.requests.append(request)
        channel: ResponseChannel[ChatResponse] = ResponseChannel()

        async def produce() -> None:
            for word in ("echo", ": ", request.messages[-1].content):
                await channel.send(ChatResponse.assistant(request.conversation_id, word))
            await channel.send(
                ChatResponse.assistant(request.conversation_id, "", finish_reason=FinishReason.STOP)
            )

        channel.start(produce())
        return channel

    def get_models(self) -> list[ModelDescriptor]:
        return []


class NoAssistantStore(MemoryStore):
    async def save_message(self, conversation_id: str, message: ChatMessage):
        if message.role == "assistant":
            raise OSError("read-only database")
        return await super().save_message(conversation_id, message)


CATALOG = [ChatModelRecord(id="m-fast", name="Fast", value="gpt-4o-mini", provider="openai")]


def _service(
    provider: BaseProvider,
    store: MemoryStore | None = None,
    chat: ChatConfig | None = None,
    settings: ProvidersConfig | None = None,
) -> tuple[ChatService, MemoryStore]:
    store = store if store is not None else MemoryStore(models=CATALOG)
    store.models = CATALOG
    dispatch = ChatDispatchService(
        ProviderRegistry.from_providers({"openai": provider}), store, store, chat
    )
    return ChatService(store, dispatch, settings), store


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_exchange_persisted_in_order(self) -> None:
        provider = EchoProvider()
        service, store = _service(provider)
        conv = store.create_conversation("alice", model="m-fast")

        user, assistant = await service.send_message(conv.id, "alice", "ping")

        assert user.role == "user" and user.content == "ping"
        assert assistant.content == "echo: ping"
        assert assistant.metadata["finish_reason"] == "length"
        assert [(m.role, m.content) for m in store.messages[conv.id]] == [
            ("user", "ping"),
            ("assistant", "echo: ping"),
        ]
        assert provider.requests[0].model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_history_sent_before_new_message(self) -> None:
        provider = EchoProvider()
        service, store = _service(provider)
        conv = store.create_conversation("alice", model="m-fast")

        await service.send_message(conv.id, "alice", "first")
        await service.send_message(conv.id, "alice", "second")

        sent = provider.requests[1].messages
        assert [m.content for m in sent] == ["first", "echo: first", "second"]

    @pytest.mark.asyncio
    async def test_touches_conversation(self) -> None:
        service, store = _service(EchoProvider())
        conv = store.create_conversation("alice", model="m-fast")
        before = conv.updated_at
        await service.send_message(conv.id, "alice", "ping")
        assert store.conversations[conv.id].updated_at >= before

    @pytest.mark.asyncio
    async def test_unknown_conversation(self) -> None:
        service, _ = _service(EchoProvider())
        with pytest.raises(ConversationNotFoundError):
            await service.send_message("missing", "alice", "ping")

    @pytest.mark.asyncio
    async def test_foreign_conversation_rejected(self) -> None:
        provider = EchoProvider()
        service, store = _service(provider)
        conv = store.create_conversation("alice", model="m-fast")

        with pytest.raises(AuthorizationError):
            await service.send_message(conv.id, "mallory", "ping")
        assert store.messages[conv.id] == []
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_not_configured_checked_first(self) -> None:
        service, _ = _service(MockOpenAIProvider())
        with pytest.raises(ConfigurationError):
            await service.send_message("missing", "alice", "ping")

    @pytest.mark.asyncio
    async def test_upstream_failure_keeps_user_message(self) -> None:
        service, store = _service(EchoProvider(fail=True))
        conv = store.create_conversation("alice", model="m-fast")
        with pytest.raises(UpstreamError):
            await service.send_message(conv.id, "alice", "ping")
        assert [m.role for m in store.messages[conv.id]] == ["user"]

    @pytest.mark.asyncio
    async def test_assistant_save_failure_still_returns_reply(self) -> None:
        store = NoAssistantStore()
        service, _ = _service(EchoProvider(), store)
        conv = store.create_conversation("alice", model="m-fast")

        _, assistant = await service.send_message(conv.id, "alice", "ping")
        assert assistant.content == "echo: ping"
        assert [m.role for m in store.messages[conv.id]] == ["user"]

    @pytest.mark.asyncio
    async def test_user_save_failure_raises(self) -> None:
        class BrokenStore(MemoryStore):
            async def save_message(self, conversation_id: str, message: ChatMessage):
                raise OSError("locked")

        provider = EchoProvider()
        store = BrokenStore()
        service, _ = _service(provider, store)
        conv = store.create_conversation("alice", model="m-fast")
        with pytest.raises(PersistenceError):
            await service.send_message(conv.id, "alice", "ping")
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_demo_mode_end_to_end(self, settings: ProvidersConfig) -> None:
        service, store = _service(
            MockOpenAIProvider(settings), chat=ChatConfig(allow_demo_mode=True)
        )
        conv = store.create_conversation("alice", model="gpt-4")
        _, assistant = await service.send_message(conv.id, "alice", "hello")
        assert "Nice to meet you" in assistant.content


class TestSendMessageStream:
    @pytest.mark.asyncio
    async def test_stream_persists_concatenation(self, settings: ProvidersConfig) -> None:
        provider = EchoProvider()
        service, store = _service(provider, settings=settings)
        conv = store.create_conversation("alice", model="m-fast")

        stream = await service.send_message_stream(conv.id, "alice", "pong")
        content = "".join([c.content async for c in stream])
        outcome = await stream.wait_persisted()

        assert content == "echo: pong"
        assert stream.user_message.content == "pong"
        assert outcome.persisted
        assert [(m.role, m.content) for m in store.messages[conv.id]] == [
            ("user", "pong"),
            ("assistant", "echo: pong"),
        ]
        assert provider.requests[0].stream is True

    @pytest.mark.asyncio
    async def test_stream_ownership_checked(self, settings: ProvidersConfig) -> None:
        service, store = _service(EchoProvider(), settings=settings)
        conv = store.create_conversation("alice", model="m-fast")
        with pytest.raises(AuthorizationError):
            await service.send_message_stream(conv.id, "bob", "pong")
