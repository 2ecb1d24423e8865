"""Unit tests for the offline demo providers."""

from __future__ import annotations

import pytest

from chatbridge.core.config import ProvidersConfig
from chatbridge.providers.base import AdapterRegistry, ChatMessage, ChatRequest, FinishReason
from chatbridge.providers.mock import MockAnthropicProvider, MockOpenAIProvider, _MockProvider


def _request(text: str | None) -> ChatRequest:
    messages = [ChatMessage.create("user", text)] if text is not None else []
    return ChatRequest(conversation_id="conv-m", messages=messages, model="gpt-4")


PROVIDERS = [MockOpenAIProvider, MockAnthropicProvider]


class TestRegistration:
    def test_demo_adapters_registered(self) -> None:
        demo = AdapterRegistry.list_demo()
        assert demo["openai"] is MockOpenAIProvider
        assert demo["anthropic"] is MockAnthropicProvider

    @pytest.mark.parametrize("cls", PROVIDERS)
    def test_is_demo(self, cls: type) -> None:
        provider = cls()
        assert provider.is_demo
        assert all(m.provider == provider.provider_name for m in provider.get_models())


class TestCannedReplies:
    @pytest.mark.parametrize(
        ("text", "fragment"),
        [
            ("Hello there", "Nice to meet you"),
            ("how are you?", "doing well"),
            ("What is this?", "great question"),
            ("please help", "happy to help"),
            ("tell me a joke", 'I understand you said: "tell me a joke"'),
        ],
    )
    def test_openai_reply_keyed_on_last_message(self, text: str, fragment: str) -> None:
        assert fragment in MockOpenAIProvider().reply_for(_request(text).messages)

    def test_default_reply_mentions_setup(self) -> None:
        reply = MockAnthropicProvider().reply_for(_request("xyz").messages)
        assert "configure real API keys" in reply

    def test_empty_history(self) -> None:
        assert "Claude" in MockAnthropicProvider().reply_for([])


class TestChat:
    @pytest.mark.asyncio
    async def test_fixed_usage(self, settings: ProvidersConfig) -> None:
        openai = await MockOpenAIProvider(settings).chat(_request("hi"))
        anthropic = await MockAnthropicProvider(settings).chat(_request("hi"))

        assert openai.usage is not None and openai.usage.total_tokens == 150
        assert anthropic.usage is not None and anthropic.usage.total_tokens == 180
        assert openai.finish_reason is FinishReason.STOP
        assert openai.metadata == {"demo": True}
        assert openai.conversation_id == "conv-m"


class TestChatStream:
    @pytest.mark.parametrize("cls", PROVIDERS)
    @pytest.mark.parametrize("text", ["hello", "how are you", "something else", None])
    @pytest.mark.asyncio
    async def test_stream_concatenates_to_chat_reply(
        self, cls: type, text: str | None, settings: ProvidersConfig
    ) -> None:
        provider = cls(settings)
        request = _request(text)
        whole = await provider.chat(request)
        chunks = [c async for c in await provider.chat_stream(request)]

        assert "".join(c.content for c in chunks) == whole.content
        assert [c for c in chunks if c.is_terminal] == [chunks[-1]]
        assert chunks[-1].finish_reason is FinishReason.STOP

    @pytest.mark.asyncio
    async def test_word_by_word_with_usage_on_last(self, settings: ProvidersConfig) -> None:
        provider = MockOpenAIProvider(settings)
        request = _request("hello")
        words = provider.reply_for(request.messages).split(" ")
        chunks = [c async for c in await provider.chat_stream(request)]

        assert len(chunks) == len(words)
        assert all(c.content.endswith(" ") for c in chunks[:-1])
        assert chunks[-1].content == words[-1]
        assert all(c.usage is None for c in chunks[:-1])
        assert chunks[-1].usage is not None
        assert chunks[-1].usage.completion_tokens == len(words)

    @pytest.mark.asyncio
    async def test_cancel_mid_stream(self) -> None:
        provider = MockOpenAIProvider(ProvidersConfig(mock_token_delay_s=5.0, cancel_grace_s=1.0))
        channel = await provider.chat_stream(_request("hello"))
        async for first in channel:
            assert not first.is_terminal
            break
        await channel.aclose()

        assert channel.closed
        assert channel.task is not None and channel.task.done()


class TestMockBase:
    def test_reply_for_is_abstract(self) -> None:
        with pytest.raises(TypeError, match="reply_for"):
            _MockProvider()  # type: ignore[abstract]
