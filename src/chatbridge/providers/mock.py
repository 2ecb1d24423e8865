"""
Mock providers — offline stand-ins installed when no usable credential exists.

Replies are canned and chosen from the last message, so demos and tests are
deterministic.  Streaming yields the reply one word at a time with a small
delay to simulate tokens; words keep their separating space except the last,
so the concatenated stream equals the non-streaming reply exactly.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod

import structlog

from chatbridge.core.config import ProvidersConfig
from chatbridge.core.streaming import ResponseChannel
from chatbridge.providers.base import (
    AdapterRegistry,
    BaseProvider,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    FinishReason,
    ModelDescriptor,
    TokenUsage,
)

logger = structlog.get_logger()

_SETUP_NOTICE = "(Demo Mode - Please configure real API keys)"


class _MockProvider(BaseProvider):
    is_demo = True

    #: Fixed usage reported by ``chat()``
    prompt_tokens = 100
    completion_tokens = 50

    #: Streaming delay relative to ``providers.mock_token_delay_s``
    delay_scale = 1.0

    def __init__(self, settings: ProvidersConfig | None = None) -> None:
        self._settings = settings or ProvidersConfig()

    @abstractmethod
    def reply_for(self, messages: list[ChatMessage]) -> str:
        """Canned reply for the conversation so far."""

    async def chat(self, request: ChatRequest) -> ChatResponse:
        return ChatResponse.assistant(
            request.conversation_id,
            self.reply_for(request.messages),
            usage=TokenUsage.of(self.prompt_tokens, self.completion_tokens),
            finish_reason=FinishReason.STOP,
            metadata={"demo": True},
        )

    async def chat_stream(self, request: ChatRequest) -> ResponseChannel[ChatResponse]:
        channel: ResponseChannel[ChatResponse] = ResponseChannel(
            self._settings.stream_buffer_size,
            grace_s=self._settings.cancel_grace_s,
            name=f"{self.provider_name}-demo",
        )
        channel.start(self._emit_words(request, channel))
        return channel

    async def _emit_words(
        self, request: ChatRequest, channel: ResponseChannel[ChatResponse]
    ) -> None:
        words = self.reply_for(request.messages).split(" ")
        delay = self._settings.mock_token_delay_s * self.delay_scale
        last_idx = len(words) - 1
        for i, word in enumerate(words):
            last = i == last_idx
            await channel.send(
                ChatResponse.assistant(
                    request.conversation_id,
                    word if last else word + " ",
                    usage=TokenUsage.of(self.prompt_tokens, len(words)) if last else None,
                    finish_reason=FinishReason.STOP if last else FinishReason.NONE,
                    metadata={"demo": True},
                )
            )
            if not last and delay > 0:
                await asyncio.sleep(delay)


@AdapterRegistry.register_demo("openai")
class MockOpenAIProvider(_MockProvider):
    """Offline stand-in for the OpenAI provider."""

    provider_name = "openai"
    display_name = "GPT (OpenAI, demo)"

    def get_models(self) -> list[ModelDescriptor]:
        return [
            ModelDescriptor(
                id="gpt-3.5-turbo", name="GPT-3.5 Turbo (Demo)", provider="openai", max_tokens=4096
            ),
            ModelDescriptor(id="gpt-4", name="GPT-4 (Demo)", provider="openai", max_tokens=8192),
        ]

    def reply_for(self, messages: list[ChatMessage]) -> str:
        if not messages:
            return f"Hello! How can I help you today? {_SETUP_NOTICE}"

        last = messages[-1].content
        lowered = last.lower()
        if "hello" in lowered:
            return "Hello! Nice to meet you. How can I assist you today? (Demo Mode)"
        if "how are you" in lowered:
            return (
                "I'm doing well, thank you for asking! I'm here to help you with any "
                "questions or tasks you might have. (Demo Mode)"
            )
        if "what" in lowered:
            return (
                "That's a great question! Let me think about that and provide you "
                "with a helpful response. (Demo Mode)"
            )
        if "help" in lowered:
            return (
                "I'd be happy to help! Could you please provide more details about "
                "what you need assistance with? (Demo Mode)"
            )
        return (
            f'I understand you said: "{last}". That\'s interesting! '
            f"Let me help you with that. {_SETUP_NOTICE}"
        )


@AdapterRegistry.register_demo("anthropic")
class MockAnthropicProvider(_MockProvider):
    """Offline stand-in for the Anthropic provider."""

    provider_name = "anthropic"
    display_name = "Claude (Anthropic, demo)"
    prompt_tokens = 120
    completion_tokens = 60
    delay_scale = 1.2

    def get_models(self) -> list[ModelDescriptor]:
        caps = ("text", "chat", "vision")
        return [
            ModelDescriptor(
                id="claude-3-sonnet-20240229",
                name="Claude 3 Sonnet (Demo)",
                provider="anthropic",
                capabilities=caps,
                max_tokens=200000,
            ),
            ModelDescriptor(
                id="claude-3-haiku-20240307",
                name="Claude 3 Haiku (Demo)",
                provider="anthropic",
                capabilities=caps,
                max_tokens=200000,
            ),
        ]

    def reply_for(self, messages: list[ChatMessage]) -> str:
        if not messages:
            return f"Hello! I'm Claude, an AI assistant. How can I help you today? {_SETUP_NOTICE}"

        last = messages[-1].content
        lowered = last.lower()
        if "hello" in lowered:
            return (
                "Hello! I'm Claude. It's nice to meet you. What would you like to "
                "explore or discuss today? (Demo Mode)"
            )
        if "how are you" in lowered:
            return (
                "I'm doing well, thank you! I'm here and ready to help with whatever "
                "you need. How are you doing? (Demo Mode)"
            )
        if "what" in lowered:
            return (
                "That's a thoughtful question. Let me provide you with a comprehensive "
                "and helpful response. (Demo Mode)"
            )
        if "help" in lowered:
            return (
                "I'd be delighted to help! Please let me know what specific topic or "
                "task you'd like assistance with. (Demo Mode)"
            )
        return (
            f'I see you mentioned: "{last}". That\'s quite interesting! '
            f"Let me share some thoughts on that. {_SETUP_NOTICE}"
        )
