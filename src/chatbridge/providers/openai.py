"""
OpenAI GPT provider — direct Chat Completions API via httpx.

Uses the OpenAI Chat Completions API (https://platform.openai.com/docs/api-reference/chat).
No SDK dependency — raw httpx calls.

Streaming:
  ``data: {...}`` lines carrying ``choices[0].delta``, ended by ``data: [DONE]``.
  Frames with neither content nor a finish reason (role preamble, keep-alives)
  are skipped.  The finish reason arrives on its own frame and becomes the
  terminal response; ``[DONE]`` alone does not synthesise one.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from chatbridge.core.constants import OPENAI_API_URL
from chatbridge.core.streaming import ResponseChannel
from chatbridge.providers.base import (
    AdapterRegistry,
    ChatRequest,
    ChatResponse,
    FinishReason,
    ModelDescriptor,
    TokenUsage,
)
from chatbridge.providers.http import HttpProvider, decode_event, iter_sse_data

logger = structlog.get_logger()

_MODELS = (
    ModelDescriptor(id="gpt-3.5-turbo", name="GPT-3.5 Turbo", provider="openai", max_tokens=4096),
    ModelDescriptor(id="gpt-4", name="GPT-4", provider="openai", max_tokens=8192),
    ModelDescriptor(
        id="gpt-4-turbo",
        name="GPT-4 Turbo",
        provider="openai",
        capabilities=("text", "chat", "vision"),
        max_tokens=128000,
    ),
)


def _finish_reason(raw: str | None) -> FinishReason:
    if not raw:
        return FinishReason.NONE
    if raw == "length":
        return FinishReason.LENGTH
    return FinishReason.STOP


def _usage(data: dict[str, Any]) -> TokenUsage | None:
    usage = data.get("usage")
    if not isinstance(usage, dict):
        return None
    return TokenUsage.of(
        int(usage.get("prompt_tokens", 0) or 0),
        int(usage.get("completion_tokens", 0) or 0),
    )


@AdapterRegistry.register("openai")
class OpenAIProvider(HttpProvider):
    """OpenAI GPT API provider."""

    provider_name = "openai"
    display_name = "GPT (OpenAI)"
    default_api_url = OPENAI_API_URL

    def get_models(self) -> list[ModelDescriptor]:
        return list(_MODELS)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _endpoint(self) -> str:
        return f"{self._api_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, request: ChatRequest, *, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
            "stream": stream,
        }
        if request.max_tokens:
            payload["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        return payload

    def _parse_response(self, data: dict[str, Any], request: ChatRequest) -> ChatResponse:
        choices = data.get("choices") or []
        if not choices:
            raise self._upstream_error("no choices in response")

        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""
        return ChatResponse.assistant(
            request.conversation_id,
            content,
            response_id=data.get("id", ""),
            usage=_usage(data),
            finish_reason=_finish_reason(choice.get("finish_reason")) or FinishReason.STOP,
            metadata={"model": data.get("model", request.model)},
        )

    async def _relay(
        self,
        resp: httpx.Response,
        request: ChatRequest,
        channel: ResponseChannel[ChatResponse],
    ) -> None:
        async for raw in iter_sse_data(resp):
            if raw == "[DONE]":
                return

            event = decode_event(raw)
            if event is None:
                continue

            choices = event.get("choices") or []
            if not choices:
                continue

            choice = choices[0]
            text = (choice.get("delta") or {}).get("content") or ""
            finish = _finish_reason(choice.get("finish_reason"))
            if not text and finish is FinishReason.NONE:
                continue

            await channel.send(
                ChatResponse.assistant(
                    request.conversation_id,
                    text,
                    response_id=event.get("id", ""),
                    usage=_usage(event) if finish is not FinishReason.NONE else None,
                    finish_reason=finish,
                )
            )
            if finish is not FinishReason.NONE:
                logger.debug(
                    "openai_stream_finished",
                    conversation_id=request.conversation_id,
                    finish_reason=str(finish),
                )
                return
