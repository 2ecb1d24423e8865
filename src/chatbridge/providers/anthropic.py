"""
Anthropic Claude provider — direct Messages API via httpx.

Uses the Anthropic Messages API (https://docs.anthropic.com/en/docs/api-reference).
No SDK dependency — raw httpx calls.

The Messages API has no system role inside ``messages``; system messages
are joined into the top-level ``system`` field.  ``max_tokens`` is required
by the API and defaults to ``providers.anthropic_max_tokens``.

Streaming event types handled:
  message_start        usage.input_tokens
  content_block_delta  text_delta → one content response
  message_delta        stop_reason, usage.output_tokens
  message_stop         terminal response, stream ends
  error                error terminal, stream ends
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from chatbridge.core.constants import ANTHROPIC_API_URL
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

_CAPS = ("text", "chat", "vision")

_MODELS = (
    ModelDescriptor(
        id="claude-3-sonnet-20240229",
        name="Claude 3 Sonnet",
        provider="anthropic",
        capabilities=_CAPS,
        max_tokens=200000,
    ),
    ModelDescriptor(
        id="claude-3-opus-20240229",
        name="Claude 3 Opus",
        provider="anthropic",
        capabilities=_CAPS,
        max_tokens=200000,
    ),
    ModelDescriptor(
        id="claude-3-haiku-20240307",
        name="Claude 3 Haiku",
        provider="anthropic",
        capabilities=_CAPS,
        max_tokens=200000,
    ),
)


def _finish_reason(stop_reason: str | None) -> FinishReason:
    if stop_reason == "max_tokens":
        return FinishReason.LENGTH
    return FinishReason.STOP


@AdapterRegistry.register("anthropic")
class AnthropicProvider(HttpProvider):
    """Anthropic Claude API provider."""

    provider_name = "anthropic"
    display_name = "Claude (Anthropic)"
    default_api_url = ANTHROPIC_API_URL

    def get_models(self) -> list[ModelDescriptor]:
        return list(_MODELS)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _endpoint(self) -> str:
        return f"{self._api_url}/messages"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key,
            "anthropic-version": self._settings.anthropic_version,
            "content-type": "application/json",
        }

    def _build_payload(self, request: ChatRequest, *, stream: bool) -> dict[str, Any]:
        system_parts: list[str] = []
        messages: list[dict[str, Any]] = []
        for msg in request.messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            else:
                messages.append({"role": msg.role, "content": msg.content})

        payload: dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens or self._settings.anthropic_max_tokens,
            "messages": messages,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if stream:
            payload["stream"] = True
        return payload

    def _parse_response(self, data: dict[str, Any], request: ChatRequest) -> ChatResponse:
        blocks = data.get("content") or []
        text_parts = [
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        if not text_parts:
            raise self._upstream_error("no content in response")

        usage = data.get("usage") or {}
        return ChatResponse.assistant(
            request.conversation_id,
            "".join(text_parts),
            response_id=data.get("id", ""),
            usage=TokenUsage.of(
                int(usage.get("input_tokens", 0) or 0),
                int(usage.get("output_tokens", 0) or 0),
            ),
            finish_reason=_finish_reason(data.get("stop_reason")),
            metadata={"model": data.get("model", request.model)},
        )

    async def _relay(
        self,
        resp: httpx.Response,
        request: ChatRequest,
        channel: ResponseChannel[ChatResponse],
    ) -> None:
        message_id = ""
        input_tokens = 0
        output_tokens = 0
        stop_reason: str | None = None

        async for raw in iter_sse_data(resp):
            event = decode_event(raw)
            if event is None:
                continue

            event_type = event.get("type", "")

            if event_type == "message_start":
                message = event.get("message") or {}
                message_id = message.get("id", "")
                usage = message.get("usage") or {}
                input_tokens = int(usage.get("input_tokens", 0) or 0)
                output_tokens = int(usage.get("output_tokens", 0) or 0)

            elif event_type == "content_block_delta":
                delta = event.get("delta") or {}
                if delta.get("type") != "text_delta":
                    continue
                text = delta.get("text", "")
                if text:
                    await channel.send(
                        ChatResponse.assistant(
                            request.conversation_id, text, response_id=message_id
                        )
                    )

            elif event_type == "message_delta":
                delta = event.get("delta") or {}
                stop_reason = delta.get("stop_reason") or stop_reason
                usage = event.get("usage") or {}
                if "output_tokens" in usage:
                    output_tokens = int(usage["output_tokens"] or 0)

            elif event_type == "message_stop":
                await channel.send(
                    ChatResponse.assistant(
                        request.conversation_id,
                        "",
                        response_id=message_id,
                        usage=TokenUsage.of(input_tokens, output_tokens),
                        finish_reason=_finish_reason(stop_reason),
                    )
                )
                logger.debug(
                    "anthropic_stream_finished",
                    conversation_id=request.conversation_id,
                    stop_reason=stop_reason,
                )
                return

            elif event_type == "error":
                error = event.get("error") or {}
                raise self._upstream_error(error.get("message") or "stream error event")
