"""
HttpProvider — shared request lifecycle for httpx-based vendor adapters.

Subclasses describe the wire format only (endpoint, headers, payload,
response parsing, SSE event handling).  This module owns:

  - whole-call watchdogs: ``chat_timeout_s`` around the blocking call,
    ``stream_setup_timeout_s`` around connect + status check of a stream;
    there is no per-chunk timeout once a stream is flowing
  - one ``httpx.AsyncClient`` per call, closed by the call that opened it,
    so a registry reload can drop an adapter without closing live streams
  - the vendor I/O task that feeds a ResponseChannel, its error terminal,
    and closing the HTTP response when the task ends or is cancelled
"""

from __future__ import annotations

import asyncio
import json
from abc import abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog

from chatbridge.core.config import ProvidersConfig
from chatbridge.core.exceptions import UpstreamError
from chatbridge.core.streaming import ResponseChannel
from chatbridge.providers.base import (
    BaseProvider,
    ChatRequest,
    ChatResponse,
    FinishReason,
)

logger = structlog.get_logger()

_ERROR_BODY_LIMIT = 500

# Raised by wire-format parsing when a payload has the wrong shape
_MALFORMED = (KeyError, IndexError, TypeError, AttributeError, ValueError)


async def iter_sse_data(resp: httpx.Response) -> AsyncIterator[str]:
    """Yield the payload of every ``data:`` line of an SSE response."""
    async for line in resp.aiter_lines():
        if not line.startswith("data:"):
            continue
        yield line[5:].removeprefix(" ")


def decode_event(raw: str) -> dict[str, Any] | None:
    """Parse one SSE data payload; None for frames that are not JSON objects."""
    try:
        event = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return event if isinstance(event, dict) else None


class HttpProvider(BaseProvider):
    """Vendor adapter talking JSON over HTTPS with SSE streaming."""

    default_api_url: str = ""

    def __init__(
        self,
        api_key: str,
        api_url: str = "",
        settings: ProvidersConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = (api_url or self.default_api_url).rstrip("/")
        self._settings = settings or ProvidersConfig()
        self._transport = transport

    @property
    def api_url(self) -> str:
        return self._api_url

    # ------------------------------------------------------------------
    # Wire format, implemented per vendor
    # ------------------------------------------------------------------

    @abstractmethod
    def _endpoint(self) -> str: ...

    @abstractmethod
    def _headers(self) -> dict[str, str]: ...

    @abstractmethod
    def _build_payload(self, request: ChatRequest, *, stream: bool) -> dict[str, Any]: ...

    @abstractmethod
    def _parse_response(self, data: dict[str, Any], request: ChatRequest) -> ChatResponse: ...

    @abstractmethod
    async def _relay(
        self,
        resp: httpx.Response,
        request: ChatRequest,
        channel: ResponseChannel[ChatResponse],
    ) -> None:
        """Translate the vendor's SSE events into responses on *channel*."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        # Watchdogs are enforced with asyncio.timeout, not per-operation
        return httpx.AsyncClient(timeout=None, transport=self._transport)

    def _upstream_error(self, message: str, status_code: int | None = None) -> UpstreamError:
        return UpstreamError(
            f"{self.display_name} API error: {message}",
            provider=self.provider_name,
            status_code=status_code,
        )

    async def chat(self, request: ChatRequest) -> ChatResponse:
        payload = self._build_payload(request, stream=False)
        timeout_s = self._settings.chat_timeout_s
        try:
            async with asyncio.timeout(timeout_s), self._client() as client:
                resp = await client.post(self._endpoint(), json=payload, headers=self._headers())
                body = resp.text
        except TimeoutError as exc:
            raise self._upstream_error(f"request timed out after {timeout_s:g}s") from exc
        except httpx.HTTPError as exc:
            raise self._upstream_error(f"request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.warning(
                "provider_http_error", provider=self.provider_name, status=resp.status_code
            )
            raise self._upstream_error(body[:_ERROR_BODY_LIMIT], resp.status_code)

        try:
            data = json.loads(body)
        except json.JSONDecodeError as exc:
            raise self._upstream_error("response is not valid JSON") from exc
        if not isinstance(data, dict):
            raise self._upstream_error("response is not a JSON object")

        try:
            response = self._parse_response(data, request)
        except _MALFORMED as exc:
            raise self._upstream_error(f"malformed response: {exc!r}") from exc
        logger.debug(
            "provider_chat_completed",
            provider=self.provider_name,
            conversation_id=request.conversation_id,
            finish_reason=str(response.finish_reason),
        )
        return response

    async def chat_stream(self, request: ChatRequest) -> ResponseChannel[ChatResponse]:
        payload = self._build_payload(request, stream=True)
        headers = {**self._headers(), "Accept": "text/event-stream"}
        timeout_s = self._settings.stream_setup_timeout_s
        client = self._client()
        try:
            async with asyncio.timeout(timeout_s):
                http_request = client.build_request(
                    "POST", self._endpoint(), json=payload, headers=headers
                )
                resp = await client.send(http_request, stream=True)
                if resp.status_code != 200:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    await resp.aclose()
                    raise self._upstream_error(body[:_ERROR_BODY_LIMIT], resp.status_code)
        except TimeoutError as exc:
            await client.aclose()
            raise self._upstream_error(f"stream setup timed out after {timeout_s:g}s") from exc
        except httpx.HTTPError as exc:
            await client.aclose()
            raise self._upstream_error(f"stream setup failed: {exc}") from exc
        except BaseException:
            await client.aclose()
            raise

        channel: ResponseChannel[ChatResponse] = ResponseChannel(
            self._settings.stream_buffer_size,
            grace_s=self._settings.cancel_grace_s,
            name=f"{self.provider_name}-upstream",
        )
        channel.start(self._pump(resp, client, request, channel))
        logger.debug(
            "provider_stream_opened",
            provider=self.provider_name,
            conversation_id=request.conversation_id,
        )
        return channel

    async def _pump(
        self,
        resp: httpx.Response,
        client: httpx.AsyncClient,
        request: ChatRequest,
        channel: ResponseChannel[ChatResponse],
    ) -> None:
        try:
            try:
                await self._relay(resp, request, channel)
            except _MALFORMED as exc:
                raise self._upstream_error(f"malformed stream event: {exc!r}") from exc
        except (httpx.HTTPError, UpstreamError) as exc:
            logger.warning(
                "provider_stream_failed",
                provider=self.provider_name,
                conversation_id=request.conversation_id,
                error=str(exc),
            )
            await channel.send(
                ChatResponse.assistant(
                    request.conversation_id,
                    "",
                    finish_reason=FinishReason.ERROR,
                    metadata={"error": str(exc), "provider": self.provider_name},
                )
            )
        finally:
            await resp.aclose()
            await client.aclose()
