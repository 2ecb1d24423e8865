"""
ChatDispatchService — the single entry point for chat completions.

Data flow::

    ChatRequest(model=<catalog id | wire name>)
      -> configuration check (real provider registered, or demo mode allowed)
      -> ModelResolver.resolve(model, catalog, registered names, built-in model ids)
      -> provider = registry.get(resolved.provider)
      -> provider.chat(request with wire model)         # blocking
         provider.chat_stream(request with wire model)  # ResponseChannel

The registry snapshot is read once per request, so a concurrent reload
never changes the provider a request is already using.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

import structlog

from chatbridge.core.config import ChatConfig
from chatbridge.core.exceptions import ConfigurationError, ResolutionError
from chatbridge.core.routing.resolver import ModelResolver, ResolvedModel
from chatbridge.core.store.base import CredentialSource, ModelCatalog
from chatbridge.core.streaming import ResponseChannel
from chatbridge.providers.base import (
    BaseProvider,
    ChatRequest,
    ChatResponse,
    ModelDescriptor,
)
from chatbridge.providers.registry import ProviderRegistry

logger = structlog.get_logger()


class ChatDispatchService:
    """Resolves each request to a provider and hands it over."""

    def __init__(
        self,
        registry: ProviderRegistry,
        catalog: ModelCatalog,
        credentials: CredentialSource,
        settings: ChatConfig | None = None,
    ) -> None:
        self._registry = registry
        self._catalog = catalog
        self._credentials = credentials
        self._settings = settings or ChatConfig()
        self._resolver = ModelResolver(self._settings.default_provider)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    async def chat(self, request: ChatRequest) -> ChatResponse:
        provider, wire_request = await self._route(request)
        return await provider.chat(wire_request)

    async def stream_chat(self, request: ChatRequest) -> ResponseChannel[ChatResponse]:
        """Set up a stream; setup failures raise, later failures end the stream."""
        provider, wire_request = await self._route(dataclasses.replace(request, stream=True))
        return await provider.chat_stream(wire_request)

    async def get_models(self) -> list[ModelDescriptor]:
        """Enabled chat models from the catalog, in catalog order."""
        return [
            entry.to_descriptor()
            for entry in await self._catalog.list_models()
            if entry.enabled and entry.type == "chat"
        ]

    def list_providers(self) -> list[dict[str, Any]]:
        return self._registry.describe()

    async def reload(self) -> list[str]:
        """Rebuild the provider registry from the credential source."""
        snapshot = await self._registry.reload(self._credentials)
        return sorted(snapshot)

    async def resolve(self, model: str) -> ResolvedModel:
        return await self._resolve(model, self._registry.snapshot())

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when requests cannot be served."""
        self._check_configured(self._registry.snapshot())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_configured(self, snapshot: Mapping[str, BaseProvider]) -> None:
        if any(not p.is_demo for p in snapshot.values()):
            return
        if self._settings.allow_demo_mode and snapshot:
            return
        raise ConfigurationError(
            "No LLM provider is configured. Add an API key for OpenAI or "
            "Anthropic, or enable chat.allow_demo_mode."
        )

    async def _resolve(self, model: str, snapshot: Mapping[str, BaseProvider]) -> ResolvedModel:
        advertised = {name: {m.id for m in p.get_models()} for name, p in snapshot.items()}
        return self._resolver.resolve(
            model, await self._catalog.list_models(), sorted(snapshot), advertised
        )

    async def _route(self, request: ChatRequest) -> tuple[BaseProvider, ChatRequest]:
        snapshot = self._registry.snapshot()
        self._check_configured(snapshot)

        resolved = await self._resolve(request.model, snapshot)
        provider = snapshot.get(resolved.provider)
        if provider is None:
            raise ResolutionError(f"Provider {resolved.provider!r} is not registered")

        logger.info(
            "chat_dispatched",
            conversation_id=request.conversation_id,
            provider=resolved.provider,
            model=resolved.wire_model,
            stream=request.stream,
            demo=provider.is_demo,
        )
        return provider, dataclasses.replace(request, model=resolved.wire_model)
