"""
ProviderRegistry — the live, hot-reloadable set of provider instances.

The registry holds one immutable snapshot (name → adapter) behind a single
reference.  ``reload()`` builds a complete replacement from the credential
source and publishes it with one assignment, so a reader sees either the
whole old set or the whole new set, never a mix.  Concurrent reloads are
serialized; readers never wait on a reload.

A request that already fetched an adapter keeps using it after a reload
drops it: adapters open their HTTP client per call, so in-flight streams
finish on the old instance.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import httpx
import structlog

from chatbridge.core.config import ProvidersConfig
from chatbridge.core.store.base import CredentialSource
from chatbridge.providers.base import BaseProvider
from chatbridge.providers.credentials import build_providers

logger = structlog.get_logger()


class ProviderRegistry:
    """Atomically swappable name → provider mapping."""

    def __init__(
        self,
        settings: ProvidersConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or ProvidersConfig()
        self._transport = transport
        self._providers: Mapping[str, BaseProvider] = MappingProxyType({})
        self._reload_lock = asyncio.Lock()
        self._generation = 0

    @classmethod
    def from_providers(cls, providers: Mapping[str, BaseProvider]) -> ProviderRegistry:
        """Registry pre-populated with ready-made adapters (tests, embedding)."""
        registry = cls()
        registry._providers = MappingProxyType(dict(providers))
        return registry

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get(self, name: str) -> BaseProvider | None:
        return self._providers.get(name.lower())

    def names(self) -> list[str]:
        return sorted(self._providers)

    def snapshot(self) -> Mapping[str, BaseProvider]:
        """The current provider set. Never mutated after publication."""
        return self._providers

    def has_real_providers(self) -> bool:
        return any(not p.is_demo for p in self._providers.values())

    @property
    def generation(self) -> int:
        """Number of completed reloads."""
        return self._generation

    def describe(self) -> list[dict[str, Any]]:
        return [
            {
                "name": name,
                "display_name": provider.display_name,
                "demo": provider.is_demo,
                "models": [m.id for m in provider.get_models()],
            }
            for name, provider in sorted(self._providers.items())
        ]

    # ------------------------------------------------------------------
    # Reload
    # ------------------------------------------------------------------

    async def reload(self, source: CredentialSource) -> Mapping[str, BaseProvider]:
        """Rebuild from *source* and publish the new set in one step."""
        async with self._reload_lock:
            records = await source.list_credentials()
            built = build_providers(records, self._settings, transport=self._transport)
            snapshot = MappingProxyType(built)
            self._providers = snapshot
            self._generation += 1
            logger.info(
                "provider_registry_reloaded",
                generation=self._generation,
                providers=sorted(snapshot),
                real=self.has_real_providers(),
            )
            return snapshot
