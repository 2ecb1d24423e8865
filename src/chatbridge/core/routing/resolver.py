"""
ModelResolver — map a client model reference to (provider, wire model).

Clients refer to models by an opaque catalog id or by the vendor's wire
name; both resolve identically.  Resolution order:

  1. First enabled catalog entry whose id or wire value equals the reference.
     If that entry's provider has no registered adapter, resolution fails
     rather than silently routing to another vendor.
  2. No entry matched: a registered provider whose built-in model list
     contains the reference (the configured default first if it is among
     them, else the alphabetically first).
  3. Otherwise the configured default provider if registered, else the
     alphabetically first registered provider.

On fallback the reference is passed to the vendor unchanged.

Disabled catalog entries never match.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass

import structlog

from chatbridge.core.exceptions import ResolutionError
from chatbridge.core.store.records import ChatModelRecord
from chatbridge.providers.base import ModelDescriptor

logger = structlog.get_logger()


@dataclass(frozen=True)
class ResolvedModel:
    provider: str
    wire_model: str
    descriptor: ModelDescriptor | None = None

    @property
    def from_catalog(self) -> bool:
        return self.descriptor is not None


class ModelResolver:
    """Stateless resolver; the catalog and provider names are passed per call."""

    def __init__(self, default_provider: str = "") -> None:
        self._default_provider = default_provider.strip().lower()

    def resolve(
        self,
        reference: str,
        catalog: Iterable[ChatModelRecord],
        registered: Collection[str],
        advertised: Mapping[str, Collection[str]] | None = None,
    ) -> ResolvedModel:
        for entry in catalog:
            if not entry.enabled:
                continue
            if reference != entry.id and reference != entry.value:
                continue
            provider = entry.provider.lower()
            if provider not in registered:
                raise ResolutionError(
                    f"Model {reference!r} maps to provider {provider!r}, "
                    f"which has no configured credential"
                )
            logger.debug(
                "model_resolved",
                reference=reference,
                provider=provider,
                wire_model=entry.value,
            )
            return ResolvedModel(provider, entry.value, entry.to_descriptor())

        listing = [
            name
            for name, models in (advertised or {}).items()
            if name in registered and reference in models
        ]
        provider = self._fallback_provider(listing or registered)
        if provider is None:
            raise ResolutionError(f"No provider available for model {reference!r}")
        logger.info("model_resolved_by_fallback", reference=reference, provider=provider)
        return ResolvedModel(provider, reference)

    def _fallback_provider(self, candidates: Collection[str]) -> str | None:
        if self._default_provider and self._default_provider in candidates:
            return self._default_provider
        return min(candidates, default=None)
