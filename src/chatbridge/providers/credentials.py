"""
Credential filtering — turn admin-managed credential records into adapters.

A credential is usable only if it is enabled, names a vendor with a
registered adapter, and does not look like a placeholder.  Unusable
records are skipped and logged, never raised.  When no usable record
remains, every registered demo adapter is installed instead, so the
system keeps answering (in demo mode) with an empty credential store.

Key values are never logged.
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx
import structlog

from chatbridge.core.config import ProvidersConfig
from chatbridge.core.store.records import CredentialRecord
from chatbridge.providers.base import AdapterRegistry, BaseProvider, create_adapter

logger = structlog.get_logger()

_PLACEHOLDER_KEYS = frozenset(
    {
        "sk-demo-key-placeholder",
        "sk-ant-REDACTED",
        "your-openai-api-key",
        "your-anthropic-api-key",
        "demo",
        "placeholder",
        "",
    }
)

_PLACEHOLDER_MARKERS = ("demo", "test", "placeholder", "your-")

_MIN_KEY_LENGTH = 10


def is_placeholder_key(value: str) -> bool:
    """True for sample, test or obviously truncated API keys."""
    if value in _PLACEHOLDER_KEYS:
        return True
    lowered = value.lower()
    if any(marker in lowered for marker in _PLACEHOLDER_MARKERS):
        return True
    return len(value) < _MIN_KEY_LENGTH


def build_providers(
    records: Iterable[CredentialRecord],
    settings: ProvidersConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, BaseProvider]:
    """
    Build the provider set for one registry snapshot.

    Later records win when two credentials name the same vendor.
    """
    adapters = AdapterRegistry.list_all()
    providers: dict[str, BaseProvider] = {}

    for record in records:
        vendor = record.provider.strip().lower()
        if not record.enabled:
            logger.debug("credential_skipped", credential_id=record.id, reason="disabled")
            continue
        if is_placeholder_key(record.value):
            logger.info(
                "credential_skipped",
                credential_id=record.id,
                provider=vendor,
                reason="placeholder",
            )
            continue
        adapter_cls = adapters.get(vendor)
        if adapter_cls is None:
            logger.warning(
                "credential_skipped",
                credential_id=record.id,
                provider=vendor,
                reason="unknown_provider",
            )
            continue

        providers[vendor] = create_adapter(
            adapter_cls,
            api_key=record.value,
            api_url=record.api_url,
            settings=settings,
            transport=transport,
        )
        logger.info("provider_configured", provider=vendor, credential_id=record.id)

    if not providers:
        for name, demo_cls in sorted(AdapterRegistry.list_demo().items()):
            providers[name] = demo_cls(settings=settings)  # type: ignore[call-arg]
        logger.warning("no_usable_credentials", demo_providers=sorted(providers))

    return providers
