"""Credential source backed by environment variables."""

from __future__ import annotations

import os

import structlog

from chatbridge.core.store.base import CredentialSource
from chatbridge.core.store.records import CredentialRecord

logger = structlog.get_logger()

# provider → variables checked in order, first non-empty wins
ENV_KEYS: dict[str, tuple[str, ...]] = {
    "openai": ("CHATBRIDGE_OPENAI_API_KEY", "OPENAI_API_KEY"),
    "anthropic": ("CHATBRIDGE_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
}


class EnvCredentialSource:
    """Expose vendor API keys found in the environment as credential records."""

    def __init__(self, environ: dict[str, str] | None = None) -> None:
        self._environ = environ

    async def list_credentials(self) -> list[CredentialRecord]:
        env = self._environ if self._environ is not None else os.environ
        records: list[CredentialRecord] = []
        for provider, names in ENV_KEYS.items():
            for name in names:
                value = env.get(name, "")
                if value:
                    records.append(
                        CredentialRecord(
                            id=f"env:{name}", name=name, value=value, provider=provider
                        )
                    )
                    break
        return records


class FallbackCredentialSource:
    """Use *primary*'s records; fall back to *fallback* when it has none."""

    def __init__(self, primary: CredentialSource, fallback: CredentialSource) -> None:
        self._primary = primary
        self._fallback = fallback

    async def list_credentials(self) -> list[CredentialRecord]:
        records = await self._primary.list_credentials()
        if records:
            return records
        logger.info("credentials_from_fallback_source")
        return await self._fallback.list_credentials()
