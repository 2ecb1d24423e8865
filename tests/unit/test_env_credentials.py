"""Unit tests for the environment and fallback credential sources."""

from __future__ import annotations

import pytest

from chatbridge.core.store.env import EnvCredentialSource, FallbackCredentialSource
from chatbridge.core.store.memory import MemoryStore
from chatbridge.core.store.records import CredentialRecord


class TestEnvCredentialSource:
    @pytest.mark.asyncio
    async def test_reads_both_vendors(self) -> None:
        source = EnvCredentialSource(
            {"OPENAI_API_KEY": "sk-proj-one", "ANTHROPIC_API_KEY": "sk-ant-two"}
        )
        records = await source.list_credentials()
        assert {(r.provider, r.value) for r in records} == {
            ("openai", "sk-proj-one"),
            ("anthropic", "sk-ant-two"),
        }
        assert all(r.enabled for r in records)

    @pytest.mark.asyncio
    async def test_prefixed_variable_wins(self) -> None:
        source = EnvCredentialSource(
            {"CHATBRIDGE_OPENAI_API_KEY": "sk-proj-mine", "OPENAI_API_KEY": "sk-proj-shared"}
        )
        [record] = await source.list_credentials()
        assert record.value == "sk-proj-mine"
        assert record.id == "env:CHATBRIDGE_OPENAI_API_KEY"

    @pytest.mark.asyncio
    async def test_empty_values_ignored(self) -> None:
        assert await EnvCredentialSource({"OPENAI_API_KEY": ""}).list_credentials() == []

    @pytest.mark.asyncio
    async def test_defaults_to_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-from-env")
        [record] = await EnvCredentialSource().list_credentials()
        assert record.provider == "anthropic"


class TestFallbackCredentialSource:
    @pytest.mark.asyncio
    async def test_primary_used_when_non_empty(self) -> None:
        primary = MemoryStore(
            credentials=[CredentialRecord(id="db", name="k", value="v", provider="openai")]
        )
        source = FallbackCredentialSource(
            primary, EnvCredentialSource({"OPENAI_API_KEY": "sk-proj-env"})
        )
        assert [r.id for r in await source.list_credentials()] == ["db"]

    @pytest.mark.asyncio
    async def test_fallback_when_primary_empty(self) -> None:
        source = FallbackCredentialSource(
            MemoryStore(), EnvCredentialSource({"OPENAI_API_KEY": "sk-proj-env"})
        )
        assert [r.id for r in await source.list_credentials()] == ["env:OPENAI_API_KEY"]
