"""Shared wiring for CLI commands: config, database, dispatch service."""

from __future__ import annotations

import sys

from rich.console import Console

from chatbridge.core.config import ChatBridgeConfig, load_config
from chatbridge.core.constants import ExitCode
from chatbridge.core.dispatch.service import ChatDispatchService
from chatbridge.core.exceptions import ConfigError
from chatbridge.core.store.base import CredentialSource, ModelCatalog
from chatbridge.core.store.database import Database
from chatbridge.core.store.env import EnvCredentialSource, FallbackCredentialSource
from chatbridge.core.store.memory import MemoryStore
from chatbridge.providers.registry import ProviderRegistry

err_console = Console(stderr=True)


def get_config() -> ChatBridgeConfig:
    """Load config or exit with CONFIG_ERROR."""
    try:
        return load_config()
    except ConfigError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)


def open_db(config: ChatBridgeConfig, *, create: bool = False) -> Database | None:
    """Open the chatbridge database; None if it does not exist and *create* is False."""
    db_path = config.db_path
    if not create and not db_path.exists():
        return None
    db = Database(db_path)
    db.connect()
    return db


async def build_dispatch(
    config: ChatBridgeConfig, db: Database | None
) -> ChatDispatchService:
    """Dispatch service with its registry loaded from the database or environment."""
    env = EnvCredentialSource()
    credentials: CredentialSource = FallbackCredentialSource(db, env) if db is not None else env
    catalog: ModelCatalog = db if db is not None else MemoryStore()

    dispatch = ChatDispatchService(
        ProviderRegistry(config.providers), catalog, credentials, config.chat
    )
    await dispatch.reload()
    return dispatch
