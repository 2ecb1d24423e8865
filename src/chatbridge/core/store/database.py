"""
SQLite-backed persistence store.

Schema (4 tables):
  credentials     — admin-managed vendor API keys
  chat_models     — model catalog (id → provider + wire model name)
  conversations   — conversation ownership and timestamps
  messages        — persisted user and assistant messages

Thread safety:
  SQLite WAL mode is enabled. The connection is opened with
  check_same_thread=False because the async protocol methods run the
  blocking calls on worker threads via asyncio.to_thread; a lock keeps
  those calls from interleaving on the shared connection.
  All writes use parameterised queries.

Schema versioning:
  Uses PRAGMA user_version and the migrations module. On connect(), WAL mode
  and foreign keys are set first, then run_migrations() applies any pending
  schema changes idempotently.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path

import structlog

from chatbridge.core.store.records import (
    ChatModelRecord,
    Conversation,
    CredentialRecord,
    StoredMessage,
)
from chatbridge.providers.base import ChatMessage, new_id

logger = structlog.get_logger()


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    return ts if ts.tzinfo else ts.replace(tzinfo=UTC)


class Database:
    """SQLite persistence layer for chatbridge."""

    def __init__(self, db_path: Path) -> None:
        self._path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def connect(self) -> None:
        from chatbridge.core.store.migrations import run_migrations

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        # Set pragmas before any DDL / migration work
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        run_migrations(self._conn, self._path)

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def save_credential(self, record: CredentialRecord) -> None:
        with self._lock:
            self._db.execute(
                """
                INSERT INTO credentials (id, name, value, type, provider, api_url, enabled)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name       = excluded.name,
                    value      = excluded.value,
                    type       = excluded.type,
                    provider   = excluded.provider,
                    api_url    = excluded.api_url,
                    enabled    = excluded.enabled,
                    updated_at = datetime('now')
                """,
                (
                    record.id,
                    record.name,
                    record.value,
                    record.type,
                    record.provider.lower(),
                    record.api_url,
                    int(record.enabled),
                ),
            )
            self._db.commit()
        logger.info("credential_saved", credential_id=record.id, provider=record.provider)

    def get_credentials(self) -> list[CredentialRecord]:
        with self._lock:
            rows = self._db.execute("SELECT * FROM credentials ORDER BY created_at, id").fetchall()
        return [
            CredentialRecord(
                id=row["id"],
                name=row["name"],
                value=row["value"],
                type=row["type"],
                provider=row["provider"],
                api_url=row["api_url"],
                enabled=bool(row["enabled"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Model catalog
    # ------------------------------------------------------------------

    def save_model(self, record: ChatModelRecord) -> None:
        with self._lock:
            self._db.execute(
                """
                INSERT INTO chat_models (id, name, value, provider, type, enabled,
                                         max_tokens, max_context, temperature, sort_num)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name        = excluded.name,
                    value       = excluded.value,
                    provider    = excluded.provider,
                    type        = excluded.type,
                    enabled     = excluded.enabled,
                    max_tokens  = excluded.max_tokens,
                    max_context = excluded.max_context,
                    temperature = excluded.temperature,
                    sort_num    = excluded.sort_num
                """,
                (
                    record.id,
                    record.name,
                    record.value,
                    record.provider.lower(),
                    record.type,
                    int(record.enabled),
                    record.max_tokens,
                    record.max_context,
                    record.temperature,
                    record.sort_num,
                ),
            )
            self._db.commit()

    def get_models(self) -> list[ChatModelRecord]:
        with self._lock:
            rows = self._db.execute("SELECT * FROM chat_models ORDER BY sort_num, id").fetchall()
        return [
            ChatModelRecord(
                id=row["id"],
                name=row["name"],
                value=row["value"],
                provider=row["provider"],
                type=row["type"],
                enabled=bool(row["enabled"]),
                max_tokens=row["max_tokens"],
                max_context=row["max_context"],
                temperature=row["temperature"],
                sort_num=row["sort_num"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(self, user_id: str, model: str = "", title: str = "") -> Conversation:
        conv_id = new_id()
        now = _now()
        with self._lock:
            self._db.execute(
                """
                INSERT INTO conversations (id, user_id, title, model, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (conv_id, user_id, title, model, now, now),
            )
            self._db.commit()
        return Conversation(
            id=conv_id,
            user_id=user_id,
            title=title,
            model=model,
            created_at=_parse_ts(now),
            updated_at=_parse_ts(now),
        )

    def get_conversation_sync(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            row = self._db.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            ).fetchone()
        if row is None:
            return None
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            model=row["model"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def get_messages(self, conversation_id: str) -> list[StoredMessage]:
        with self._lock:
            rows = self._db.execute(
                """
                SELECT * FROM messages
                 WHERE conversation_id = ?
                 ORDER BY created_at, rowid
                """,
                (conversation_id,),
            ).fetchall()
        return [
            StoredMessage(
                id=row["id"],
                conversation_id=row["conversation_id"],
                role=row["role"],
                content=row["content"],
                metadata=json.loads(row["metadata"] or "{}"),
                created_at=_parse_ts(row["created_at"]),
            )
            for row in rows
        ]

    def add_message(self, conversation_id: str, message: ChatMessage) -> StoredMessage:
        stored = StoredMessage.from_message(conversation_id, message)
        with self._lock:
            self._db.execute(
                """
                INSERT INTO messages (id, conversation_id, role, content, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.id,
                    conversation_id,
                    stored.role,
                    stored.content,
                    json.dumps(stored.metadata),
                    stored.created_at.isoformat(),
                ),
            )
            self._db.commit()
        return stored

    def update_conversation_timestamp(self, conversation_id: str) -> None:
        with self._lock:
            self._db.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (_now(), conversation_id),
            )
            self._db.commit()

    # ------------------------------------------------------------------
    # Async protocol surface (CredentialSource, ModelCatalog, ConversationStore)
    # ------------------------------------------------------------------

    async def list_credentials(self) -> list[CredentialRecord]:
        return await asyncio.to_thread(self.get_credentials)

    async def list_models(self) -> list[ChatModelRecord]:
        return await asyncio.to_thread(self.get_models)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return await asyncio.to_thread(self.get_conversation_sync, conversation_id)

    async def list_messages(self, conversation_id: str) -> list[StoredMessage]:
        return await asyncio.to_thread(self.get_messages, conversation_id)

    async def save_message(self, conversation_id: str, message: ChatMessage) -> StoredMessage:
        return await asyncio.to_thread(self.add_message, conversation_id, message)

    async def touch_conversation(self, conversation_id: str) -> None:
        await asyncio.to_thread(self.update_conversation_timestamp, conversation_id)
