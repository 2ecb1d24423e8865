"""
Schema migrations for the chatbridge SQLite database.

Uses PRAGMA user_version as the version counter (atomic, no extra table).
Each migration is an idempotent function that upgrades from version N to N+1.

Migration contract:
  - Each migration MUST be idempotent — safe to re-run after a mid-flight crash.
  - After a migration succeeds, PRAGMA user_version is bumped and committed.
  - If any migration fails, the transaction is rolled back and the error is
    surfaced with the DB path so the user can take recovery action.

Version history:
  0 → 1: Initial schema (credentials, chat_models, conversations, messages)
  1 → 2: Message metadata (finish reason / stream error of assistant replies)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from pathlib import Path

import structlog

logger = structlog.get_logger()

# Bump this when adding a new migration.
LATEST_SCHEMA_VERSION = 2


# ---------------------------------------------------------------------------
# Individual migrations
# ---------------------------------------------------------------------------


def _migrate_0_to_1(conn: sqlite3.Connection) -> None:
    """Version 0 → 1: credential store, model catalog and conversation history."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS credentials (
            id          TEXT PRIMARY KEY,
            name        TEXT NOT NULL DEFAULT '',
            value       TEXT NOT NULL DEFAULT '',
            type        TEXT NOT NULL DEFAULT 'api_key',
            provider    TEXT NOT NULL DEFAULT '',
            api_url     TEXT NOT NULL DEFAULT '',
            enabled     INTEGER NOT NULL DEFAULT 1,
            created_at  TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS chat_models (
            id          TEXT PRIMARY KEY,
            name        TEXT NOT NULL DEFAULT '',
            value       TEXT NOT NULL,
            provider    TEXT NOT NULL,
            type        TEXT NOT NULL DEFAULT 'chat',
            enabled     INTEGER NOT NULL DEFAULT 1,
            max_tokens  INTEGER NOT NULL DEFAULT 0,
            max_context INTEGER NOT NULL DEFAULT 0,
            temperature REAL NOT NULL DEFAULT 0.7,
            sort_num    INTEGER NOT NULL DEFAULT 0
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS conversations (
            id          TEXT PRIMARY KEY,
            user_id     TEXT NOT NULL,
            title       TEXT NOT NULL DEFAULT '',
            model       TEXT NOT NULL DEFAULT '',
            created_at  TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id               TEXT PRIMARY KEY,
            conversation_id  TEXT NOT NULL REFERENCES conversations(id),
            role             TEXT NOT NULL,
            content          TEXT NOT NULL DEFAULT '',
            created_at       TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_messages_conversation
            ON messages(conversation_id, created_at)
    """)


def _migrate_1_to_2(conn: sqlite3.Connection) -> None:
    """Version 1 → 2: add messages.metadata (JSON object)."""
    _add_column_if_missing(conn, "messages", "metadata", "TEXT NOT NULL DEFAULT '{}'")


_MIGRATIONS: dict[int, Callable[[sqlite3.Connection], None]] = {
    0: _migrate_0_to_1,
    1: _migrate_1_to_2,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _add_column_if_missing(
    conn: sqlite3.Connection,
    table: str,
    column: str,
    column_def: str,
) -> None:
    cursor = conn.execute(f"PRAGMA table_info({table})")  # noqa: S608
    existing = {row[1] for row in cursor.fetchall()}
    if column not in existing:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_def}")  # noqa: S608
        logger.info("migration_added_column", table=table, column=column)


def get_user_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("PRAGMA user_version").fetchone()
    return row[0] if row else 0


def _set_user_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(f"PRAGMA user_version = {version}")  # noqa: S608


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def run_migrations(conn: sqlite3.Connection, db_path: Path) -> None:
    """
    Run all pending schema migrations on *conn*.

    Raises ``RuntimeError`` with a user-friendly message (including the DB
    path) if any migration fails or the database is newer than this build.
    """
    current = get_user_version(conn)

    if current > LATEST_SCHEMA_VERSION:
        raise RuntimeError(
            f"Database {db_path} has schema version {current}, but this build of "
            f"chatbridge only supports up to version {LATEST_SCHEMA_VERSION}."
        )

    if current == LATEST_SCHEMA_VERSION:
        return

    logger.info("migration_starting", from_version=current, to_version=LATEST_SCHEMA_VERSION)

    for from_version in range(current, LATEST_SCHEMA_VERSION):
        migration = _MIGRATIONS[from_version]
        target = from_version + 1
        try:
            migration(conn)
            _set_user_version(conn, target)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise RuntimeError(
                f"Schema migration v{from_version} → v{target} failed: {exc}\n"
                f"Database path: {db_path}\n"
                f"Recovery: move the database file aside and restart."
            ) from exc

    logger.info("migration_complete", version=get_user_version(conn))
