"""SQLite storage adapter.

Implements the core IgnoreStorePort and CredentialStorePort using a simple
SQLite database. Queries are short and local, so the async port methods run
the blocking calls in a worker thread instead of pulling in an async driver.
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from core.models import IgnoreEntry

SQLITE_SCHEME = "sqlite:///"


def db_path_from_url(url: str) -> str:
    """Accept ``sqlite:///path/to.db`` or a bare file path."""

    if url.startswith(SQLITE_SCHEME):
        return url[len(SQLITE_SCHEME):]
    if "://" in url:
        raise ValueError(f"Unsupported database URL: {url}")
    return url


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the storage ports."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - ignored_chats: chats the router must stay silent in
        - credentials: opaque session strings keyed by name
        """

        with self._connect() as conn:
            # ignored_chats holds one row per muted chat.
            # Fields:
            # - chat_id: normalized chat identifier (PRIMARY KEY)
            # - added_by: who muted the chat
            # - created_at: when it was muted, used for newest-first listing
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ignored_chats (
                    chat_id TEXT PRIMARY KEY,
                    added_by TEXT,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            # credentials keeps the transport session so restarts skip login.
            # Fields:
            # - name: credential slot (PRIMARY KEY)
            # - data: serialized session string
            # - updated_at: last rotation time
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credentials (
                    name TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )

    # -- ignore list -------------------------------------------------------

    def is_ignored(self, chat_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM ignored_chats WHERE chat_id = ?",
                (chat_id,),
            ).fetchone()
        return row is not None

    def add_ignored(self, chat_id: str, added_by: str) -> None:
        """Upsert a muted chat; re-muting keeps the original timestamp."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO ignored_chats (chat_id, added_by, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(chat_id) DO UPDATE SET added_by = excluded.added_by
                """,
                (chat_id, added_by, now.isoformat()),
            )

    def remove_ignored(self, chat_id: str) -> int:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM ignored_chats WHERE chat_id = ?", (chat_id,))
            return cur.rowcount

    def recent_ignored(self, limit: int) -> list[IgnoreEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT chat_id, added_by, created_at FROM ignored_chats
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            IgnoreEntry(
                chat_id=row["chat_id"],
                added_by=row["added_by"] or "",
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    async def exists(self, chat_id: str) -> bool:
        return await asyncio.to_thread(self.is_ignored, chat_id)

    async def upsert(self, chat_id: str, added_by: str) -> None:
        await asyncio.to_thread(self.add_ignored, chat_id, added_by)

    async def delete(self, chat_id: str) -> int:
        return await asyncio.to_thread(self.remove_ignored, chat_id)

    async def list_recent(self, limit: int) -> list[IgnoreEntry]:
        return await asyncio.to_thread(self.recent_ignored, limit)

    # -- credentials -------------------------------------------------------

    def load_credentials(self, name: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM credentials WHERE name = ?",
                (name,),
            ).fetchone()
        return str(row["data"]) if row else None

    def save_credentials(self, name: str, data: str) -> None:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO credentials (name, data, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (name, data, now.isoformat()),
            )

    def delete_credentials(self, name: str) -> int:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM credentials WHERE name = ?", (name,))
            return cur.rowcount
