"""
Key-value persistence.

Every persisted record (encrypted credentials, usage cache, widget config,
widget data) is a text value stored under a string key. Components depend on
the KeyValueStore capability so the backend can be swapped in tests.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from .db import get_connection


class KeyValueStore(ABC):
    """Async get/set/remove of text values by key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete key. Removing a missing key is not an error."""

    async def remove_many(self, keys: List[str]) -> None:
        for key in keys:
            await self.remove(key)


class MemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store for tests and dry runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


def initialize_schema(db_path: str = "ymobile_usage.db") -> None:
    """Create the kv_entry table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_entry (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


class SqliteKeyValueStore(KeyValueStore):
    """KeyValueStore backed by a single SQLite table.

    Each call opens its own connection in a worker thread so the event loop
    is never blocked on disk I/O. sqlite3 errors propagate to the caller.
    """

    def __init__(self, db_path: str = "ymobile_usage.db"):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            initialize_schema(self.db_path)
            self._schema_ready = True

    def _get(self, key: str) -> Optional[str]:
        self._ensure_schema()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("SELECT value FROM kv_entry WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def _set(self, key: str, value: str) -> None:
        self._ensure_schema()
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO kv_entry (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, (key, value, datetime.now().isoformat()))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _remove(self, key: str) -> None:
        self._ensure_schema()
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM kv_entry WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def keys(self) -> List[str]:
        """List stored keys, sorted. Synchronous; intended for diagnostics."""
        self._ensure_schema()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("SELECT key FROM kv_entry ORDER BY key")
            return [row[0] for row in cursor.fetchall()]
        finally:
            conn.close()

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
