"""
SQLite-backed key-value store.
"""

import asyncio
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from tab_organizer.config import get_logger
from .base import KeyValueStore

logger = get_logger(__name__)


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite handler storing JSON-encoded values under string keys.

    Blocking SQLite calls run in a worker thread, so every read and write
    suspends the calling coroutine just like the browser's async storage.
    """

    def __init__(self, db_path: Path | str):
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
        """
        self.db_path = db_path
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._conn_lock = threading.Lock()
        self._initialize_schema()

    def _initialize_schema(self):
        """Create the database schema if it doesn't exist."""
        with self._conn_lock:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            self.conn.commit()

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    def _get_many_sync(self, keys: list[str]) -> dict[str, Any]:
        if not keys:
            return {}
        placeholders = ",".join("?" * len(keys))
        with self._conn_lock:
            rows = self.conn.execute(
                f"SELECT key, value FROM kv WHERE key IN ({placeholders})", keys
            ).fetchall()
        return {row["key"]: json.loads(row["value"]) for row in rows}

    def _set_many_sync(self, items: dict[str, Any]) -> None:
        rows = [(key, json.dumps(value)) for key, value in items.items()]
        with self._conn_lock:
            self.conn.executemany(
                """
                INSERT INTO kv (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                rows,
            )
            self.conn.commit()

    def _delete_sync(self, key: str) -> bool:
        with self._conn_lock:
            cursor = self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self.conn.commit()
            return cursor.rowcount > 0

    def _keys_sync(self, prefix: Optional[str]) -> list[str]:
        with self._conn_lock:
            if prefix:
                # Escape LIKE wildcards so the prefix is matched literally
                escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
                rows = self.conn.execute(
                    "SELECT key FROM kv WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                    (escaped + "%",),
                ).fetchall()
            else:
                rows = self.conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    # ------------------------------------------------------------------
    # KeyValueStore interface
    # ------------------------------------------------------------------

    async def get(self, key: str, default: Any = None) -> Any:
        values = await self.get_many([key])
        return values.get(key, default)

    async def get_many(self, keys: list[str]) -> dict[str, Any]:
        return await asyncio.to_thread(self._get_many_sync, list(keys))

    async def set_many(self, items: dict[str, Any]) -> None:
        if not items:
            return
        await asyncio.to_thread(self._set_many_sync, dict(items))
        logger.debug(f"Stored keys: {', '.join(items)}")

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, key)

    async def keys(self, prefix: Optional[str] = None) -> list[str]:
        return await asyncio.to_thread(self._keys_sync, prefix)

    def close(self):
        """Close the database connection."""
        with self._conn_lock:
            self.conn.close()
