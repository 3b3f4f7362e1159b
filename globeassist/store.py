"""SQLite persistence for cache entries."""

import asyncio
import json
import logging
import sqlite3
import threading
from typing import Any, Iterable, List, Optional, Sequence

from globeassist.models import CacheEntry

logger = logging.getLogger(__name__)

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS cache_entries (
        namespace TEXT NOT NULL,
        cache_key TEXT NOT NULL,
        payload TEXT NOT NULL,
        created_at REAL NOT NULL,
        expires_at REAL NOT NULL,
        owner_id TEXT,
        PRIMARY KEY (namespace, cache_key)
    );""",
    "CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_cache_owner ON cache_entries(owner_id, namespace);",
]


class SQLiteStore:
    """Cache table behind one shared connection.

    sqlite3 calls block, so each public coroutine runs its statement in a
    worker thread while holding a lock. Rows are replaced whole (upsert); no
    transaction spans more than one statement.
    """

    def __init__(self, database_path: str = ":memory:"):
        self.database_path = database_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(database_path, check_same_thread=False)
        if database_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")
        with self._lock:
            for statement in SCHEMA:
                self._conn.execute(statement)
            self._conn.commit()
        logger.info("Cache store ready at %s", database_path)

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            rows = cursor.fetchall()
            self._conn.commit()
            return rows

    def _execute_count(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor.rowcount

    async def select(self, namespace: str, key: str) -> Optional[CacheEntry]:
        rows = await asyncio.to_thread(
            self._execute,
            "SELECT payload, created_at, expires_at, owner_id FROM cache_entries "
            "WHERE namespace = ? AND cache_key = ?",
            (namespace, key),
        )
        if not rows:
            return None
        payload, created_at, expires_at, owner_id = rows[0]
        return CacheEntry(
            namespace=namespace,
            key=key,
            payload=json.loads(payload),
            created_at=created_at,
            expires_at=expires_at,
            owner_id=owner_id,
        )

    async def upsert(self, entry: CacheEntry) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO cache_entries "
            "(namespace, cache_key, payload, created_at, expires_at, owner_id) "
            "VALUES (?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(namespace, cache_key) DO UPDATE SET "
            "payload = excluded.payload, created_at = excluded.created_at, "
            "expires_at = excluded.expires_at, owner_id = excluded.owner_id",
            (
                entry.namespace,
                entry.key,
                json.dumps(entry.payload),
                entry.created_at,
                entry.expires_at,
                entry.owner_id,
            ),
        )

    async def delete(self, namespace: str, key: str) -> int:
        return await asyncio.to_thread(
            self._execute_count,
            "DELETE FROM cache_entries WHERE namespace = ? AND cache_key = ?",
            (namespace, key),
        )

    async def delete_owned(self, owner_id: str, namespaces: Iterable[str]) -> int:
        names = list(namespaces)
        if not names:
            return 0
        placeholders = ", ".join("?" for _ in names)
        return await asyncio.to_thread(
            self._execute_count,
            f"DELETE FROM cache_entries WHERE owner_id = ? AND namespace IN ({placeholders})",
            (owner_id, *names),
        )

    async def purge_expired(self, now: float) -> int:
        count = await asyncio.to_thread(
            self._execute_count,
            "DELETE FROM cache_entries WHERE expires_at <= ?",
            (now,),
        )
        if count:
            logger.info("Purged %s expired cache entries", count)
        return count

    def close(self) -> None:
        with self._lock:
            self._conn.close()
