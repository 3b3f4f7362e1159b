"""TTL cache gate in front of expensive producers, backed by the store."""

import hashlib
import logging
import re
import sqlite3
import time
from typing import Any, Awaitable, Callable, Optional, Tuple

from globeassist.errors import IncompleteResult, PersistenceWriteFailure
from globeassist.models import CacheEntry
from globeassist.store import SQLiteStore

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 200
_SEPARATORS = re.compile(r"[\s,]+")

Producer = Callable[[], Awaitable[Any]]
Completeness = Callable[[Any], bool]


def make_cache_key(*parts: Any) -> str:
    """Build a normalized composite key from entity names and parameters.

    Parts are lowercased, runs of whitespace and commas collapse to ``_`` and
    the parts are joined with ``:``. Keys longer than ``MAX_KEY_LENGTH`` keep a
    readable prefix and end in the sha256 of the full key.
    """
    normalized = []
    for part in parts:
        if part is None:
            part = ""
        elif isinstance(part, (list, tuple)):
            part = ",".join(str(item) for item in part)
        normalized.append(_SEPARATORS.sub("_", str(part).strip().lower()).strip("_"))

    key = ":".join(normalized)
    if len(key) > MAX_KEY_LENGTH:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        key = f"{key[: MAX_KEY_LENGTH - len(digest) - 1]}:{digest}"
    return key


class CacheGate:
    """TTL cache in front of an expensive producer, scoped to one namespace."""

    def __init__(
        self,
        store: SQLiteStore,
        namespace: str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached payload, or None when absent or expired."""
        try:
            entry = await self.store.select(self.namespace, key)
        except sqlite3.Error as exc:
            logger.error("Cache lookup failed for %s/%s: %s", self.namespace, key, exc)
            return None

        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            logger.info("Cache entry %s/%s expired", self.namespace, key)
            await self._delete_quietly(key)
            return None
        return entry.payload

    async def put(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[float] = None,
        owner_id: Optional[str] = None,
    ) -> bool:
        """Store ``value``. Failures are logged and reported as False."""
        now = self._clock()
        entry = CacheEntry(
            namespace=self.namespace,
            key=key,
            payload=value,
            created_at=now,
            expires_at=now + (self.ttl_seconds if ttl_seconds is None else ttl_seconds),
            owner_id=owner_id,
        )
        try:
            await self.store.upsert(entry)
        except (sqlite3.Error, TypeError, ValueError) as exc:
            failure = PersistenceWriteFailure(
                f"Could not cache {self.namespace}/{key}: {exc}"
            )
            logger.warning("%s", failure)
            return False
        return True

    async def invalidate(self, key: str) -> None:
        await self.store.delete(self.namespace, key)

    async def fetch(
        self,
        key: str,
        producer: Producer,
        is_complete: Optional[Completeness] = None,
        refresh: bool = False,
        owner_id: Optional[str] = None,
        accept_incomplete: bool = False,
    ) -> Tuple[Any, bool]:
        """Return ``(value, cached)``, regenerating on miss or incomplete hit.

        An incomplete cached payload is invalidated and regenerated once. An
        incomplete fresh payload raises IncompleteResult, unless
        ``accept_incomplete`` is set, in which case it is returned uncached.
        """
        if not refresh:
            cached = await self.get(key)
            if cached is not None:
                if is_complete is None or is_complete(cached):
                    logger.debug("Cache hit %s/%s", self.namespace, key)
                    return cached, True
                logger.warning(
                    "Cached %s/%s is incomplete; regenerating", self.namespace, key
                )
                await self._delete_quietly(key)

        value = await producer()

        if is_complete is not None and not is_complete(value):
            if accept_incomplete:
                logger.warning(
                    "Returning incomplete %s/%s without caching", self.namespace, key
                )
                return value, False
            logger.error("Fresh %s/%s is incomplete", self.namespace, key)
            raise IncompleteResult()

        await self.put(key, value, owner_id=owner_id)
        return value, False

    async def _delete_quietly(self, key: str) -> None:
        try:
            await self.store.delete(self.namespace, key)
        except sqlite3.Error as exc:
            logger.warning("Could not delete %s/%s: %s", self.namespace, key, exc)
