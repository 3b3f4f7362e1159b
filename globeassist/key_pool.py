"""Credential pool management with per-key rate-limit cooldowns."""

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from globeassist.errors import ConfigurationError
from globeassist.models import ApiKey, PoolState

logger = logging.getLogger(__name__)


class KeyPool:
    """Hands out provider credentials round-robin, skipping keys on cooldown.

    The pool is process-local state. It is built once at startup and passed
    to whichever client needs it.
    """

    def __init__(
        self,
        name: str,
        api_keys: Sequence[str],
        default_cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.pool: PoolState = PoolState()
        self.default_cooldown_seconds = default_cooldown_seconds
        self._clock = clock
        self._lock: asyncio.Lock = asyncio.Lock()

        for index, api_key in enumerate(api_keys, start=1):
            key_id = f"key_{index}"
            self.pool.keys[key_id] = ApiKey(id=key_id, key=api_key)

    def __len__(self) -> int:
        return len(self.pool.keys)

    @property
    def enabled(self) -> bool:
        return bool(self.pool.keys)

    async def select_key(self) -> ApiKey:
        """Return the next usable key, or the soonest-recovering one.

        Raises:
            ConfigurationError: If the pool holds no credentials at all.
        """
        async with self._lock:
            keys: List[ApiKey] = list(self.pool.keys.values())
            if not keys:
                raise ConfigurationError(f"No API keys configured for {self.name}")

            now = self._clock()
            count = len(keys)
            start = self.pool.cursor % count
            for offset in range(count):
                index = (start + offset) % count
                key = keys[index]
                if not key.is_cooling_down(now):
                    key.cooldown_until = None
                    self.pool.cursor = (index + 1) % count
                    return key

            soonest = min(keys, key=lambda item: item.cooldown_until or 0.0)
            logger.warning(
                "All %s keys cooling down; soonest is %s (%.1fs left)",
                self.name,
                soonest.key_prefix(),
                (soonest.cooldown_until or now) - now,
            )
            return soonest

    async def report_rate_limited(
        self, key_id: str, resume_at: Optional[float] = None
    ) -> None:
        async with self._lock:
            key = self.pool.keys.get(key_id)
            if not key:
                return

            now = self._clock()
            if resume_at is None or resume_at <= now:
                resume_at = now + self.default_cooldown_seconds

            key.cooldown_until = resume_at
            key.rate_limit_hits += 1
            key.last_error = datetime.now()
            logger.warning(
                "%s key %s rate limited for %.0fs",
                self.name,
                key.key_prefix(),
                resume_at - now,
            )

    async def record_success(self, key_id: str) -> None:
        async with self._lock:
            key = self.pool.keys.get(key_id)
            if not key:
                return

            key.last_used = datetime.now()
            key.consecutive_failures = 0
            key.cooldown_until = None

    async def record_error(self, key_id: str) -> None:
        async with self._lock:
            key = self.pool.keys.get(key_id)
            if not key:
                return

            key.last_error = datetime.now()
            key.consecutive_failures += 1

    def seconds_until_available(self, key: ApiKey) -> float:
        if key.cooldown_until is None:
            return 0.0
        return max(0.0, key.cooldown_until - self._clock())

    def get_status(self) -> Dict[str, object]:
        now = self._clock()
        available_keys = sum(
            1 for key in self.pool.keys.values() if not key.is_cooling_down(now)
        )
        return {
            "pool": self.name,
            "total_keys": len(self.pool.keys),
            "available_keys": available_keys,
            "cooling_down_keys": len(self.pool.keys) - available_keys,
            "keys": [self._format_key_status(key) for key in self.pool.keys.values()],
        }

    def get_key_status(self, key_id: str) -> Optional[Dict[str, object]]:
        key = self.pool.keys.get(key_id)
        if not key:
            return None
        return self._format_key_status(key)

    def _format_key_status(self, key: ApiKey) -> Dict[str, object]:
        now = self._clock()
        return {
            "id": key.id,
            "key_prefix": key.key_prefix(),
            "status": key.status(now),
            "cooldown_until": key.cooldown_until,
            "rate_limit_hits": key.rate_limit_hits,
            "last_used": key.last_used,
            "last_error": key.last_error,
            "consecutive_failures": key.consecutive_failures,
        }
