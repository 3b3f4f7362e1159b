"""Data models for credential pools and cache entries."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
import time

STATUS_ACTIVE = "active"
STATUS_COOLDOWN = "cooldown"


@dataclass
class ApiKey:
    """Represents a single provider credential with cooldown tracking."""

    id: str
    key: str
    cooldown_until: Optional[float] = None
    last_used: Optional[datetime] = None
    last_error: Optional[datetime] = None
    consecutive_failures: int = 0
    rate_limit_hits: int = 0

    def is_cooling_down(self, now: Optional[float] = None) -> bool:
        if self.cooldown_until is None:
            return False
        current_time = time.time() if now is None else now
        return self.cooldown_until > current_time

    def status(self, now: Optional[float] = None) -> str:
        return STATUS_COOLDOWN if self.is_cooling_down(now) else STATUS_ACTIVE

    def key_prefix(self) -> str:
        if len(self.key) <= 11:
            return self.key
        return f"{self.key[:8]}...{self.key[-3:]}"


@dataclass
class PoolState:
    """Represents the state of one provider's credential pool."""

    keys: Dict[str, ApiKey] = field(default_factory=dict)
    cursor: int = 0


@dataclass
class CacheEntry:
    """One cached payload keyed by namespace and normalized composite key."""

    namespace: str
    key: str
    payload: Any
    created_at: float
    expires_at: float
    owner_id: Optional[str] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        current_time = time.time() if now is None else now
        return self.expires_at <= current_time
