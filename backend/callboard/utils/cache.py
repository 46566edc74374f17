"""In-memory TTL cache for dashboard view models."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional


@dataclass
class CacheEntry:
    """A single cache entry."""
    value: Any
    expires_at: float


class TTLCache:
    """
    Small keyed cache with a fixed staleness window.

    Entries expire after `ttl_seconds`; `invalidate` drops entries explicitly
    after a mutation so the next read refetches.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + self.ttl_seconds)

    def invalidate(self, predicate: Optional[Callable[[Hashable], bool]] = None) -> int:
        """Drop matching entries (all when no predicate). Returns how many were dropped."""
        if predicate is None:
            dropped = len(self._entries)
            self._entries.clear()
            return dropped
        keys = [k for k in self._entries if predicate(k)]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)
