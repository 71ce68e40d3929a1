# fedcore/cache.py
"""
Time-bounded cache for authenticated GET responses.

Entries are keyed by (requesting identity, resource URI) so that two local
identities never share a response fetched under another's signature.
Each entry expires a fixed ttl after insertion; reads do not extend it.
There is no size bound; expired entries are dropped when touched or by
prune().
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .constants import CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


def cache_key(identity: Any, uri: str) -> str:
    return f"{identity};{uri}"


@dataclass
class CacheEntry:
    """A cached response body."""
    key: str
    value: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    """Statistics about cache usage."""
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0

    def record_hit(self):
        self.hits += 1
        self._update_rate()

    def record_miss(self):
        self.misses += 1
        self._update_rate()

    def _update_rate(self):
        total = self.hits + self.misses
        self.hit_rate = self.hits / total if total > 0 else 0.0


class ResponseCache:
    """
    Fixed-TTL in-memory cache.

    Args:
        ttl: Seconds an entry lives after set()
        clock: Monotonic time source, injectable for tests
    """

    def __init__(self, ttl: float = CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self.stats = CacheStats()
        self._entries: Dict[str, CacheEntry] = {}

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            del self._entries[key]
            return None
        return entry

    def has(self, identity: Any, uri: str) -> bool:
        """Check for a live entry (without affecting stats)."""
        return self._live_entry(cache_key(identity, uri)) is not None

    def get(self, identity: Any, uri: str) -> Any:
        """
        Get a cached body.

        Returns None on a miss; use has() to tell a miss from a cached None.
        """
        entry = self._live_entry(cache_key(identity, uri))
        if entry is None:
            self.stats.record_miss()
            return None

        self.stats.record_hit()
        logger.debug(f"Cache hit: {entry.key}")
        return entry.value

    def set(self, identity: Any, uri: str, body: Any) -> None:
        """Store a body, replacing any entry and restarting its ttl."""
        now = self.clock()
        key = cache_key(identity, uri)
        self._entries[key] = CacheEntry(
            key=key,
            value=body,
            created_at=now,
            expires_at=now + self.ttl,
        )

    def remove(self, identity: Any, uri: str) -> bool:
        return self._entries.pop(cache_key(identity, uri), None) is not None

    def prune(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self.clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self):
        """Clear all cached entries."""
        self._entries.clear()
        self.stats = CacheStats()

    def list_entries(self) -> List[CacheEntry]:
        """List entries, including any not yet pruned."""
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
