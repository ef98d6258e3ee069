"""
TTL cache for catalog responses.

Entries expire a fixed time after creation; the TTL depends on the kind of
data cached (search results change faster than category trees). Expired
entries are evicted when read. Storage sits behind the CacheBackend
protocol so an external store can replace the in-memory dict.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from pydantic import BaseModel

from ..config import CacheTTLs

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """A cached value with its creation and expiry timestamps (seconds)."""

    data: Any
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CacheStats(BaseModel):
    """Counters describing cache usage."""

    size: int
    hits: int
    misses: int
    evictions: int


class CacheBackend(Protocol):
    """Key-value storage used by TTLCache."""

    def get(self, key: str) -> Optional[CacheEntry]: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> Iterable[str]: ...

    def clear(self) -> None: ...


class InMemoryCacheBackend:
    """Process-local dict storage."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def keys(self) -> Iterable[str]:
        return list(self._entries.keys())

    def clear(self) -> None:
        self._entries.clear()


class TTLCache:
    """Key-value cache with per-kind time-to-live and evict-on-read."""

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        ttls: Optional[CacheTTLs] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            backend: Storage backend (in-memory by default).
            ttls: TTL per kind in seconds.
            clock: Time source in seconds, injectable for tests.
        """
        self._backend = backend if backend is not None else InMemoryCacheBackend()
        self._ttls = ttls or CacheTTLs()
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        entry = self._backend.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.is_expired(self._clock()):
            self._backend.delete(key)
            self._evictions += 1
            self._misses += 1
            logger.debug(f"Cache expired: '{key}'")
            return None
        self._hits += 1
        return entry.data

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value for ttl seconds (default TTL when omitted)."""
        now = self._clock()
        lifetime = self._ttls.default if ttl is None else ttl
        self._backend.set(key, CacheEntry(data=value, created_at=now, expires_at=now + lifetime))

    def set_with_kind(self, key: str, value: Any, kind: str) -> None:
        """Store a value with the TTL configured for its kind (search, product, category)."""
        self.set(key, value, ttl=self._ttls.for_kind(kind))

    def delete(self, key: str) -> bool:
        return self._backend.delete(key)

    def delete_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with prefix. Returns the count removed."""
        removed = 0
        for key in list(self._backend.keys()):
            if key.startswith(prefix) and self._backend.delete(key):
                removed += 1
        if removed:
            logger.debug(f"Invalidated {removed} cache entries with prefix '{prefix}'")
        return removed

    def clear(self) -> None:
        self._backend.clear()

    def has(self, key: str) -> bool:
        """Whether a live (non-expired) entry exists. Expired entries are evicted."""
        entry = self._backend.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            self._backend.delete(key)
            self._evictions += 1
            return False
        return True

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(list(self._backend.keys())),
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )


class CacheKeys:
    """Key builders shared by every catalog source."""

    @staticmethod
    def product(source_id: str, product_id: str) -> str:
        return f"product:{source_id}:{product_id}"

    @staticmethod
    def category(source_id: str, category_id: Optional[str] = None) -> str:
        if category_id is None:
            return f"categories:{source_id}"
        return f"category:{source_id}:{category_id}"

    @staticmethod
    def search(source_id: str, query: str, options: Optional[Dict[str, Any]] = None) -> str:
        return f"search:{source_id}:{query.lower()}:{json.dumps(options or {}, sort_keys=True)}"

    @staticmethod
    def source_prefix(kind: str, source_id: str) -> str:
        """Prefix matching every key of one kind for a source, for delete_prefix."""
        return f"{kind}:{source_id}:"


_default_cache: Optional[TTLCache] = None


def get_default_cache() -> TTLCache:
    """Process-wide convenience cache. Catalog clients never rely on it implicitly."""
    global _default_cache
    if _default_cache is None:
        _default_cache = TTLCache()
    return _default_cache
