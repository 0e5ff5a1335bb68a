"""TTL cache for tool results (provider benchmarks and similar lookups)."""

from __future__ import annotations

import hashlib
import json
import threading
import time
from typing import Any, Callable, Dict, Optional


class CacheEntry:
    """A single cache entry with TTL (time-to-live)."""

    def __init__(self, value: Any, ttl_seconds: float, now: float):
        self.value = value
        self.created_at = now
        self.ttl = ttl_seconds
        self.hits = 0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl

    def touch(self) -> None:
        self.hits += 1


class TTLCache:
    """
    Cache for tool execution results.

    Keys are derived from the tool name and its arguments. The cache is
    constructed once by the owner of the tool registry and passed in
    explicitly; access is serialized with a lock so handlers running in
    worker threads can share it.

    Writes purge expired entries, and at most ``max_entries`` are kept: the
    oldest writes are dropped first.
    """

    def __init__(
        self,
        default_ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.default_ttl_seconds = default_ttl_seconds
        self.max_entries = max(1, max_entries)
        self._clock = clock or time.monotonic
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(tool_name: str, args: Dict[str, Any]) -> str:
        """SHA256 of a deterministic JSON rendering of tool + args."""
        data = json.dumps({"tool": tool_name, "args": args}, sort_keys=True, default=str)
        return hashlib.sha256(data.encode()).hexdigest()

    def get(self, tool_name: str, args: Dict[str, Any]) -> Optional[Any]:
        """Return the cached value if present and fresh, else None."""
        key = self.make_key(tool_name, args)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._misses += 1
                return None
            entry.touch()
            self._hits += 1
            return entry.value

    def set(self, tool_name: str, args: Dict[str, Any], value: Any, ttl_seconds: Optional[float] = None) -> None:
        key = self.make_key(tool_name, args)
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            now = self._clock()
            self._drop_expired(now)
            # re-inserting moves the key to the end of the write order
            self._cache.pop(key, None)
            while len(self._cache) >= self.max_entries:
                del self._cache[next(iter(self._cache))]
            self._cache[key] = CacheEntry(value, ttl, now)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def evict_expired(self) -> int:
        """Remove all expired entries; returns how many were dropped."""
        with self._lock:
            return self._drop_expired(self._clock())

    def _drop_expired(self, now: float) -> int:
        expired = [key for key, entry in self._cache.items() if entry.is_expired(now)]
        for key in expired:
            del self._cache[key]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "total_requests": total,
                "hit_rate": self._hits / total if total > 0 else 0.0,
                "cache_size": len(self._cache),
            }
