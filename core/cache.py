"""
In-memory TTL cache for the Albi Mall assistant.

Two caches are used per process:
- search cache:   provider query -> provider results
- response cache: (query, candidate ids) -> composed response

Both are volatile and best-effort. A read past an entry's TTL is a miss
and evicts the entry. When full, the oldest inserted entry is evicted.

Usage:
    cache = TTLCache(max_size=500, default_ttl=300)
    cache.set(search_cache_key("red bag", 10), products)
    cache.get(search_cache_key("red bag", 10))
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from core.structured_logging import get_logger

# Module-level logger
_logger = get_logger("core.cache")


@dataclass
class CacheEntry:
    value: Any
    inserted_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl


class TTLCache:
    """
    Thread-safe key/value cache with per-entry expiry.

    Example:
        cache = TTLCache(max_size=2, default_ttl=60)
        cache.set("a", 1)
        cache.get("a")   # 1
        cache.get("b")   # None (miss)
    """

    def __init__(
        self,
        max_size: int = 500,
        default_ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        """
        Args:
            max_size: Maximum number of entries
            default_ttl: Seconds an entry stays valid
            clock: Time source (injectable for tests)
            name: Used in log records
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return default
            if entry.expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                return default
            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                # Oldest insertion goes first
                self._entries.popitem(last=False)
            self._entries[key] = CacheEntry(
                value=value,
                inserted_at=self._clock(),
                ttl=self.default_ttl if ttl is None else ttl,
            )

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove expired entries. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            _logger.debug(
                f"Swept {len(expired)} expired entries from {self.name}",
                extra={"event": "cache_sweep", "cache": self.name, "removed": len(expired)},
            )
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
            }


# =============================================================================
# Key helpers
# =============================================================================

def search_cache_key(query: str, limit: int) -> str:
    return f"search:{query.lower().strip()}:{limit}"


def response_cache_key(query: str, candidate_ids: Iterable[str]) -> str:
    return f"ai:{query.lower().strip()}:{','.join(sorted(candidate_ids))}"


# =============================================================================
# Background sweeper
# =============================================================================

class CacheSweeper:
    """
    Daemon thread that periodically removes expired entries.

    Targets are any objects with a ``sweep()`` method (TTLCache) or a
    ``sweep_expired()`` method (SessionStore). The sweeper only deletes; a
    lookup racing a sweep may or may not see the entry, both are correct.

    Usage:
        sweeper = CacheSweeper(interval=300, targets=[search_cache, sessions])
        sweeper.start()
        ...
        sweeper.stop()
    """

    def __init__(self, interval: float, targets: list):
        self.interval = interval
        self.targets = targets
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        removed = 0
        for target in self.targets:
            sweep = getattr(target, "sweep", None) or getattr(target, "sweep_expired", None)
            if sweep is None:
                continue
            try:
                removed += sweep()
            except Exception as e:
                _logger.warning(
                    f"Sweep failed for {type(target).__name__}: {e}",
                    extra={"event": "cache_sweep_error", "error_type": type(e).__name__},
                )
        return removed

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()

    def start(self) -> None:
        if self.interval <= 0 or (self._thread and self._thread.is_alive()):
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="cache-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
