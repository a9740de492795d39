"""
Process-local TTL caches with periodic sweeping.

Used for payment idempotency keys, session-policy lookups, WebAuthn
challenges and login attempt counters.
"""

import asyncio
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from typing import Generic, TypeVar

from .logging import get_logger

K = TypeVar("K")
V = TypeVar("V")

logger = get_logger(__name__)


class TTLCache(Generic[K, V]):
    """Thread-safe in-memory map with per-entry expiry.

    - Expired entries are dropped lazily on read and eagerly by ``sweep()``.
    - When ``max_size`` is exceeded the oldest entries are trimmed down to
      ``trim_to`` (defaults to ``max_size``).
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        max_size: int | None = None,
        trim_to: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.trim_to = trim_to if trim_to is not None else max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[K, tuple[float, V]] = OrderedDict()

    def get(self, key: K) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock() + ttl, value)
            if self.max_size is not None and len(self._entries) > self.max_size:
                while len(self._entries) > self.trim_to:
                    self._entries.popitem(last=False)

    def pop(self, key: K) -> V | None:
        """Remove and return a live entry."""
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None or entry[0] <= self._clock():
            return None
        return entry[1]

    def delete(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (exp, _) in self._entries.items() if exp <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None


# Caches registered here are swept by ``periodic_sweep``
_registry: list[TTLCache] = []


def register_cache(cache: TTLCache) -> TTLCache:
    _registry.append(cache)
    return cache


def registered_caches() -> list[TTLCache]:
    return list(_registry)


def sweep_all(caches: Iterable[TTLCache] | None = None) -> int:
    """Sweep every cache once, logging failures without raising."""
    total = 0
    for cache in caches if caches is not None else _registry:
        try:
            removed = cache.sweep()
        except Exception as e:
            logger.warning(f"Cache sweep failed for {cache.name}: {e}")
            continue
        if removed:
            logger.debug(f"Swept {removed} expired entries from {cache.name}")
        total += removed
    return total


async def periodic_sweep(interval_seconds: float) -> None:
    """Background task that sweeps all registered caches until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        sweep_all()
