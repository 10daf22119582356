"""Cache store — ABC, deterministic key derivation, and an in-memory TTL backend."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


def canonical_json(value: Any) -> str:
    """Serialize *value* with sorted keys and no insignificant whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False)


def make_key(tool_name: str, arguments: dict[str, Any]) -> str:
    """Deterministic cache key for a tool invocation.

    Arguments are normalized by dropping ``None`` values and sorting keys, so
    ``{"a": 1, "b": None}`` and ``{"a": 1}`` share an entry.
    """
    normalized = {k: v for k, v in arguments.items() if v is not None}
    digest = hashlib.sha256(canonical_json(normalized).encode()).hexdigest()[:24]
    return f"tool:{tool_name}:{digest}"


@dataclass(slots=True)
class CacheEntry:
    value: str
    expires_at: float


class CacheStore(ABC):
    """Async key/value store with a TTL on every entry.

    Swap to Redis by implementing this ABC. Implementations must never return
    an entry whose TTL has elapsed.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def invalidate_prefix(self, prefix: str) -> int: ...

    @abstractmethod
    async def clear(self) -> None: ...

    def stats(self) -> dict[str, Any]:
        return {}


class MemoryCacheStore(CacheStore):
    """Dict-backed store for a single process.

    All operations run without awaiting, so concurrent Turns on one event loop
    never observe a half-applied update. ``clock`` is injectable for tests.
    """

    def __init__(
        self,
        max_entries: int = 5000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            return None
        self._hits += 1
        return entry.value

    async def set(self, key: str, value: str, ttl: float) -> None:
        if ttl <= 0:
            return
        if key not in self._entries and len(self._entries) >= self._max_entries:
            self._evict()
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def invalidate_prefix(self, prefix: str) -> int:
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def clear(self) -> None:
        self._entries.clear()

    def _evict(self) -> None:
        """Drop expired entries, then the soonest-to-expire quarter if still full."""
        now = self._clock()
        for key in [k for k, e in self._entries.items() if now >= e.expires_at]:
            del self._entries[key]
        if len(self._entries) >= self._max_entries:
            ordered = sorted(self._entries, key=lambda k: self._entries[k].expires_at)
            for key in ordered[: max(1, self._max_entries // 4)]:
                del self._entries[key]
            logger.info("cache evicted to %d entries", len(self._entries))

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if now >= e.expires_at)
        return {
            "entries": len(self._entries),
            "active_entries": len(self._entries) - expired,
            "max_entries": self._max_entries,
            "hits": self._hits,
            "misses": self._misses,
        }
