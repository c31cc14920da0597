from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from numbers import Real
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, TypeVar

from .factories import to_number

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 30 * 60 * 1000

ENTRY_FIELDS = frozenset({"data", "timestamp", "ttl"})

T = TypeVar("T")


def now_ms() -> int:
    return int(time.time() * 1000)


class StorageBackend(Protocol):
    """Key/value storage holding plain JSON-compatible values."""

    def get_item(self, key: str) -> Any:
        """Return the stored value or ``None`` when the key is absent."""
        ...

    def set_item(self, key: str, value: Any) -> None:
        ...


class MemoryStorage:
    """Process-local storage; values are copied through JSON like a persistent store."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Any:
        raw = self._items.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_item(self, key: str, value: Any) -> None:
        self._items[key] = json.dumps(value, ensure_ascii=False)

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._items


@dataclass(frozen=True)
class CacheEntry:
    data: Any
    timestamp: int
    ttl: int

    def is_fresh(self, now: int) -> bool:
        return now - self.timestamp < self.ttl

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "timestamp": self.timestamp, "ttl": self.ttl}

    @classmethod
    def from_value(cls, value: Any) -> Optional["CacheEntry"]:
        """Rebuild an entry from storage, ``None`` when the value is malformed."""
        if not isinstance(value, Mapping) or set(value.keys()) != ENTRY_FIELDS:
            return None
        timestamp = value["timestamp"]
        ttl = value["ttl"]
        for number in (timestamp, ttl):
            if isinstance(number, bool) or not isinstance(number, Real):
                return None
        return cls(data=value["data"], timestamp=timestamp, ttl=ttl)


def create_cache_entry(data: Any, ttl: Any = DEFAULT_TTL_MS, timestamp: Optional[int] = None) -> CacheEntry:
    """Build an entry stamped ``timestamp`` (now by default); negative TTLs become 0."""
    valid_ttl = int(max(to_number(ttl, DEFAULT_TTL_MS), 0))
    if timestamp is None:
        timestamp = now_ms()
    return CacheEntry(data=data, timestamp=timestamp, ttl=valid_ttl)


class CacheStore:
    """TTL cache over a swappable storage backend.

    Timestamps and TTLs are integer milliseconds. An entry is valid while
    ``now - timestamp < ttl``; expired or malformed entries read as misses but
    are left in storage.
    """

    def __init__(
        self,
        storage: Optional[StorageBackend] = None,
        *,
        ttl: int = DEFAULT_TTL_MS,
        time_func: Callable[[], int] = now_ms,
    ) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.default_ttl = ttl
        self._time_func = time_func

    def set(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        entry = create_cache_entry(
            data,
            self.default_ttl if ttl is None else ttl,
            timestamp=self._time_func(),
        )
        self.storage.set_item(key, entry.to_dict())

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._load(key)
        if entry is None or not entry.is_fresh(self._time_func()):
            return default
        return entry.data

    def peek(self, key: str, default: Any = None) -> Any:
        """Stored data regardless of age; ``default`` when absent or malformed."""
        entry = self._load(key)
        if entry is None:
            return default
        return entry.data

    def is_valid(self, key: str) -> bool:
        entry = self._load(key)
        return entry is not None and entry.is_fresh(self._time_func())

    async def force_refresh(self, key: str, fetch: Callable[[], Awaitable[T]], ttl: Optional[int] = None) -> T:
        """Await ``fetch`` and store its result.

        When ``fetch`` raises, the error propagates and the stored entry is
        not touched, so the previous value stays readable.
        """
        try:
            data = await fetch()
        except Exception:
            logger.warning("Refresh of cache key %s failed, keeping previous entry", key)
            raise
        self.set(key, data, ttl)
        return data

    def _load(self, key: str) -> Optional[CacheEntry]:
        value = self.storage.get_item(key)
        if value is None:
            return None
        entry = CacheEntry.from_value(value)
        if entry is None:
            logger.debug("Ignoring malformed cache entry for %s", key)
        return entry


__all__ = [
    "DEFAULT_TTL_MS",
    "CacheEntry",
    "CacheStore",
    "MemoryStorage",
    "StorageBackend",
    "create_cache_entry",
    "now_ms",
]
