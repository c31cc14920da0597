"""Storage backend that keeps cache entries in a Django cache."""
from __future__ import annotations

from typing import Any

from django.core.cache.backends.base import BaseCache


class DjangoCacheStorage:
    """Expose a Django cache through the ``get_item``/``set_item`` storage contract.

    Entries are stored without a backend timeout: expiry is decided by
    :class:`snowalert.cache.CacheStore` from the entry's own timestamp.
    """

    def __init__(self, cache: BaseCache, prefix: str = "snowalert:") -> None:
        self._cache = cache
        self._prefix = prefix

    def get_item(self, key: str) -> Any:
        return self._cache.get(self._prefix + key)

    def set_item(self, key: str, value: Any) -> None:
        self._cache.set(self._prefix + key, value, timeout=None)


__all__ = ["DjangoCacheStorage"]
