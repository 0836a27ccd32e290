"""
Small in-process TTL cache.

Registry clients keep one :class:`TTLCache` each for data that is
expensive to resolve but identical for every package in a batch (service
indexes, vulnerability index pages).  There is no locking: concurrent
fills of the same key are harmless and the last writer wins.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

from depradar.constants import DEFAULT_CACHE_TTL

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    stored_at: float


class TTLCache(Generic[V]):
    """Key/value cache whose entries expire after a fixed number of seconds.

    Expired entries are not evicted on read; :meth:`get_stale` can still
    return them, which lets callers fall back to old data when a refresh
    fails.

    Args:
        ttl: Lifetime of an entry in seconds.
        clock: Callable returning the current time in seconds.  Defaults
            to :func:`time.monotonic`; tests inject a fake.

    Example:
        >>> cache = TTLCache(ttl=60)
        >>> cache.set("index", {"resources": []})
        >>> cache.get("index")
        {'resources': []}
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        *,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.ttl = ttl
        self._clock = clock or time.monotonic
        self._entries: Dict[Hashable, _Entry[V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def _is_fresh(self, entry: _Entry[Any]) -> bool:
        return (self._clock() - entry.stored_at) < self.ttl

    def get(self, key: Hashable) -> Optional[V]:
        """Return the value for ``key`` if present and not expired."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return None
        return entry.value

    def get_stale(self, key: Hashable) -> Optional[V]:
        """Return the value for ``key`` regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: Hashable, value: V) -> None:
        """Store ``value`` under ``key`` with a fresh timestamp."""
        self._entries[key] = _Entry(value=value, stored_at=self._clock())

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
