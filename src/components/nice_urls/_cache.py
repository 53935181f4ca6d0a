"""
Conversion caches.

Forward (nice path -> internal URL) and inverse (internal URL -> nice URL)
results are memoized separately. Every entry remembers the rule that produced
it so deleting a rule can drop exactly its entries.

Eviction: each direction is an LRU bounded by ``max_entries``
(0 = unbounded). There is no TTL; staleness is bounded only by
``invalidate_rule``.
"""

from __future__ import annotations

import threading
from collections import OrderedDict

from .models import CachedUrl
from .ports import CacheDirection

DEFAULT_MAX_ENTRIES = 10_000


class InMemoryUrlCache:
    """Thread-safe in-process cache - suitable for single-process deployments."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._maps: dict[str, OrderedDict[str, CachedUrl]] = {
            "forward": OrderedDict(),
            "inverse": OrderedDict(),
        }

    def get(self, direction: CacheDirection, key: str) -> CachedUrl | None:
        with self._lock:
            entries = self._maps[direction]
            entry = entries.get(key)
            if entry is not None:
                entries.move_to_end(key)
            return entry

    def set(self, direction: CacheDirection, key: str, entry: CachedUrl) -> None:
        with self._lock:
            entries = self._maps[direction]
            entries[key] = entry
            entries.move_to_end(key)
            if self._max_entries:
                while len(entries) > self._max_entries:
                    entries.popitem(last=False)

    def invalidate_rule(self, rule_id: int) -> int:
        removed = 0
        with self._lock:
            for entries in self._maps.values():
                stale = [k for k, v in entries.items() if v.rule_id == rule_id]
                for key in stale:
                    del entries[key]
                removed += len(stale)
        return removed

    def clear(self) -> None:
        """Clear both directions - useful for testing."""
        with self._lock:
            for entries in self._maps.values():
                entries.clear()

    def size(self, direction: CacheDirection) -> int:
        with self._lock:
            return len(self._maps[direction])


class NullUrlCache:
    """Cache that stores nothing."""

    def get(self, direction: CacheDirection, key: str) -> CachedUrl | None:
        return None

    def set(self, direction: CacheDirection, key: str, entry: CachedUrl) -> None:
        return None

    def invalidate_rule(self, rule_id: int) -> int:
        return 0

    def clear(self) -> None:
        return None
