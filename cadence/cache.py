"""
Bounded signature cache.

Used only to avoid recomputation within one scheduling pass. Entries are
keyed by a hashable request signature, evicted least-recently-used once the
bound is reached, and the whole cache may be discarded at any time without
affecting results.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

from loguru import logger

from cadence.exceptions import InvalidInputError

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """LRU map with an explicit size bound."""

    def __init__(self, max_entries: int = 4096):
        if max_entries <= 0:
            raise InvalidInputError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: OrderedDict[Hashable, V] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get_or_compute(self, key: Hashable, compute: Callable[[], V]) -> V:
        """Return the cached value for ``key``, computing it on a miss."""
        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

        self.misses += 1
        value = compute()
        self._entries[key] = value
        if len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return value

    def clear(self) -> None:
        if self._entries:
            logger.debug(f"Clearing cache ({len(self._entries)} entries)")
        self._entries.clear()
        self.hits = 0
        self.misses = 0
