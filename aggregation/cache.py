"""Memoization of per-bucket series computations.

The cache is the only shared mutable state in the engine. It guarantees at
most one successful computation per key: concurrent callers for the same key
wait on a key-scoped lock and then read the stored value.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from .predicates import FilterToken

V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Identity of one bucketed series.

    Attributes:
        metric: Metric key.
        start: Inclusive range start.
        end: Exclusive range end.
        granularity: Granularity token.
        token1: First dimension filter, if any.
        token2: Second dimension filter, if any.
    """

    metric: str
    start: datetime
    end: datetime
    granularity: str
    token1: FilterToken | None = None
    token2: FilterToken | None = None


@dataclass(slots=True)
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


@dataclass(slots=True)
class CacheStats:
    """Hit/miss counters for a FetchCache."""

    hits: int = 0
    misses: int = 0


class FetchCache(Generic[V]):
    """Process-lifetime memoization with single-flight computation per key.

    Entries are never evicted and never expire. A computation that raises
    stores nothing, so a later caller computes again.
    """

    def __init__(self) -> None:
        self._values: dict[Hashable, V] = {}
        self._key_locks: dict[Hashable, _KeyLock] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._values

    def _lookup(self, key: Hashable) -> tuple[bool, V | None]:
        with self._lock:
            if key in self._values:
                self.stats.hits += 1
                return True, self._values[key]
            return False, None

    def _acquire_key_lock(self, key: Hashable) -> threading.Lock:
        with self._lock:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._key_locks[key] = entry
            entry.users += 1
            return entry.lock

    def _release_key_lock(self, key: Hashable) -> None:
        # A key lock is dropped once no caller holds or waits on it.
        with self._lock:
            entry = self._key_locks[key]
            entry.users -= 1
            if entry.users == 0:
                del self._key_locks[key]

    def get_or_compute(self, key: Hashable, compute: Callable[[], V]) -> V:
        """Return the cached value for `key`, computing it at most once.

        Args:
            key: Hashable cache key (usually a CacheKey).
            compute: Zero-argument callable producing the value.

        Returns:
            The stored or freshly computed value.
        """

        found, value = self._lookup(key)
        if found:
            return value  # type: ignore[return-value]

        lock = self._acquire_key_lock(key)
        try:
            with lock:
                found, value = self._lookup(key)
                if found:
                    return value  # type: ignore[return-value]
                computed = compute()
                with self._lock:
                    self._values[key] = computed
                    self.stats.misses += 1
                return computed
        finally:
            self._release_key_lock(key)

    def clear(self) -> None:
        """Drop every stored entry and reset the counters."""

        with self._lock:
            self._values.clear()
            self.stats = CacheStats()
