"""Tests for the single-flight fetch cache."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

import pytest

from aggregation.cache import CacheKey, FetchCache
from aggregation.predicates import FilterToken

pytestmark = pytest.mark.unit


def _key(**overrides) -> CacheKey:
    fields = {
        "metric": "A",
        "start": datetime(2025, 3, 3, tzinfo=UTC),
        "end": datetime(2025, 3, 10, tzinfo=UTC),
        "granularity": "day",
    }
    fields.update(overrides)
    return CacheKey(**fields)


def test_second_lookup_is_served_from_cache() -> None:
    cache: FetchCache[int] = FetchCache()
    calls: list[int] = []

    def compute() -> int:
        calls.append(1)
        return 42

    assert cache.get_or_compute(_key(), compute) == 42
    assert cache.get_or_compute(_key(), compute) == 42
    assert len(calls) == 1
    assert cache.stats.hits == 1
    assert cache.stats.misses == 1


def test_keys_differ_by_filter_tokens() -> None:
    """Series filtered by different tokens are stored separately."""

    cache: FetchCache[str] = FetchCache()

    cache.get_or_compute(_key(), lambda: "all")
    cache.get_or_compute(_key(token1=FilterToken("has_country", "CZ")), lambda: "cz")

    assert len(cache) == 2
    assert cache.get_or_compute(_key(token1=FilterToken("has_country", "CZ")), lambda: "other") == "cz"


def test_failed_compute_is_not_cached() -> None:
    cache: FetchCache[int] = FetchCache()

    def fail() -> int:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_compute(_key(), fail)

    assert _key() not in cache
    assert cache.get_or_compute(_key(), lambda: 7) == 7


def test_concurrent_callers_compute_once() -> None:
    """Callers racing on one key see one computation and the same value."""

    cache: FetchCache[object] = FetchCache()
    release = threading.Event()
    entered = threading.Event()
    calls: list[int] = []
    lock = threading.Lock()

    def compute() -> object:
        with lock:
            calls.append(1)
        entered.set()
        release.wait(timeout=5)
        return object()

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [pool.submit(cache.get_or_compute, _key(), compute) for _ in range(8)]
        assert entered.wait(timeout=5)
        release.set()
        results = [future.result(timeout=5) for future in futures]

    assert len(calls) == 1
    assert all(result is results[0] for result in results)


def test_clear_drops_entries_and_counters() -> None:
    cache: FetchCache[int] = FetchCache()
    cache.get_or_compute(_key(), lambda: 1)
    cache.get_or_compute(_key(), lambda: 1)

    cache.clear()

    assert len(cache) == 0
    assert cache.stats.hits == 0
    assert cache.stats.misses == 0


def test_repeated_failures_do_not_accumulate_key_locks() -> None:
    """Key locks are released whether the computation succeeds or raises."""

    cache: FetchCache[int] = FetchCache()

    def fail() -> int:
        raise RuntimeError("boom")

    for day in range(1, 6):
        with pytest.raises(RuntimeError):
            cache.get_or_compute(_key(start=datetime(2025, 3, day, tzinfo=UTC)), fail)
    cache.get_or_compute(_key(), lambda: 1)

    assert cache._key_locks == {}
    assert len(cache) == 1


def test_waiters_recompute_once_after_failed_computation() -> None:
    """Callers queued behind a failing computation still compute one at a time."""

    cache: FetchCache[str] = FetchCache()
    release = threading.Event()
    entered = threading.Event()
    attempts: list[int] = []
    lock = threading.Lock()

    def compute() -> str:
        with lock:
            attempts.append(1)
            first = len(attempts) == 1
        if first:
            entered.set()
            release.wait(timeout=5)
            raise RuntimeError("first attempt fails")
        return "ok"

    with ThreadPoolExecutor(max_workers=6) as pool:
        futures = [pool.submit(cache.get_or_compute, _key(), compute) for _ in range(6)]
        assert entered.wait(timeout=5)
        release.set()
        outcomes = []
        for future in futures:
            try:
                outcomes.append(future.result(timeout=5))
            except RuntimeError:
                outcomes.append("failed")

    assert outcomes.count("failed") == 1
    assert outcomes.count("ok") == 5
    assert len(attempts) == 2
    assert cache._key_locks == {}
