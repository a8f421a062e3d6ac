"""Pytest fixtures shared across aggregation and dashboard tests."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import pytest

from aggregation.dto import Bucket, Dimension, DimensionItem, Metric
from aggregation.engine import AggregationEngine
from aggregation.predicates import FilterToken
from aggregation.source import FetchContext, StatisticsSource
from aggregation.value_types import MetricValueType

ValueFn = Callable[[Bucket, str, FilterToken | None, FilterToken | None], float]


class CountingSource(StatisticsSource):
    """Stub record source returning scripted values and counting fetch calls."""

    def __init__(self, value_fn: ValueFn, *, items: Sequence[DimensionItem] = ()) -> None:
        super().__init__(
            metrics=(
                Metric(key="A", label="Metric A"),
                Metric(key="B", label="Metric B"),
                Metric(key="M", label="Metric M", value_type=MetricValueType.CURRENCY),
            ),
            dimensions=(
                Dimension(key="letter", label="Letter"),
                Dimension(key="size", label="Size"),
            ),
        )
        self._value_fn = value_fn
        self._items = {
            "letter": tuple(items)
            or (
                DimensionItem(token=FilterToken("letter", "X"), value="X"),
                DimensionItem(token=FilterToken("letter", "Y"), value="Y"),
            ),
            "size": (
                DimensionItem(token=FilterToken("size", "S"), value="Small"),
                DimensionItem(token=FilterToken("size", "L"), value="Large"),
            ),
        }
        self._lock = threading.Lock()
        self.calls: list[tuple[Bucket, str, FilterToken | None, FilterToken | None]] = []

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def fetch(
        self,
        bucket: Bucket,
        metric_key: str,
        token1: FilterToken | None,
        token2: FilterToken | None,
        *,
        context: FetchContext | None = None,
    ) -> float:
        with self._lock:
            self.calls.append((bucket, metric_key, token1, token2))
        return self._value_fn(bucket, metric_key, token1, token2)

    def dimension_items(self, dimension_key: str) -> Sequence[DimensionItem]:
        return self._items[dimension_key]


@pytest.fixture
def week_start() -> datetime:
    """Return a Monday midnight used as a stable range start."""

    return datetime(2025, 3, 3, tzinfo=UTC)


@pytest.fixture
def make_source() -> Callable[..., CountingSource]:
    """Return a factory building CountingSource stubs."""

    def factory(value_fn: ValueFn | None = None, **kwargs) -> CountingSource:
        return CountingSource(value_fn or (lambda bucket, metric, t1, t2: 1.0), **kwargs)

    return factory


@pytest.fixture
def make_engine(make_source) -> Callable[..., tuple[AggregationEngine, CountingSource]]:
    """Return a factory building an engine over a fresh CountingSource."""

    def factory(value_fn: ValueFn | None = None, **kwargs) -> tuple[AggregationEngine, CountingSource]:
        source = make_source(value_fn, **kwargs)
        return AggregationEngine(source), source

    return factory


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    - `unit`: pure, fast tests exercising the aggregation package directly.
    - `integration`: tests touching Django views, settings or app startup.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
