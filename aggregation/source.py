"""Record source collaborators consumed by the aggregation engine.

The engine owns bucket/filter orchestration and caching only. A record source
answers one question: the aggregate of a metric over one bucket, narrowed by
up to two filter tokens. It also publishes the catalogs of its dimensions.
"""

from __future__ import annotations

import threading
import time
from bisect import bisect_left
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from .dto import Bucket, Dimension, DimensionItem, Metric
from .errors import FetchCancelled
from .predicates import FilterToken, PredicateRegistry


@dataclass(slots=True)
class FetchContext:
    """Deadline and cancellation state passed through record source calls.

    Attributes:
        deadline: Optional `time.monotonic()` value after which fetching stops.
        cancelled: Event set by the caller to abandon the request.
    """

    deadline: float | None = None
    cancelled: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def with_timeout(cls, seconds: float) -> "FetchContext":
        """Return a context whose deadline is `seconds` from now."""

        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self.cancelled.set()

    def check(self) -> None:
        """Raise FetchCancelled when the context is cancelled or expired."""

        if self.cancelled.is_set():
            raise FetchCancelled("Fetch cancelled by caller.")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise FetchCancelled("Fetch deadline exceeded.")


class RecordSource(Protocol):
    """Protocol for record source collaborators (duck-typed)."""

    metrics: Mapping[str, Metric]
    dimensions: Mapping[str, Dimension]

    def fetch(
        self,
        bucket: Bucket,
        metric_key: str,
        token1: FilterToken | None,
        token2: FilterToken | None,
        *,
        context: FetchContext | None = None,
    ) -> float: ...

    def dimension_items(self, dimension_key: str) -> Sequence[DimensionItem]: ...


class StatisticsSource:
    """Base class for data sources declaring metrics and dimensions.

    Subclasses must override `fetch` and `dimension_items`. The defaults fail
    fast instead of returning zeros.
    """

    def __init__(self, *, metrics: Iterable[Metric], dimensions: Iterable[Dimension] = ()) -> None:
        self.metrics: dict[str, Metric] = {}
        for metric in metrics:
            if metric.key in self.metrics:
                raise ValueError(f"Duplicate metric key: {metric.key!r}")
            self.metrics[metric.key] = metric
        self.dimensions: dict[str, Dimension] = {}
        for dimension in dimensions:
            if dimension.key in self.dimensions:
                raise ValueError(f"Duplicate dimension key: {dimension.key!r}")
            self.dimensions[dimension.key] = dimension

    def fetch(
        self,
        bucket: Bucket,
        metric_key: str,
        token1: FilterToken | None,
        token2: FilterToken | None,
        *,
        context: FetchContext | None = None,
    ) -> float:
        raise NotImplementedError(f"{type(self).__name__} does not implement data retrieval.")

    def dimension_items(self, dimension_key: str) -> Sequence[DimensionItem]:
        raise NotImplementedError(f"{type(self).__name__} does not implement dimension definitions.")


RecordPredicate = Callable[[Any], bool]


@dataclass(frozen=True, slots=True)
class MetricCounter:
    """Count-based metric: how many records in a bucket satisfy `predicate`."""

    metric: Metric
    predicate: RecordPredicate = lambda record: True


class RecordStreamSource(StatisticsSource):
    """Count metrics over an in-memory, timestamp-ordered record stream.

    Records are sorted once by `timestamp_of`; each fetch bisects the stream to
    the bucket and counts records accepted by the metric predicate and by both
    filter tokens.
    """

    def __init__(
        self,
        records: Iterable[Any],
        *,
        counters: Iterable[MetricCounter],
        dimensions: Iterable[Dimension] = (),
        catalogs: Mapping[str, Callable[[], Sequence[DimensionItem]]] | None = None,
        predicates: PredicateRegistry,
        timestamp_of: Callable[[Any], datetime],
    ) -> None:
        """Initialize a record stream source.

        Args:
            records: Records in any order.
            counters: Metric declarations with their record predicates.
            dimensions: Declared dimensions.
            catalogs: Mapping of dimension key -> callable returning its items.
            predicates: Registry resolving filter token kinds.
            timestamp_of: Callable returning a record's timestamp.
        """

        counters = tuple(counters)
        super().__init__(metrics=[counter.metric for counter in counters], dimensions=dimensions)
        self._counters = {counter.metric.key: counter for counter in counters}
        self._catalogs = dict(catalogs or {})
        self._predicates = predicates
        self._records = sorted(records, key=timestamp_of)
        self._timestamps = [timestamp_of(record) for record in self._records]

    @property
    def records(self) -> tuple[Any, ...]:
        return tuple(self._records)

    def fetch(
        self,
        bucket: Bucket,
        metric_key: str,
        token1: FilterToken | None,
        token2: FilterToken | None,
        *,
        context: FetchContext | None = None,
    ) -> float:
        counter = self._counters[metric_key]
        lo = bisect_left(self._timestamps, bucket.start)
        hi = bisect_left(self._timestamps, bucket.end, lo=lo)
        total = 0
        for record in self._records[lo:hi]:
            if not counter.predicate(record):
                continue
            if self._predicates.evaluate(record, token1, token2):
                total += 1
        return float(total)

    def dimension_items(self, dimension_key: str) -> Sequence[DimensionItem]:
        catalog = self._catalogs.get(dimension_key)
        if catalog is None:
            raise NotImplementedError(f"No catalog defined for dimension {dimension_key!r}.")
        return tuple(catalog())
