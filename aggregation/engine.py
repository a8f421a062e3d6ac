"""Orchestration entry points for the aggregation engine.

The engine is a pure, non-Django module. It drives the bucketer and the
record source through the fetch cache and returns DTOs for charts (timeline)
and tables (tabular).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import TypeVar

from .buckets import Granularity, iter_buckets, parse_granularity
from .cache import CacheKey, FetchCache
from .catalog import DimensionCatalog
from .dto import (
    BucketValue,
    ColumnSummary,
    DimensionItem,
    PivotRow,
    TabularResult,
    TimelineResult,
)
from .errors import AggregationError, RecordSourceFailure
from .predicates import FilterToken
from .source import FetchContext, RecordSource

T = TypeVar("T")

Series = tuple[BucketValue, ...]


class AggregationEngine:
    """Aggregate a record source into timelines and pivot tables.

    Args:
        source: Record source collaborator.
        cache: Optional shared FetchCache; a private one is created by default.
    """

    def __init__(self, source: RecordSource, *, cache: FetchCache[Series] | None = None) -> None:
        self.source = source
        self.catalog = DimensionCatalog(source)
        self.cache: FetchCache[Series] = cache if cache is not None else FetchCache()

    def _call_source(self, call: Callable[[], T]) -> T:
        try:
            return call()
        except (AggregationError, NotImplementedError):
            raise
        except Exception as exc:
            raise RecordSourceFailure(f"Record source {type(self.source).__name__} failed: {exc}") from exc

    def _compute_series(
        self,
        key: CacheKey,
        lod: Granularity,
        context: FetchContext | None,
    ) -> Series:
        values: list[BucketValue] = []
        for bucket in iter_buckets(key.start, key.end, lod):
            if context is not None:
                context.check()
            value = self._call_source(
                lambda: self.source.fetch(bucket, key.metric, key.token1, key.token2, context=context)
            )
            values.append(BucketValue(bucket=bucket, value=float(value)))
        return tuple(values)

    def series(
        self,
        metric_key: str,
        start: datetime,
        end: datetime,
        granularity: Granularity | str,
        token1: FilterToken | None = None,
        token2: FilterToken | None = None,
        *,
        context: FetchContext | None = None,
    ) -> Series:
        """Return the bucketed series for one metric and filter pair.

        Results are memoized by `(metric, start, end, granularity, token1, token2)`.

        Raises:
            UnsupportedMetric: When the source does not declare `metric_key`.
            InvalidGranularity: When `granularity` is not a supported token.
            RecordSourceFailure: When the record source fails.
        """

        lod = parse_granularity(granularity)
        self.catalog.metric(metric_key)
        key = CacheKey(
            metric=metric_key,
            start=start,
            end=end,
            granularity=lod.value,
            token1=token1,
            token2=token2,
        )
        return self.cache.get_or_compute(key, lambda: self._compute_series(key, lod, context))

    def get_timeline(
        self,
        metrics: Sequence[str],
        start: datetime,
        end: datetime,
        granularity: Granularity | str,
        dimensions: Sequence[FilterToken | None] = (),
        *,
        context: FetchContext | None = None,
    ) -> TimelineResult:
        """Return an aligned multi-metric time series.

        Only the first dimension filter is honored; further ones are ignored.
        The first metric's bucket labels become the shared label axis.

        Args:
            metrics: Metric keys in display order.
            start: Inclusive range start.
            end: Exclusive range end.
            granularity: Bucket size token.
            dimensions: Dimension filter tokens; only the first one applies.
            context: Optional deadline/cancellation context.

        Returns:
            TimelineResult with one value per bucket for each metric.
        """

        lod = parse_granularity(granularity)
        token = dimensions[0] if dimensions else None
        labels: list[str] | None = None
        columns: dict[str, list[float]] = {}
        for metric_key in metrics:
            series = self.series(metric_key, start, end, lod, token, context=context)
            if labels is None:
                labels = [point.bucket.label for point in series]
            columns[metric_key] = [point.value for point in series]
        return TimelineResult(labels=labels or [], columns=columns)

    def dimension_items(self, dimension_key: str | None) -> tuple[DimensionItem, ...]:
        """Return a dimension's catalog items.

        Raises:
            UnsupportedDimension: When the source does not declare `dimension_key`.
            RecordSourceFailure: When the source fails to list the items.
        """

        return self._call_source(lambda: self.catalog.items(dimension_key))

    def _total(
        self,
        metric_key: str,
        start: datetime,
        end: datetime,
        lod: Granularity,
        token1: FilterToken | None,
        token2: FilterToken | None,
        context: FetchContext | None,
    ) -> float:
        series = self.series(metric_key, start, end, lod, token1, token2, context=context)
        return float(sum(point.value for point in series))

    def tabulate(
        self,
        metrics: Sequence[str],
        start: datetime,
        end: datetime,
        granularity: Granularity | str,
        dimensions: Sequence[str] = (),
        *,
        context: FetchContext | None = None,
    ) -> tuple[PivotRow, ...]:
        """Return pivot rows over up to two dimensions.

        Rows follow catalog order (dimension 1 outer, dimension 2 inner). A row
        is dropped when every metric sums to zero over the whole range.

        Args:
            metrics: Metric keys (table columns).
            start: Inclusive range start.
            end: Exclusive range end.
            granularity: Bucket size token used to fetch the series.
            dimensions: Up to two dimension keys; extra keys are ignored.
            context: Optional deadline/cancellation context.

        Returns:
            A tuple of surviving PivotRow values.
        """

        lod = parse_granularity(granularity)
        self.catalog.metrics(metrics)
        selected: list[str | None] = list(dimensions[:2])
        while len(selected) < 2:
            selected.append(None)
        dim1_key, dim2_key = selected
        dim1_items = self.dimension_items(dim1_key)
        dim2_items = self.dimension_items(dim2_key)

        rows: list[PivotRow] = []
        for item1 in dim1_items:
            for item2 in dim2_items:
                values: dict[str, float] = {}
                non_zero = False
                for metric_key in metrics:
                    value = self._total(metric_key, start, end, lod, item1.token, item2.token, context)
                    values[metric_key] = value
                    non_zero = non_zero or value != 0
                if not non_zero:
                    continue
                resolved: dict[str, DimensionItem] = {}
                if dim1_key is not None:
                    resolved[dim1_key] = item1
                if dim2_key is not None:
                    resolved[dim2_key] = item2
                rows.append(PivotRow(values=values, dimensions=resolved))
        return tuple(rows)

    def summarize(
        self,
        metrics: Sequence[str],
        start: datetime,
        end: datetime,
        granularity: Granularity | str,
        *,
        row_count: int,
        display_average: Mapping[str, bool] | None = None,
        context: FetchContext | None = None,
    ) -> dict[str, ColumnSummary]:
        """Summarize pivot columns.

        Totals come from a separate tabulation without dimensions, so they do
        not depend on which rows were suppressed.

        Args:
            metrics: Metric keys (table columns).
            start: Inclusive range start.
            end: Exclusive range end.
            granularity: Bucket size token.
            row_count: Number of rows displayed in the table.
            display_average: Mapping of metric key -> whether the column shows
                an average. Columns default to showing one.
            context: Optional deadline/cancellation context.

        Returns:
            Mapping of metric key -> ColumnSummary.
        """

        display_average = display_average or {}
        aggregate_rows = self.tabulate(metrics, start, end, granularity, (), context=context)
        totals = aggregate_rows[-1].values if aggregate_rows else {}
        summary: dict[str, ColumnSummary] = {}
        for metric_key in metrics:
            total = totals.get(metric_key, 0.0)
            average = None
            if display_average.get(metric_key, True) and row_count > 0:
                average = total / row_count
            summary[metric_key] = ColumnSummary(total=total, average=average)
        return summary

    def get_tabular(
        self,
        metrics: Sequence[str],
        start: datetime,
        end: datetime,
        granularity: Granularity | str,
        dimensions: Sequence[str] = (),
        *,
        display_average: Mapping[str, bool] | None = None,
        summarize: bool = True,
        context: FetchContext | None = None,
    ) -> TabularResult:
        """Return pivot rows and, optionally, their column summary."""

        rows = self.tabulate(metrics, start, end, granularity, dimensions, context=context)
        summary: dict[str, ColumnSummary] = {}
        if summarize:
            summary = self.summarize(
                metrics,
                start,
                end,
                granularity,
                row_count=len(rows),
                display_average=display_average,
                context=context,
            )
        return TabularResult(rows=rows, summary=summary)
