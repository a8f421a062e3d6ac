"""Dimension catalog lookups with key validation."""

from __future__ import annotations

from collections.abc import Iterable

from .dto import NO_FILTER_ITEM, Dimension, DimensionItem, Metric
from .errors import UnsupportedDimension, UnsupportedMetric
from .source import RecordSource


class DimensionCatalog:
    """Resolve metric/dimension declarations and dimension items of a source."""

    def __init__(self, source: RecordSource) -> None:
        self._source = source

    def metric(self, key: str) -> Metric:
        """Return a declared metric.

        Raises:
            UnsupportedMetric: When the source does not declare `key`.
        """

        metric = self._source.metrics.get(key)
        if metric is None:
            raise UnsupportedMetric(key)
        return metric

    def metrics(self, keys: Iterable[str]) -> tuple[Metric, ...]:
        return tuple(self.metric(key) for key in keys)

    def dimension(self, key: str) -> Dimension:
        """Return a declared dimension.

        Raises:
            UnsupportedDimension: When the source does not declare `key`.
        """

        dimension = self._source.dimensions.get(key)
        if dimension is None:
            raise UnsupportedDimension(key)
        return dimension

    def items(self, dimension_key: str | None) -> tuple[DimensionItem, ...]:
        """Return the ordered items of a dimension.

        Args:
            dimension_key: Dimension to enumerate, or None for no dimension.

        Returns:
            Catalog items in source order; a single no-filter pseudo item when
            `dimension_key` is None.
        """

        if dimension_key is None:
            return (NO_FILTER_ITEM,)
        self.dimension(dimension_key)
        return tuple(self._source.dimension_items(dimension_key))
