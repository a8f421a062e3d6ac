"""DTO types used and returned by the aggregation engine.

DTOs are plain, immutable data containers. They intentionally avoid any
Django dependencies so the engine can be exercised in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .predicates import FilterToken, encode_token
from .value_types import MetricValueType

BUCKET_LABEL_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True, slots=True)
class Metric:
    """A metric declared by a data source.

    Attributes:
        key: Stable metric identifier.
        label: Human-friendly label.
        description: Longer description for table headers and tooltips.
        value_type: Value type used for formatting and axis comparison.
    """

    key: str
    label: str
    description: str = ""
    value_type: MetricValueType = MetricValueType.ABSOLUTE


@dataclass(frozen=True, slots=True)
class Dimension:
    """A categorical axis along which metrics can be filtered and grouped."""

    key: str
    label: str


@dataclass(frozen=True, slots=True)
class DimensionItem:
    """One selectable value of a dimension.

    Attributes:
        token: Filter applied for this item; None means "no filter".
        value: Display value shown in tables.
    """

    token: FilterToken | None
    value: str

    def as_json(self) -> dict[str, str | None]:
        """Return a JSON-serializable representation with an encoded token."""

        return {"id": encode_token(self.token), "value": self.value}


NO_FILTER_ITEM = DimensionItem(token=None, value="")


@dataclass(frozen=True, slots=True)
class Bucket:
    """A half-open time interval `[start, end)`."""

    start: datetime
    end: datetime

    @property
    def label(self) -> str:
        """Return the bucket label used on chart x axes."""

        return self.start.strftime(BUCKET_LABEL_FORMAT)


@dataclass(frozen=True, slots=True)
class BucketValue:
    """A single aggregated value for one bucket."""

    bucket: Bucket
    value: float


@dataclass(frozen=True, slots=True)
class TimelineResult:
    """Aligned multi-metric time series.

    Attributes:
        labels: Bucket labels shared by every column.
        columns: Mapping of metric key -> values aligned by bucket index.
    """

    labels: list[str]
    columns: dict[str, list[float]]

    def as_json(self) -> dict[str, object]:
        return {"labels": list(self.labels), "columns": {key: list(values) for key, values in self.columns.items()}}


@dataclass(frozen=True, slots=True)
class PivotRow:
    """One cross-product combination of dimension items.

    Attributes:
        values: Mapping of metric key -> value summed over the whole range.
        dimensions: Mapping of dimension key -> resolved DimensionItem.
    """

    values: dict[str, float]
    dimensions: dict[str, DimensionItem] = field(default_factory=dict)

    def as_json(self) -> dict[str, object]:
        payload: dict[str, object] = dict(self.values)
        for key, item in self.dimensions.items():
            payload[key] = item.as_json()
        return payload


@dataclass(frozen=True, slots=True)
class ColumnSummary:
    """Summary of one pivot column.

    Attributes:
        total: Aggregate over the whole range, independent of row suppression.
        average: `total / row_count`, or None when not displayed or no rows.
    """

    total: float
    average: float | None = None

    def as_json(self) -> dict[str, float]:
        payload = {"total": self.total}
        if self.average is not None:
            payload["average"] = self.average
        return payload


@dataclass(frozen=True, slots=True)
class TabularResult:
    """Pivot rows plus an optional per-column summary."""

    rows: tuple[PivotRow, ...]
    summary: dict[str, ColumnSummary] = field(default_factory=dict)

    def as_json(self) -> dict[str, object]:
        return {
            "rows": [row.as_json() for row in self.rows],
            "summary": {key: summary.as_json() for key, summary in self.summary.items()},
        }
