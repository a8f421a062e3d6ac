"""Declarative statistics section definitions.

A section pairs one statistics source with the chart and table configuration
shown for it: which metrics are selectable, which shadow metrics accompany a
primary metric, which table columns display an average, and which dimensions
the table can pivot on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

from aggregation.buckets import Granularity
from aggregation.value_types import MetricValueType

from . import statistics

SourceKey = Literal["users", "subscriptions", "magazine_issues"]

LOD_LABELS: Final[dict[Granularity, str]] = {
    Granularity.hour: "hourly",
    Granularity.day: "daily",
    Granularity.week: "weekly",
    Granularity.month: "monthly",
}


@dataclass(frozen=True, slots=True)
class ChartMetricConfig:
    """A chart metric selectable as primary or secondary.

    Args:
        metric_key: Metric declared by the section source.
        value_type: Value type used for formatting and axis comparison.
        shadow_metrics: Metrics shown alongside this one when no secondary
            metric is selected, with their value types.
    """

    metric_key: str
    value_type: MetricValueType = MetricValueType.ABSOLUTE
    shadow_metrics: tuple[tuple[str, MetricValueType], ...] = ()


@dataclass(frozen=True, slots=True)
class ColumnConfig:
    """A table column."""

    metric_key: str
    value_type: MetricValueType = MetricValueType.ABSOLUTE
    display_average: bool = True


@dataclass(frozen=True, slots=True)
class SectionConfig:
    """Chart and table configuration for one statistics section.

    Args:
        id: Stable section identifier used in URLs.
        title: Menu title.
        source: Statistics source key.
        chart_metrics: Selectable chart metrics in display order.
        columns: Table columns in display order.
        dimensions: Dimensions selectable as primary/secondary table pivots.
        lod_levels: Granularities offered for the section.
    """

    id: str
    title: str
    source: SourceKey
    chart_metrics: tuple[ChartMetricConfig, ...]
    columns: tuple[ColumnConfig, ...]
    dimensions: tuple[str, ...]
    lod_levels: tuple[Granularity, ...] = (Granularity.day, Granularity.week, Granularity.month)

    def chart_metric(self, metric_key: str) -> ChartMetricConfig | None:
        for config in self.chart_metrics:
            if config.metric_key == metric_key:
                return config
        return None

    def value_type_for(self, metric_key: str) -> MetricValueType:
        """Return the configured value type of a chart metric.

        Chart metric declarations win over shadow declarations of the same key.
        """

        config = self.chart_metric(metric_key)
        if config is not None:
            return config.value_type
        for candidate in self.chart_metrics:
            for shadow_key, shadow_type in candidate.shadow_metrics:
                if shadow_key == metric_key:
                    return shadow_type
        return MetricValueType.ABSOLUTE


SECTIONS: Final[tuple[SectionConfig, ...]] = (
    SectionConfig(
        id="users",
        title="Users",
        source="users",
        chart_metrics=(
            ChartMetricConfig(
                metric_key=statistics.USERS_ACTIVE,
                shadow_metrics=((statistics.USERS_TOTAL, MetricValueType.RELATIVE),),
            ),
            ChartMetricConfig(metric_key=statistics.USERS_TOTAL),
        ),
        columns=(
            ColumnConfig(metric_key=statistics.USERS_ACTIVE),
            ColumnConfig(metric_key=statistics.USERS_TOTAL),
        ),
        dimensions=(
            statistics.DIMENSION_USER_REFERRAL,
            statistics.DIMENSION_USER_SOURCE,
            statistics.DIMENSION_USER_COUNTRY,
        ),
    ),
    SectionConfig(
        id="subs",
        title="Subscriptions",
        source="subscriptions",
        chart_metrics=(
            ChartMetricConfig(metric_key=statistics.SUBSCRIPTIONS_NEW),
            ChartMetricConfig(metric_key=statistics.SUBSCRIPTIONS_PAID),
        ),
        columns=(
            ColumnConfig(metric_key=statistics.SUBSCRIPTIONS_NEW),
            ColumnConfig(metric_key=statistics.SUBSCRIPTIONS_PAID, display_average=False),
        ),
        dimensions=(
            statistics.DIMENSION_SUBS_DEVICE,
            statistics.DIMENSION_SUBS_COUNTRY,
            statistics.DIMENSION_SUBS_TIER,
        ),
    ),
    SectionConfig(
        id="issues",
        title="Magazine issues",
        source="magazine_issues",
        chart_metrics=(
            ChartMetricConfig(
                metric_key=statistics.ISSUES_READ,
                shadow_metrics=((statistics.ISSUES_DOWNLOADED, MetricValueType.ABSOLUTE),),
            ),
            ChartMetricConfig(metric_key=statistics.ISSUES_DOWNLOADED),
        ),
        columns=(
            ColumnConfig(metric_key=statistics.ISSUES_READ),
            ColumnConfig(metric_key=statistics.ISSUES_DOWNLOADED),
        ),
        dimensions=(
            statistics.DIMENSION_ISSUE_DEVICE,
            statistics.DIMENSION_ISSUE_COUNTRY,
            statistics.DIMENSION_ISSUE_SUBSCRIPTION,
            statistics.DIMENSION_ISSUE_MAGAZINE,
            statistics.DIMENSION_ISSUE_MAGAZINE_ISSUE,
        ),
    ),
)

SECTION_BY_ID: Final[dict[str, SectionConfig]] = {section.id: section for section in SECTIONS}


def validate_sections(
    sections: tuple[SectionConfig, ...],
    *,
    declared_metrics: dict[str, frozenset[str]],
    declared_dimensions: dict[str, frozenset[str]],
) -> None:
    """Validate section definitions against their sources' declarations.

    Args:
        sections: Section definitions to validate.
        declared_metrics: Mapping of source key -> metric keys it declares.
        declared_dimensions: Mapping of source key -> dimension keys it declares.

    Raises:
        ValueError: When a section references an unknown key or repeats an id.
    """

    seen: set[str] = set()
    for section in sections:
        if section.id in seen:
            raise ValueError(f"Duplicate section id: {section.id!r}")
        seen.add(section.id)
        metrics = declared_metrics.get(section.source, frozenset())
        dimensions = declared_dimensions.get(section.source, frozenset())
        referenced = [config.metric_key for config in section.chart_metrics]
        referenced += [key for config in section.chart_metrics for key, _ in config.shadow_metrics]
        referenced += [column.metric_key for column in section.columns]
        unknown = sorted(set(referenced) - metrics)
        if unknown:
            raise ValueError(f"Section[{section.id!r}] references unknown metrics: {', '.join(unknown)}")
        unknown = sorted(set(section.dimensions) - dimensions)
        if unknown:
            raise ValueError(f"Section[{section.id!r}] references unknown dimensions: {', '.join(unknown)}")
        if not section.lod_levels:
            raise ValueError(f"Section[{section.id!r}] must enable at least one LOD level.")
