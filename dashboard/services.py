"""Construction of the aggregation engines served by the dashboard.

Engines are built once at app startup and passed explicitly to request
handlers. Each source gets its own engine and its own fetch cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from django.conf import settings

from aggregation.axes import AxisSwitch
from aggregation.engine import AggregationEngine
from aggregation.source import RecordSource

from .sections import SECTIONS, SectionConfig, validate_sections
from .statistics import (
    build_magazine_issue_statistics,
    build_subscription_statistics,
    build_user_statistics,
    demo_until,
    generate_issue_records,
    generate_subscription_records,
    generate_user_records,
)


@dataclass(frozen=True, slots=True)
class DashboardServices:
    """Engines and configuration shared by the dashboard request handlers.

    Args:
        engines: Mapping of source key -> AggregationEngine.
        axis_switch: Axis switch applied to every chart.
        default_range_days: Range length used when a request omits dates.
    """

    engines: dict[str, AggregationEngine]
    axis_switch: AxisSwitch
    default_range_days: int

    def engine_for(self, section: SectionConfig) -> AggregationEngine:
        return self.engines[section.source]


def build_demo_sources(*, seed: int, days: int, until: datetime | None = None) -> dict[str, RecordSource]:
    """Build the demo record sources keyed by source key."""

    end = until or demo_until()
    return {
        "users": build_user_statistics(generate_user_records(seed=seed, days=days, until=end)),
        "subscriptions": build_subscription_statistics(generate_subscription_records(seed=seed, days=days, until=end)),
        "magazine_issues": build_magazine_issue_statistics(generate_issue_records(seed=seed, days=days, until=end)),
    }


def build_services(
    *,
    sources: dict[str, RecordSource] | None = None,
    sections: tuple[SectionConfig, ...] = SECTIONS,
) -> DashboardServices:
    """Build dashboard services from Django settings.

    Args:
        sources: Optional record sources keyed by source key; the demo sources
            are built from settings when omitted.
        sections: Section definitions validated against the sources.

    Returns:
        DashboardServices ready to be passed to request handlers.
    """

    if sources is None:
        sources = build_demo_sources(seed=settings.METRICBOARD_DEMO_SEED, days=settings.METRICBOARD_DEMO_DAYS)
    validate_sections(
        sections,
        declared_metrics={key: frozenset(source.metrics) for key, source in sources.items()},
        declared_dimensions={key: frozenset(source.dimensions) for key, source in sources.items()},
    )
    return DashboardServices(
        engines={key: AggregationEngine(source) for key, source in sources.items()},
        axis_switch=AxisSwitch.from_setting(settings.METRICBOARD_AXIS_SWITCH),
        default_range_days=settings.METRICBOARD_DEFAULT_RANGE_DAYS,
    )
