"""Metric value type definitions.

MetricValueType controls downstream formatting and axis comparison only; it
never changes the aggregation math.
"""

from __future__ import annotations

from enum import StrEnum


class MetricValueType(StrEnum):
    """Value type for a metric.

    Values are stable identifiers shared with the chart and table renderers.
    """

    ABSOLUTE = "ABSOLUTE"
    DECIMAL = "DECIMAL"
    RELATIVE = "RELATIVE"
    CURRENCY = "CURRENCY"
    MINUTES_AND_SECS = "MINUTES_AND_SECS"
    HOURS_AND_MINS = "HOURS_AND_MINS"
    DAYS_DECIMAL = "DAYS_DECIMAL"
