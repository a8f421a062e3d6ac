"""Chart and table data-load handlers.

Handlers validate request parameters with the dashboard forms, call the
aggregation engine, and shape the payload consumed by the chart (C3-style
columns/axes) and table (DataTables-style rows/summary) renderers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, date, datetime
from typing import Any, Final

from aggregation.axes import assign_axes
from aggregation.buckets import Granularity, shift, truncate_date
from aggregation.dto import Metric
from aggregation.engine import AggregationEngine
from aggregation.predicates import encode_token
from aggregation.value_types import MetricValueType

from .forms import ChartDataForm, TableDataForm, TableRowDataForm
from .sections import SectionConfig
from .services import DashboardServices

PRIMARY_METRIC_KEY: Final[str] = "primary_metric"
SECONDARY_METRIC_KEY: Final[str] = "secondary_metric"
PRIMARY_DIMENSION_KEY: Final[str] = "primary_dimension"
SECONDARY_DIMENSION_KEY: Final[str] = "secondary_dimension"
X_AXIS_KEY: Final[str] = "x"
AXIS_KEYS: Final[dict[str, str]] = {"primary": "y", "secondary": "y2"}

Payload = dict[str, Any]


class InvalidRequest(ValueError):
    """Raised when request parameters fail form validation."""

    def __init__(self, errors: Mapping[str, list[str]]) -> None:
        super().__init__("Invalid request parameters.")
        self.errors = dict(errors)


def resolve_range(start_date: date, end_date: date, lod: Granularity) -> tuple[datetime, datetime]:
    """Convert an inclusive date range into bucket-aligned `[start, end)` bounds.

    The bucket containing `end_date` is included.
    """

    start = truncate_date(start_date, lod).replace(tzinfo=UTC)
    last = truncate_date(end_date, lod).replace(tzinfo=UTC)
    return start, shift(last, lod, 1)


def _bind(
    form_class: type[ChartDataForm] | type[TableDataForm],
    params: Mapping[str, Any],
    *,
    section: SectionConfig,
    services: DashboardServices,
    today: date | None,
    **form_kwargs: Any,
) -> dict[str, Any]:
    form = form_class(
        params,
        section=section,
        today=today,
        default_range_days=services.default_range_days,
        **form_kwargs,
    )
    if not form.is_valid():
        raise InvalidRequest({field: [str(error) for error in errors] for field, errors in form.errors.items()})
    return form.cleaned_data


def _section_metric(
    engine: AggregationEngine,
    section: SectionConfig,
    metric_key: str,
    value_type: MetricValueType | None = None,
) -> Metric:
    metric = engine.catalog.metric(metric_key)
    return replace(metric, value_type=value_type or section.value_type_for(metric_key))


def load_chart_data(
    services: DashboardServices,
    section: SectionConfig,
    params: Mapping[str, Any],
    *,
    today: date | None = None,
) -> Payload:
    """Return chart columns, captions and axis assignment.

    The secondary metric is ignored when it equals the primary one. Shadow
    metrics of the primary metric are added only when no secondary metric is
    active.
    """

    cleaned = _bind(ChartDataForm, params, section=section, services=services, today=today)
    engine = services.engine_for(section)
    lod: Granularity = cleaned["lod"]
    primary: str = cleaned["primary_metric"]
    secondary: str | None = cleaned["secondary_metric"]
    if secondary == primary:
        secondary = None

    metric_keys = [primary]
    shadow_types: dict[str, MetricValueType] = {}
    if secondary is not None:
        metric_keys.append(secondary)
    else:
        config = section.chart_metric(primary)
        shadows = config.shadow_metrics if config is not None else ()
        for shadow_key, shadow_type in shadows:
            if shadow_key not in metric_keys:
                metric_keys.append(shadow_key)
                shadow_types[shadow_key] = shadow_type

    start, end = resolve_range(cleaned["start_date"], cleaned["end_date"], lod)
    timeline = engine.get_timeline(metric_keys, start, end, lod)
    metrics = {key: _section_metric(engine, section, key, shadow_types.get(key)) for key in metric_keys}
    axes = assign_axes(services.axis_switch, primary=metrics[primary], metrics=metrics, columns=timeline.columns)

    def chart_key(metric_key: str) -> str:
        if metric_key == primary:
            return PRIMARY_METRIC_KEY
        if metric_key == secondary:
            return SECONDARY_METRIC_KEY
        return metric_key

    columns: list[list[Any]] = [[X_AXIS_KEY, *timeline.labels]]
    names: dict[str, str] = {}
    chart_axes: dict[str, str] = {}
    for metric_key, values in timeline.columns.items():
        key = chart_key(metric_key)
        columns.append([key, *values])
        names[key] = metrics[metric_key].label
        if metric_key in axes:
            chart_axes[key] = AXIS_KEYS[axes[metric_key]]
    return {"columns": columns, "names": names, "axes": chart_axes}


def load_table_data(
    services: DashboardServices,
    section: SectionConfig,
    params: Mapping[str, Any],
    *,
    today: date | None = None,
) -> Payload:
    """Return pivot rows, dimension ids/captions and the column summary.

    The secondary dimension is ignored when it equals the primary one.
    """

    cleaned = _bind(TableDataForm, params, section=section, services=services, today=today)
    engine = services.engine_for(section)
    lod: Granularity = cleaned["lod"]
    primary: str = cleaned["primary_dimension"]
    secondary: str | None = cleaned["secondary_dimension"]
    if secondary == primary:
        secondary = None
    dimensions = [primary] if secondary is None else [primary, secondary]

    start, end = resolve_range(cleaned["start_date"], cleaned["end_date"], lod)
    result = engine.get_tabular(
        [column.metric_key for column in section.columns],
        start,
        end,
        lod,
        dimensions,
        display_average={column.metric_key: column.display_average for column in section.columns},
    )

    rows: list[Payload] = []
    primary_ids: list[str | None] = []
    secondary_ids: list[str | None] = []
    for row in result.rows:
        payload: Payload = dict(row.values)
        item = row.dimensions[primary]
        primary_ids.append(encode_token(item.token))
        payload[PRIMARY_DIMENSION_KEY] = item.value
        payload[SECONDARY_DIMENSION_KEY] = None
        if secondary is not None:
            item = row.dimensions[secondary]
            secondary_ids.append(encode_token(item.token))
            payload[SECONDARY_DIMENSION_KEY] = item.value
        rows.append(payload)

    return {
        "summary": {key: summary.as_json() for key, summary in result.summary.items()},
        "rows": rows,
        "primary_dimension_ids": primary_ids,
        "primary_dimension_caption": engine.catalog.dimension(primary).label,
        "secondary_dimension_active": secondary is not None,
        "secondary_dimension_ids": secondary_ids,
        "secondary_dimension_caption": engine.catalog.dimension(secondary).label if secondary else "",
    }


def load_table_row_data(
    services: DashboardServices,
    section: SectionConfig,
    params: Mapping[str, Any],
    *,
    today: date | None = None,
) -> Payload:
    """Return the primary metric's timeline narrowed to one table row.

    Chart timelines honor only the row's primary dimension item.
    """

    engine = services.engine_for(section)
    cleaned = _bind(TableRowDataForm, params, section=section, services=services, today=today, engine=engine)
    lod: Granularity = cleaned["lod"]
    tokens = [cleaned["primary_dimension_id"]]
    if cleaned["secondary_dimension"]:
        tokens.append(cleaned["secondary_dimension_id"])

    start, end = resolve_range(cleaned["start_date"], cleaned["end_date"], lod)
    timeline = engine.get_timeline([cleaned["primary_metric"]], start, end, lod, tokens)
    return {"columns": [[cleaned["key"], *values] for values in timeline.columns.values()]}
