"""JSON views serving chart and table data for statistics sections."""

from __future__ import annotations

import logging

from django.apps import apps
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET

from aggregation.errors import InvalidGranularity, RecordSourceFailure, UnsupportedDimension, UnsupportedMetric

from .components import InvalidRequest
from .routes import dispatch, resolve_route
from .sections import LOD_LABELS, SECTION_BY_ID, SECTIONS
from .services import DashboardServices

logger = logging.getLogger(__name__)


def _services() -> DashboardServices:
    return apps.get_app_config("dashboard").services


def _error(message: object, *, status: int) -> JsonResponse:
    return JsonResponse({"status": "error", "data": message}, status=status)


@require_GET
def section_index(request: HttpRequest) -> JsonResponse:
    """List the available statistics sections."""

    return JsonResponse(
        {"status": "ok", "data": {"sections": [{"id": section.id, "title": section.title} for section in SECTIONS]}}
    )


@require_GET
def section_structure(request: HttpRequest, section_id: str) -> JsonResponse:
    """Describe a section's selectable metrics, columns and dimensions."""

    section = SECTION_BY_ID.get(section_id)
    if section is None:
        return _error(f"Unknown section {section_id!r}.", status=404)
    engine = _services().engine_for(section)

    metrics = []
    for config in section.chart_metrics:
        metric = engine.catalog.metric(config.metric_key)
        metrics.append(
            {
                "key": metric.key,
                "caption": metric.label,
                "type": config.value_type.value,
                "shadowMetrics": {
                    key: {"caption": engine.catalog.metric(key).label, "type": value_type.value}
                    for key, value_type in config.shadow_metrics
                },
            }
        )
    columns = []
    for column in section.columns:
        metric = engine.catalog.metric(column.metric_key)
        columns.append(
            {
                "key": metric.key,
                "caption": metric.label,
                "description": metric.description,
                "type": column.value_type.value,
                "displayAverage": column.display_average,
            }
        )
    dimensions = [
        {"key": key, "caption": engine.catalog.dimension(key).label} for key in section.dimensions
    ]
    return JsonResponse(
        {
            "status": "ok",
            "data": {
                "id": section.id,
                "title": section.title,
                "metrics": metrics,
                "columns": columns,
                "dimensions": dimensions,
                "lod": {level.value: LOD_LABELS[level] for level in section.lod_levels},
            },
        }
    )


@require_GET
def component_data(request: HttpRequest, section_id: str, component: str, method: str) -> JsonResponse:
    """Serve one chart/table data-load request.

    Caller errors map to 400, unknown routes to 404 and record source failures
    to 502. Programmer errors (unknown predicates, missing source hooks)
    propagate.
    """

    section = SECTION_BY_ID.get(section_id)
    if section is None:
        return _error(f"Unknown section {section_id!r}.", status=404)
    if resolve_route(component, method) is None:
        return _error(f"Failed to initialize component {component}.{method}.", status=404)

    try:
        data = dispatch(component, method, services=_services(), section=section, params=request.GET)
    except InvalidRequest as exc:
        logger.warning("Rejected %s.%s request for %s: %s", component, method, section.id, exc.errors)
        return _error(exc.errors, status=400)
    except (UnsupportedMetric, UnsupportedDimension, InvalidGranularity) as exc:
        logger.warning("Rejected %s.%s request for %s: %s", component, method, section.id, exc)
        return _error(str(exc), status=400)
    except RecordSourceFailure as exc:
        logger.exception("Record source failed for %s.%s in section %s", component, method, section.id)
        return _error(str(exc), status=502)
    return JsonResponse({"status": "ok", "data": {"validation": True, **data}})
