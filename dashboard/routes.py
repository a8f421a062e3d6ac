"""Route table mapping component data-load requests to handlers.

Every `(component, method)` pair the dashboard serves is listed explicitly;
anything else is rejected before a handler runs.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date
from typing import Any, Final

from .components import Payload, load_chart_data, load_table_data, load_table_row_data
from .sections import SectionConfig
from .services import DashboardServices

Handler = Callable[..., Payload]

ROUTES: Final[Mapping[tuple[str, str], Handler]] = {
    ("chart", "loadData"): load_chart_data,
    ("chart", "loadTableRowData"): load_table_row_data,
    ("table", "loadData"): load_table_data,
}


def resolve_route(component: str, method: str) -> Handler | None:
    """Return the handler for a component method, or None when unrouted."""

    return ROUTES.get((component, method))


def dispatch(
    component: str,
    method: str,
    *,
    services: DashboardServices,
    section: SectionConfig,
    params: Mapping[str, Any],
    today: date | None = None,
) -> Payload:
    """Run the handler routed for `(component, method)`.

    Raises:
        LookupError: When no handler is routed for the pair.
    """

    handler = resolve_route(component, method)
    if handler is None:
        raise LookupError(f"No handler for {component}.{method}.")
    return handler(services, section, params, today=today)
