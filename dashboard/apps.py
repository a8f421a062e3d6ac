"""App configuration for the dashboard Django app."""

from __future__ import annotations

from django.apps import AppConfig


class DashboardConfig(AppConfig):
    """Configuration for the `dashboard` app.

    The aggregation engines are built once here and read by the views.
    """

    name = "dashboard"

    def ready(self) -> None:
        from .services import build_services

        self.services = build_services()
