"""URL configuration for metricboard."""

from __future__ import annotations

from django.urls import include, path

urlpatterns = [
    path("statistics/", include("dashboard.urls")),
]
