"""URL configuration for dashboard views."""

from __future__ import annotations

from django.urls import path

from dashboard import views

app_name = "dashboard"

urlpatterns = [
    path("", views.section_index, name="section_index"),
    path("<slug:section_id>/", views.section_structure, name="section_structure"),
    path("<slug:section_id>/<slug:component>/<str:method>/", views.component_data, name="component_data"),
]
