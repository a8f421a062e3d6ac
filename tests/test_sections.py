"""Tests for section definitions and their validation."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

import pytest

from aggregation.value_types import MetricValueType
from dashboard import statistics
from dashboard.sections import SECTION_BY_ID, SECTIONS, validate_sections
from dashboard.services import build_demo_sources

pytestmark = pytest.mark.unit


@pytest.fixture(scope="module")
def declarations() -> tuple[dict[str, frozenset[str]], dict[str, frozenset[str]]]:
    sources = build_demo_sources(seed=1, days=2, until=datetime(2025, 3, 3, tzinfo=UTC))
    return (
        {key: frozenset(source.metrics) for key, source in sources.items()},
        {key: frozenset(source.dimensions) for key, source in sources.items()},
    )


def test_builtin_sections_match_demo_sources(declarations) -> None:
    metrics, dimensions = declarations

    validate_sections(SECTIONS, declared_metrics=metrics, declared_dimensions=dimensions)


def test_unknown_metric_reference_is_rejected(declarations) -> None:
    metrics, dimensions = declarations
    broken = replace(SECTION_BY_ID["users"], columns=(*SECTION_BY_ID["users"].columns, *SECTION_BY_ID["subs"].columns))

    with pytest.raises(ValueError, match="unknown metrics"):
        validate_sections((broken,), declared_metrics=metrics, declared_dimensions=dimensions)


def test_unknown_dimension_reference_is_rejected(declarations) -> None:
    metrics, dimensions = declarations
    broken = replace(SECTION_BY_ID["subs"], dimensions=(statistics.DIMENSION_USER_SOURCE,))

    with pytest.raises(ValueError, match="unknown dimensions"):
        validate_sections((broken,), declared_metrics=metrics, declared_dimensions=dimensions)


def test_duplicate_section_ids_are_rejected(declarations) -> None:
    metrics, dimensions = declarations

    with pytest.raises(ValueError, match="Duplicate section id"):
        validate_sections(
            (SECTION_BY_ID["users"], SECTION_BY_ID["users"]),
            declared_metrics=metrics,
            declared_dimensions=dimensions,
        )


def test_section_without_lod_levels_is_rejected(declarations) -> None:
    metrics, dimensions = declarations
    broken = replace(SECTION_BY_ID["users"], lod_levels=())

    with pytest.raises(ValueError, match="LOD level"):
        validate_sections((broken,), declared_metrics=metrics, declared_dimensions=dimensions)


def test_shadow_metric_value_type_is_resolved() -> None:
    section = SECTION_BY_ID["users"]

    assert section.value_type_for(statistics.USERS_TOTAL) is MetricValueType.ABSOLUTE
    assert section.chart_metric(statistics.USERS_ACTIVE).shadow_metrics == (
        (statistics.USERS_TOTAL, MetricValueType.RELATIVE),
    )
    assert section.chart_metric("missing") is None
