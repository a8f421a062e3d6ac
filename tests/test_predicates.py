"""Tests for filter tokens and the predicate registry."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from aggregation.errors import UnknownPredicate
from aggregation.predicates import FilterToken, PredicateRegistry, decode_token, encode_token

pytestmark = pytest.mark.unit


@pytest.fixture
def registry() -> PredicateRegistry:
    return PredicateRegistry(
        {
            "has_country": lambda record: record.country,
            "has_device": lambda record: record.device,
        }
    )


def test_no_filters_accept_every_record(registry: PredicateRegistry) -> None:
    record = SimpleNamespace(country="CZ", device="ios")

    assert registry.evaluate(record) is True


def test_filters_narrow_acceptance(registry: PredicateRegistry) -> None:
    """Both filters must match for a record to be accepted."""

    record = SimpleNamespace(country="CZ", device="ios")

    assert registry.evaluate(record, FilterToken("has_country", "CZ"), FilterToken("has_device", "ios"))
    assert not registry.evaluate(record, FilterToken("has_country", "CZ"), FilterToken("has_device", "web"))
    assert not registry.evaluate(record, FilterToken("has_country", "DE"), FilterToken("has_device", "ios"))


def test_second_filter_cannot_restore_rejected_record(registry: PredicateRegistry) -> None:
    """A record rejected by filter 1 stays rejected even if filter 2 matches."""

    record = SimpleNamespace(country="CZ", device="ios")

    accepted = registry.evaluate_one(record, FilterToken("has_country", "SK"))
    assert accepted is False
    assert registry.evaluate_one(record, FilterToken("has_device", "ios"), accepted=accepted) is False


def test_none_expected_matches_empty_fields(registry: PredicateRegistry) -> None:
    token = FilterToken("has_country", None)

    assert registry.matches(SimpleNamespace(country="", device="ios"), token)
    assert registry.matches(SimpleNamespace(country=None, device="ios"), token)
    assert not registry.matches(SimpleNamespace(country="US", device="ios"), token)


def test_unknown_kind_raises(registry: PredicateRegistry) -> None:
    record = SimpleNamespace(country="CZ", device="ios")

    with pytest.raises(UnknownPredicate):
        registry.evaluate(record, FilterToken("has_planet", "Mars"))


def test_unknown_kind_raises_even_after_rejection(registry: PredicateRegistry) -> None:
    record = SimpleNamespace(country="CZ", device="ios")

    with pytest.raises(UnknownPredicate):
        registry.evaluate(record, FilterToken("has_country", "DE"), FilterToken("has_planet", "Mars"))


def test_registry_exposes_kinds(registry: PredicateRegistry) -> None:
    assert registry.kinds == frozenset({"has_country", "has_device"})


@pytest.mark.parametrize(
    "token",
    [
        FilterToken("has_country", "CZ"),
        FilterToken("has_inviter", True),
        FilterToken("has_country", None),
    ],
)
def test_tokens_survive_transport(token: FilterToken) -> None:
    assert decode_token(encode_token(token)) == token


def test_no_filter_encodes_to_none() -> None:
    assert encode_token(None) is None
    assert decode_token(None) is None
    assert decode_token("") is None


@pytest.mark.parametrize("raw", ["not json", '{"kind": "x"}', '["has_country"]', '[1, "CZ"]', '["has_country", [1]]'])
def test_decode_rejects_malformed_tokens(raw: str) -> None:
    with pytest.raises(UnknownPredicate):
        decode_token(raw)
