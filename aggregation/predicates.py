"""Dimension filter tokens and their evaluation against records.

A FilterToken is a tagged value: a predicate kind plus the expected value.
Kinds resolve through an explicit dispatch table of field extractors, so a
token can be serialized for transport without naming a method.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import UnknownPredicate

FieldExtractor = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class FilterToken:
    """A single dimension filter.

    Args:
        kind: Registered predicate kind, e.g. "has_country".
        expected: Value the extracted field must equal. None matches an absent
            or empty field.
    """

    kind: str
    expected: Hashable | None = None


def _is_empty(value: object) -> bool:
    return value is None or value == ""


def encode_token(token: FilterToken | None) -> str | None:
    """Encode a token into a compact JSON string for transport.

    Args:
        token: Token to encode, or None for "no filter".

    Returns:
        JSON text `[kind, expected]`, or None when no token is given.
    """

    if token is None:
        return None
    return json.dumps([token.kind, token.expected], separators=(",", ":"))


def decode_token(raw: str | None) -> FilterToken | None:
    """Decode a transported token produced by `encode_token`.

    Args:
        raw: JSON text, or None/empty string for "no filter".

    Returns:
        The decoded FilterToken, or None.

    Raises:
        UnknownPredicate: When the payload is not a `[kind, expected]` pair.
    """

    if raw is None or raw == "":
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise UnknownPredicate(f"Malformed filter token {raw!r}.") from exc
    if not isinstance(payload, list) or len(payload) != 2 or not isinstance(payload[0], str):
        raise UnknownPredicate(f"Malformed filter token {raw!r}.")
    kind, expected = payload
    if isinstance(expected, (list, dict)):
        raise UnknownPredicate(f"Filter token {raw!r} carries a non-scalar value.")
    return FilterToken(kind=kind, expected=expected)


class PredicateRegistry:
    """Dispatch table from predicate kind to record field extractor."""

    def __init__(self, extractors: Mapping[str, FieldExtractor]) -> None:
        """Initialize a registry.

        Args:
            extractors: Mapping of predicate kind -> callable reading one field
                off a record.
        """

        self._extractors: dict[str, FieldExtractor] = dict(extractors)

    @property
    def kinds(self) -> frozenset[str]:
        """Return the registered predicate kinds."""

        return frozenset(self._extractors)

    def matches(self, record: object, token: FilterToken) -> bool:
        """Return True when a record's field matches a token's expected value.

        Raises:
            UnknownPredicate: When the token kind is not registered.
        """

        extractor = self._extractors.get(token.kind)
        if extractor is None:
            raise UnknownPredicate(f"Unknown predicate kind {token.kind!r}.")
        actual = extractor(record)
        if token.expected is None:
            return _is_empty(actual)
        return actual == token.expected

    def evaluate_one(self, record: object, token: FilterToken | None, *, accepted: bool = True) -> bool:
        """Apply one filter on top of the current acceptance state.

        Args:
            record: Record under evaluation.
            token: Filter to apply; None leaves `accepted` unchanged.
            accepted: Acceptance state produced by previous filters.

        Returns:
            The updated acceptance state. A rejected record stays rejected.
        """

        if token is None:
            return accepted
        if not accepted:
            # Still resolve the kind so corrupted tokens fail loudly.
            if token.kind not in self._extractors:
                raise UnknownPredicate(f"Unknown predicate kind {token.kind!r}.")
            return False
        return self.matches(record, token)

    def evaluate(
        self,
        record: object,
        filter1: FilterToken | None = None,
        filter2: FilterToken | None = None,
    ) -> bool:
        """Evaluate up to two filters with a running accumulator.

        Each successive filter can only narrow acceptance, never restore it.
        """

        accepted = self.evaluate_one(record, filter1, accepted=True)
        return self.evaluate_one(record, filter2, accepted=accepted)
