"""Error taxonomy for the aggregation engine.

Caller errors (unsupported keys, malformed granularity tokens) are distinct
from collaborator failures so the boundary layer can map them to different
response codes. None of these errors are retried by the engine.
"""

from __future__ import annotations


class AggregationError(Exception):
    """Base class for every error raised by the aggregation engine."""


class UnsupportedMetric(AggregationError, KeyError):
    """Raised when a metric key is not declared by the data source."""

    def __init__(self, metric_key: str) -> None:
        """Initialize the error.

        Args:
            metric_key: The unknown metric key requested by the caller.
        """

        super().__init__(f"Unsupported metric {metric_key!r}.")
        self.metric_key = metric_key

    def __str__(self) -> str:
        return self.args[0]


class UnsupportedDimension(AggregationError, KeyError):
    """Raised when a dimension key is not declared by the data source."""

    def __init__(self, dimension_key: str) -> None:
        """Initialize the error.

        Args:
            dimension_key: The unknown dimension key requested by the caller.
        """

        super().__init__(f"Unsupported dimension {dimension_key!r}.")
        self.dimension_key = dimension_key

    def __str__(self) -> str:
        return self.args[0]


class InvalidGranularity(AggregationError, ValueError):
    """Raised when a granularity (LOD) token is not hour/day/week/month."""

    def __init__(self, token: object) -> None:
        super().__init__(f"Invalid granularity {token!r}; expected one of hour, day, week, month.")
        self.token = token


class UnknownPredicate(AggregationError):
    """Raised when a filter token names a predicate kind nobody registered.

    This indicates a corrupted token or a wiring bug, not a caller mistake.
    """


class RecordSourceFailure(AggregationError):
    """Raised when the record source collaborator fails to produce a value."""


class FetchCancelled(RecordSourceFailure):
    """Raised when a fetch context is cancelled or its deadline has passed."""
