"""Time bucketing helpers.

Buckets are half-open `[start, end)` intervals produced in ascending order.
An empty or inverted range produces no buckets, so an empty range always maps
to an empty series.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from datetime import date, datetime, timedelta
from enum import StrEnum

from .dto import Bucket
from .errors import InvalidGranularity


class Granularity(StrEnum):
    """Bucketing granularity (level of detail)."""

    hour = "hour"
    day = "day"
    week = "week"
    month = "month"


def parse_granularity(token: object) -> Granularity:
    """Parse a boundary granularity token.

    Args:
        token: Raw token, expected to be one of hour/day/week/month.

    Returns:
        The matching Granularity.

    Raises:
        InvalidGranularity: When the token is not a supported granularity.
    """

    if isinstance(token, Granularity):
        return token
    if not isinstance(token, str):
        raise InvalidGranularity(token)
    try:
        return Granularity(token)
    except ValueError as exc:
        raise InvalidGranularity(token) from exc


def _add_months(moment: datetime, months: int) -> datetime:
    index = moment.month - 1 + months
    year = moment.year + index // 12
    month = index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def shift(moment: datetime, granularity: Granularity | str, steps: int = 1) -> datetime:
    """Move a timestamp by a number of whole buckets.

    Month steps respect variable month length: the day of month is clamped to
    the last day of the target month (Jan 31 + 1 month is Feb 28/29).

    Args:
        moment: Starting timestamp.
        granularity: Bucket size.
        steps: Number of buckets to move; may be negative.

    Returns:
        The shifted timestamp.
    """

    lod = parse_granularity(granularity)
    if lod is Granularity.hour:
        return moment + timedelta(hours=steps)
    if lod is Granularity.day:
        return moment + timedelta(days=steps)
    if lod is Granularity.week:
        return moment + timedelta(days=7 * steps)
    return _add_months(moment, steps)


def iter_buckets(start: datetime, end: datetime, granularity: Granularity | str) -> Iterator[Bucket]:
    """Yield contiguous buckets covering `[start, end)`.

    Bucket boundaries are computed from `start` by step index so month buckets
    anchored on day 29-31 do not drift after a short month.

    Args:
        start: Inclusive range start; becomes the first bucket start.
        end: Exclusive range end.
        granularity: Bucket size.

    Yields:
        Buckets in ascending order while the bucket start is before `end`. The
        final bucket may extend past `end`.
    """

    lod = parse_granularity(granularity)
    cursor = start
    steps = 0
    while cursor < end:
        steps += 1
        following = shift(start, lod, steps)
        yield Bucket(start=cursor, end=following)
        cursor = following


def buckets(start: datetime, end: datetime, granularity: Granularity | str) -> tuple[Bucket, ...]:
    """Return `iter_buckets` as a tuple."""

    return tuple(iter_buckets(start, end, granularity))


def truncate_date(moment: date | datetime, granularity: Granularity | str) -> datetime:
    """Align a timestamp to the start of the bucket containing it.

    Weeks start on Monday. Timezone information is preserved.

    Args:
        moment: Date or datetime to align.
        granularity: Bucket size.

    Returns:
        The aligned datetime.
    """

    lod = parse_granularity(granularity)
    if not isinstance(moment, datetime):
        moment = datetime(moment.year, moment.month, moment.day)
    if lod is Granularity.hour:
        return moment.replace(minute=0, second=0, microsecond=0)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if lod is Granularity.day:
        return midnight
    if lod is Granularity.week:
        return midnight - timedelta(days=midnight.weekday())
    return midnight.replace(day=1)
