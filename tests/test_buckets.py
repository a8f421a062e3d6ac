"""Tests for time bucketing helpers."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from aggregation.buckets import Granularity, buckets, parse_granularity, shift, truncate_date
from aggregation.errors import InvalidGranularity

pytestmark = pytest.mark.unit


def test_day_buckets_cover_range_contiguously() -> None:
    """Seven days at day granularity produce seven adjacent half-open buckets."""

    start = datetime(2025, 3, 3, tzinfo=UTC)
    end = datetime(2025, 3, 10, tzinfo=UTC)

    result = buckets(start, end, Granularity.day)

    assert len(result) == 7
    assert result[0].start == start
    assert result[-1].end == end
    for previous, current in zip(result, result[1:]):
        assert previous.end == current.start


def test_last_bucket_may_extend_past_range_end() -> None:
    """A partial trailing interval still yields a full-size bucket."""

    start = datetime(2025, 3, 3, tzinfo=UTC)
    end = datetime(2025, 3, 11, tzinfo=UTC)

    result = buckets(start, end, "week")

    assert [bucket.start.day for bucket in result] == [3, 10]
    assert result[-1].end == datetime(2025, 3, 17, tzinfo=UTC)


@pytest.mark.parametrize("offset_hours", [0, -5])
def test_empty_or_inverted_range_has_no_buckets(offset_hours: int) -> None:
    """start >= end produces no buckets."""

    start = datetime(2025, 3, 3, 12, tzinfo=UTC)
    end = shift(start, Granularity.hour, offset_hours)

    assert buckets(start, end, Granularity.hour) == ()


def test_month_buckets_clamp_short_months_without_drift() -> None:
    """Month buckets anchored on the 31st clamp and then recover the anchor day."""

    start = datetime(2025, 1, 31, tzinfo=UTC)
    end = datetime(2025, 5, 1, tzinfo=UTC)

    starts = [bucket.start.date() for bucket in buckets(start, end, Granularity.month)]

    assert starts == [
        date(2025, 1, 31),
        date(2025, 2, 28),
        date(2025, 3, 31),
        date(2025, 4, 30),
    ]


def test_month_shift_handles_leap_years_and_year_rollover() -> None:
    """Shifting by months follows the calendar across years."""

    assert shift(datetime(2024, 1, 31), "month") == datetime(2024, 2, 29)
    assert shift(datetime(2024, 12, 15), "month") == datetime(2025, 1, 15)
    assert shift(datetime(2025, 1, 15), "month", -1) == datetime(2024, 12, 15)


def test_hour_buckets_label_with_time_component() -> None:
    """Bucket labels render the bucket start as Y-m-d H:M:S."""

    start = datetime(2025, 3, 3, 22, tzinfo=UTC)
    end = datetime(2025, 3, 4, 1, tzinfo=UTC)

    labels = [bucket.label for bucket in buckets(start, end, Granularity.hour)]

    assert labels == ["2025-03-03 22:00:00", "2025-03-03 23:00:00", "2025-03-04 00:00:00"]


@pytest.mark.parametrize("token", ["year", "", "DAY", None, 3])
def test_parse_granularity_rejects_unknown_tokens(token: object) -> None:
    """Unsupported tokens raise InvalidGranularity."""

    with pytest.raises(InvalidGranularity):
        parse_granularity(token)


def test_parse_granularity_accepts_enum_and_string() -> None:
    assert parse_granularity("week") is Granularity.week
    assert parse_granularity(Granularity.month) is Granularity.month


@pytest.mark.parametrize(
    ("granularity", "expected"),
    [
        (Granularity.hour, datetime(2025, 3, 5, 14, tzinfo=UTC)),
        (Granularity.day, datetime(2025, 3, 5, tzinfo=UTC)),
        (Granularity.week, datetime(2025, 3, 3, tzinfo=UTC)),
        (Granularity.month, datetime(2025, 3, 1, tzinfo=UTC)),
    ],
)
def test_truncate_date_aligns_to_bucket_start(granularity: Granularity, expected: datetime) -> None:
    """Truncation keeps the timezone and starts weeks on Monday."""

    moment = datetime(2025, 3, 5, 14, 37, 12, tzinfo=UTC)

    assert truncate_date(moment, granularity) == expected


def test_truncate_date_accepts_plain_dates() -> None:
    assert truncate_date(date(2025, 3, 9), "week") == datetime(2025, 3, 3)
