"""Demo statistics sources backing the dashboard sections.

Each builder returns a RecordStreamSource over a deterministic, generated
record stream. Records are plain frozen dataclasses; persistence is out of
scope for the dashboard.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from operator import attrgetter
from typing import Final

from aggregation.dto import Dimension, DimensionItem, Metric
from aggregation.predicates import FilterToken, PredicateRegistry
from aggregation.source import MetricCounter, RecordStreamSource
from aggregation.value_types import MetricValueType

USERS_ACTIVE: Final[str] = "USERS_ACTIVE"
USERS_TOTAL: Final[str] = "USERS_TOTAL"

DIMENSION_USER_REFERRAL: Final[str] = "user_referral"
DIMENSION_USER_SOURCE: Final[str] = "user_source"
DIMENSION_USER_COUNTRY: Final[str] = "user_country"

SUBSCRIPTIONS_NEW: Final[str] = "SUBSCRIPTIONS_NEW"
SUBSCRIPTIONS_PAID: Final[str] = "SUBSCRIPTIONS_PAID"

DIMENSION_SUBS_DEVICE: Final[str] = "subs_device"
DIMENSION_SUBS_COUNTRY: Final[str] = "subs_country"
DIMENSION_SUBS_TIER: Final[str] = "subs_tier"

ISSUES_READ: Final[str] = "ISSUES_READ"
ISSUES_DOWNLOADED: Final[str] = "ISSUES_DOWNLOADED"

DIMENSION_ISSUE_DEVICE: Final[str] = "issue_device"
DIMENSION_ISSUE_COUNTRY: Final[str] = "issue_country"
DIMENSION_ISSUE_SUBSCRIPTION: Final[str] = "issue_subscription"
DIMENSION_ISSUE_MAGAZINE: Final[str] = "issue_magazine"
DIMENSION_ISSUE_MAGAZINE_ISSUE: Final[str] = "issue_magazine_issue"

STATE_ACTIVE: Final[str] = "active"
STATE_PENDING: Final[str] = "pending"
SOURCE_APP: Final[str] = "app"
SOURCE_WEB: Final[str] = "web"

COUNTRY_NAMES: Final[dict[str, str]] = {
    "CZ": "Czechia",
    "DE": "Germany",
    "GB": "United Kingdom",
    "SK": "Slovakia",
    "US": "United States",
}
DEVICES: Final[tuple[tuple[str, str], ...]] = (("ios", "iOS"), ("android", "Android"), ("web", "Web"))
TIERS: Final[tuple[tuple[str, str], ...]] = (("basic", "Basic"), ("premium", "Premium"))
ACTION_READ: Final[str] = "read"
ACTION_DOWNLOAD: Final[str] = "download"
SUBSCRIPTION_CODES: Final[tuple[str, ...]] = ("MONTHLY", "YEARLY", "TRIAL")
MAGAZINES: Final[dict[str, tuple[str, ...]]] = {
    "Outdoor Living": ("Outdoor Living 1/2025", "Outdoor Living 2/2025"),
    "Tech Weekly": ("Tech Weekly 10", "Tech Weekly 11", "Tech Weekly 12"),
}


@dataclass(frozen=True, slots=True)
class UserRecord:
    """A created user account."""

    created: datetime
    state: str
    inviter_id: int | None
    registration_source: str
    country_code: str


@dataclass(frozen=True, slots=True)
class SubscriptionRecord:
    """A started subscription."""

    created: datetime
    device: str
    country_code: str
    tier: str
    paid: bool


@dataclass(frozen=True, slots=True)
class IssueEventRecord:
    """A magazine issue read or downloaded by a reader.

    `is_apple` is 1 for iOS, 0 for Android and None when the platform is unknown.
    """

    created: datetime
    action: str
    is_apple: int | None
    country_code: str
    subscription: str
    magazine: str
    issue: str


USER_PREDICATES = PredicateRegistry(
    {
        "has_inviter": lambda record: record.inviter_id is not None,
        "has_source": attrgetter("registration_source"),
        "has_country": attrgetter("country_code"),
    }
)

SUBSCRIPTION_PREDICATES = PredicateRegistry(
    {
        "has_device": attrgetter("device"),
        "has_country": attrgetter("country_code"),
        "has_tier": attrgetter("tier"),
    }
)

ISSUE_PREDICATES = PredicateRegistry(
    {
        "has_device": attrgetter("is_apple"),
        "has_country": attrgetter("country_code"),
        "has_subscription": attrgetter("subscription"),
        "has_magazine": attrgetter("magazine"),
        "has_issue": attrgetter("issue"),
    }
)


def _country_items(records: Sequence[UserRecord | SubscriptionRecord | IssueEventRecord]) -> tuple[DimensionItem, ...]:
    codes = sorted({record.country_code for record in records})
    items: list[DimensionItem] = []
    for code in codes:
        if code == "":
            items.append(DimensionItem(token=FilterToken("has_country", None), value="Unknown"))
            continue
        items.append(DimensionItem(token=FilterToken("has_country", code), value=COUNTRY_NAMES.get(code, code)))
    return tuple(items)


def _random_moment(rng: random.Random, *, since: datetime, days: int) -> datetime:
    return since + timedelta(seconds=rng.randrange(days * 24 * 3600))


def generate_user_records(*, seed: int, days: int, until: datetime, per_day: int = 12) -> list[UserRecord]:
    """Generate a deterministic stream of user records ending at `until`."""

    rng = random.Random(seed)
    since = until - timedelta(days=days)
    countries = (*COUNTRY_NAMES.keys(), "")
    records = []
    for index in range(days * per_day):
        records.append(
            UserRecord(
                created=_random_moment(rng, since=since, days=days),
                state=STATE_ACTIVE if rng.random() < 0.7 else STATE_PENDING,
                inviter_id=(index if rng.random() < 0.3 else None),
                registration_source=rng.choice((SOURCE_APP, SOURCE_WEB)),
                country_code=rng.choice(countries),
            )
        )
    return records


def generate_subscription_records(
    *,
    seed: int,
    days: int,
    until: datetime,
    per_day: int = 5,
) -> list[SubscriptionRecord]:
    """Generate a deterministic stream of subscription records ending at `until`."""

    rng = random.Random(seed + 1)
    since = until - timedelta(days=days)
    countries = tuple(COUNTRY_NAMES.keys())
    return [
        SubscriptionRecord(
            created=_random_moment(rng, since=since, days=days),
            device=rng.choice(DEVICES)[0],
            country_code=rng.choice(countries),
            tier=rng.choice(TIERS)[0],
            paid=rng.random() < 0.4,
        )
        for _ in range(days * per_day)
    ]


def generate_issue_records(*, seed: int, days: int, until: datetime, per_day: int = 8) -> list[IssueEventRecord]:
    """Generate a deterministic stream of magazine issue reads and downloads ending at `until`."""

    rng = random.Random(seed + 2)
    since = until - timedelta(days=days)
    countries = (*COUNTRY_NAMES.keys(), "")
    records = []
    for _ in range(days * per_day):
        magazine = rng.choice(tuple(MAGAZINES))
        records.append(
            IssueEventRecord(
                created=_random_moment(rng, since=since, days=days),
                action=ACTION_READ if rng.random() < 0.6 else ACTION_DOWNLOAD,
                is_apple=rng.choice((1, 0, None)),
                country_code=rng.choice(countries),
                subscription=rng.choice(SUBSCRIPTION_CODES),
                magazine=magazine,
                issue=rng.choice(MAGAZINES[magazine]),
            )
        )
    return records


def build_user_statistics(records: Sequence[UserRecord]) -> RecordStreamSource:
    """Return the user statistics source over `records`."""

    return RecordStreamSource(
        records,
        counters=(
            MetricCounter(
                Metric(
                    key=USERS_ACTIVE,
                    label="Active Users count",
                    description="Count of users who have successfully completed account activation",
                ),
                predicate=lambda record: record.state == STATE_ACTIVE,
            ),
            MetricCounter(
                Metric(
                    key=USERS_TOTAL,
                    label="Created Accounts count",
                    description="Count of users who created an account",
                ),
            ),
        ),
        dimensions=(
            Dimension(key=DIMENSION_USER_REFERRAL, label="Referral users"),
            Dimension(key=DIMENSION_USER_SOURCE, label="Source of users"),
            Dimension(key=DIMENSION_USER_COUNTRY, label="Country of origin"),
        ),
        catalogs={
            DIMENSION_USER_REFERRAL: lambda: (
                DimensionItem(token=FilterToken("has_inviter", True), value="Invited users"),
                DimensionItem(token=FilterToken("has_inviter", False), value="Non-invited users"),
            ),
            DIMENSION_USER_SOURCE: lambda: (
                DimensionItem(token=FilterToken("has_source", SOURCE_APP), value="Mobile App"),
                DimensionItem(token=FilterToken("has_source", SOURCE_WEB), value="Microsite"),
            ),
            DIMENSION_USER_COUNTRY: lambda: _country_items(records),
        },
        predicates=USER_PREDICATES,
        timestamp_of=attrgetter("created"),
    )


def build_subscription_statistics(records: Sequence[SubscriptionRecord]) -> RecordStreamSource:
    """Return the subscription statistics source over `records`."""

    return RecordStreamSource(
        records,
        counters=(
            MetricCounter(
                Metric(
                    key=SUBSCRIPTIONS_NEW,
                    label="New subscriptions",
                    description="Count of subscriptions started in the period",
                ),
            ),
            MetricCounter(
                Metric(
                    key=SUBSCRIPTIONS_PAID,
                    label="Paid subscriptions",
                    description="Count of started subscriptions that were paid",
                    value_type=MetricValueType.ABSOLUTE,
                ),
                predicate=attrgetter("paid"),
            ),
        ),
        dimensions=(
            Dimension(key=DIMENSION_SUBS_DEVICE, label="Device"),
            Dimension(key=DIMENSION_SUBS_COUNTRY, label="Country"),
            Dimension(key=DIMENSION_SUBS_TIER, label="Subscription tier"),
        ),
        catalogs={
            DIMENSION_SUBS_DEVICE: lambda: tuple(
                DimensionItem(token=FilterToken("has_device", code), value=label) for code, label in DEVICES
            ),
            DIMENSION_SUBS_COUNTRY: lambda: _country_items(records),
            DIMENSION_SUBS_TIER: lambda: tuple(
                DimensionItem(token=FilterToken("has_tier", code), value=label) for code, label in TIERS
            ),
        },
        predicates=SUBSCRIPTION_PREDICATES,
        timestamp_of=attrgetter("created"),
    )


def build_magazine_issue_statistics(records: Sequence[IssueEventRecord]) -> RecordStreamSource:
    """Return the magazine issue statistics source over `records`.

    Reads and downloads share one stream; each metric counts one action.
    """

    return RecordStreamSource(
        records,
        counters=(
            MetricCounter(
                Metric(
                    key=ISSUES_READ,
                    label="Magazine issues read",
                    description="Count of magazine issues that have been read",
                ),
                predicate=lambda record: record.action == ACTION_READ,
            ),
            MetricCounter(
                Metric(
                    key=ISSUES_DOWNLOADED,
                    label="Magazine issues downloaded",
                    description="Count of magazine issues that have been downloaded",
                ),
                predicate=lambda record: record.action == ACTION_DOWNLOAD,
            ),
        ),
        dimensions=(
            Dimension(key=DIMENSION_ISSUE_DEVICE, label="Platform"),
            Dimension(key=DIMENSION_ISSUE_COUNTRY, label="Country"),
            Dimension(key=DIMENSION_ISSUE_SUBSCRIPTION, label="Subscription"),
            Dimension(key=DIMENSION_ISSUE_MAGAZINE, label="Magazine"),
            Dimension(key=DIMENSION_ISSUE_MAGAZINE_ISSUE, label="Magazine issue"),
        ),
        catalogs={
            DIMENSION_ISSUE_DEVICE: lambda: (
                DimensionItem(token=FilterToken("has_device", 1), value="Ios"),
                DimensionItem(token=FilterToken("has_device", 0), value="Android"),
                DimensionItem(token=FilterToken("has_device", None), value="Unknown"),
            ),
            DIMENSION_ISSUE_COUNTRY: lambda: _country_items(records),
            DIMENSION_ISSUE_SUBSCRIPTION: lambda: tuple(
                DimensionItem(token=FilterToken("has_subscription", code), value=code) for code in SUBSCRIPTION_CODES
            ),
            DIMENSION_ISSUE_MAGAZINE: lambda: tuple(
                DimensionItem(token=FilterToken("has_magazine", name), value=name) for name in MAGAZINES
            ),
            DIMENSION_ISSUE_MAGAZINE_ISSUE: lambda: tuple(
                DimensionItem(token=FilterToken("has_issue", issue), value=issue)
                for issues in MAGAZINES.values()
                for issue in issues
            ),
        },
        predicates=ISSUE_PREDICATES,
        timestamp_of=attrgetter("created"),
    )


def demo_until(today: datetime | None = None) -> datetime:
    """Return the exclusive end of the demo record stream (tomorrow, UTC midnight)."""

    now = today or datetime.now(UTC)
    return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
