from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from types import MappingProxyType


class ThrottleWindow(StrEnum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"


WINDOW_DURATIONS = MappingProxyType(
    {
        ThrottleWindow.MINUTE: timedelta(minutes=1),
        ThrottleWindow.HOUR: timedelta(hours=1),
        ThrottleWindow.DAY: timedelta(days=1),
    }
)

DEFAULT_RETENTION = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class DedupeRecord:
    org_id: int
    dedupe_key: str
    recorded_at: datetime


def as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def resolve_window(window: str | None) -> timedelta | None:
    if not window:
        return None
    try:
        return WINDOW_DURATIONS[ThrottleWindow(window)]
    except ValueError:
        return None


def is_duplicate(
    org_id: int,
    dedupe_key: str | None,
    records: Iterable[DedupeRecord],
    *,
    now: datetime,
    retention: timedelta = DEFAULT_RETENTION,
) -> bool:
    if not dedupe_key:
        return False
    cutoff = as_utc(now) - retention
    return any(
        record.org_id == org_id and record.dedupe_key == dedupe_key and as_utc(record.recorded_at) >= cutoff
        for record in records
    )


def within_throttle(
    firings: Iterable[datetime],
    window: str | None,
    limit: int | None,
    *,
    now: datetime,
) -> bool:
    """True when one more firing fits inside the sliding window.

    A missing or unknown window, or a missing limit, disables throttling.
    """
    duration = resolve_window(window)
    if duration is None or limit is None:
        return True
    since = as_utc(now) - duration
    recent = sum(1 for fired_at in firings if as_utc(fired_at) >= since)
    return recent < limit
