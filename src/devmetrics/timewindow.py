"""Time-range selection and date helpers shared by the aggregators.

All datetimes handled by the package are timezone-aware and normalized to UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

SECONDS_PER_HOUR = 3600.0
SECONDS_PER_DAY = 86400.0


class TimeRange(str, Enum):
    """Relative time-range selector offered to the presentation layer."""

    SPRINT = "sprint"
    MONTH = "month"
    QUARTER = "quarter"


_RANGE_DAYS = {
    TimeRange.SPRINT: 14,
    TimeRange.MONTH: 30,
    TimeRange.QUARTER: 90,
}


def time_range_days(time_range: TimeRange) -> int:
    """Return the lookback window in days for a time-range selector."""
    return _RANGE_DAYS[TimeRange(time_range)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO8601 timestamps into timezone-aware UTC datetimes.

    Accepts the ``Z`` suffix used by GitHub and the ``+0000`` offsets used by
    Jira. Returns ``None`` for empty values.
    """
    if not value:
        return None

    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    elif len(normalized) > 5 and normalized[-5] in "+-" and normalized[-4:].isdigit():
        normalized = f"{normalized[:-2]}:{normalized[-2:]}"

    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def start_of_day(value: datetime) -> datetime:
    """Truncate a datetime to 00:00:00 of the same UTC day."""
    return value.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from ``start`` to ``end``."""
    return (end - start).total_seconds() / SECONDS_PER_HOUR


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of whole days from ``start`` to ``end``, floored."""
    return int((end - start).total_seconds() // SECONDS_PER_DAY)


def date_key(value: datetime) -> str:
    """``YYYY-MM-DD`` key of the UTC day containing ``value``."""
    return value.astimezone(timezone.utc).date().isoformat()


def lookback_cutoff(days: int, now: Optional[datetime] = None) -> datetime:
    """Start of the day ``days`` days before ``now``."""
    return start_of_day(now or utc_now()) - timedelta(days=days)


def filter_by_creation_date(
    items: Sequence[T],
    days: int,
    now: Optional[datetime] = None,
    created: Callable[[T], datetime] = lambda item: item.created_at,  # type: ignore[attr-defined]
) -> List[T]:
    """Keep items created on or after the lookback cutoff.

    ``days <= 0`` disables filtering and returns the input unchanged.
    """
    if days <= 0:
        return list(items)

    cutoff = lookback_cutoff(days, now)
    return [item for item in items if created(item) >= cutoff]
