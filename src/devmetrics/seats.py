"""Assistant seat telemetry analysis.

A seat is ``never-used`` when no activity was ever recorded, ``active`` when
its last activity is at most seven whole days old, and ``inactive``
otherwise.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from .models import (
    ActivityStatus,
    EditorShare,
    SeatActivityDay,
    SeatAnalytics,
    SeatRecord,
    SeatSummary,
    SeatUserStats,
    avatar_url,
)
from .stats import mean, round1, round_int
from .timewindow import date_key, start_of_day, utc_now, whole_days_between

ACTIVE_THRESHOLD_DAYS = 7

EDITOR_DISPLAY_NAMES: Dict[str, str] = {
    "vscode": "VS Code",
    "visualstudio": "Visual Studio",
    "jetbrains": "JetBrains IDEs",
    "intellij": "IntelliJ IDEA",
    "pycharm": "PyCharm",
    "webstorm": "WebStorm",
    "neovim": "Neovim",
    "vim": "Vim",
    "emacs": "Emacs",
    "sublime": "Sublime Text",
    "atom": "Atom",
}


def normalize_editor_name(editor: Optional[str]) -> str:
    """Display name for a raw editor identifier such as ``vscode/1.85.1/copilot/1.14.0``."""
    if not editor:
        return "Unknown"
    product = editor.split("/", 1)[0].strip().lower()
    return EDITOR_DISPLAY_NAMES.get(product, editor)


def determine_activity_status(
    last_activity_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> Tuple[ActivityStatus, Optional[int]]:
    """Return the seat status and whole days since last activity (``None`` if never used)."""
    if last_activity_at is None:
        return ActivityStatus.NEVER_USED, None

    days_since = whole_days_between(last_activity_at, now or utc_now())
    if days_since <= ACTIVE_THRESHOLD_DAYS:
        return ActivityStatus.ACTIVE, days_since
    return ActivityStatus.INACTIVE, days_since


def calculate_adoption_rate(seats: Sequence[SeatRecord], now: Optional[datetime] = None) -> float:
    """Active seats as a percentage of all seats, one decimal."""
    if not seats:
        return 0.0
    active = sum(
        1 for seat in seats if determine_activity_status(seat.last_activity_at, now)[0] is ActivityStatus.ACTIVE
    )
    return round1(active / len(seats) * 100)


def calculate_editor_distribution(seats: Sequence[SeatRecord]) -> List[EditorShare]:
    """Seat counts per normalized editor, most used first."""
    counts: Dict[str, int] = {}
    for seat in seats:
        editor = normalize_editor_name(seat.last_activity_editor)
        counts[editor] = counts.get(editor, 0) + 1

    total = sum(counts.values())
    shares = [
        EditorShare(
            editor=editor,
            count=count,
            percentage=round_int(count / total * 100) if total else 0,
        )
        for editor, count in counts.items()
    ]
    return sorted(shares, key=lambda share: share.count, reverse=True)


def calculate_activity_trend(
    seats: Sequence[SeatRecord],
    days: int,
    now: Optional[datetime] = None,
) -> List[SeatActivityDay]:
    """Daily active/inactive/never-used counts over the last ``days`` days, oldest first.

    A seat is active on a day when the calendar day of its last recorded
    activity falls within the seven days up to and including that day.
    Comparing calendar days, rather than flooring the time elapsed since the
    day's midnight, lets activity later in the same day count for it.
    """
    today = start_of_day(now or utc_now())
    never_used = sum(1 for seat in seats if seat.last_activity_at is None)
    trend: List[SeatActivityDay] = []

    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        active = 0
        for seat in seats:
            if seat.last_activity_at is None:
                continue
            days_since = (day - start_of_day(seat.last_activity_at)).days
            if 0 <= days_since <= ACTIVE_THRESHOLD_DAYS:
                active += 1

        trend.append(
            SeatActivityDay(
                date=date_key(day),
                active_users=active,
                inactive_users=len(seats) - active - never_used,
                never_used=never_used,
                total_seats=len(seats),
            )
        )
    return trend


def build_seat_user_stats(seat: SeatRecord, now: Optional[datetime] = None) -> SeatUserStats:
    status, days_since = determine_activity_status(seat.last_activity_at, now)
    return SeatUserStats(
        login=seat.login,
        avatar=seat.avatar_url or avatar_url(seat.login),
        assigned_at=seat.assigned_at,
        last_activity_at=seat.last_activity_at,
        last_activity_editor=(
            normalize_editor_name(seat.last_activity_editor) if seat.last_activity_editor else None
        ),
        days_since_activity=days_since,
        status=status,
    )


def build_seat_analytics(
    seats: Sequence[SeatRecord],
    days: int,
    total_seats: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SeatAnalytics:
    """Build the assistant adoption analytics bundle.

    ``total_seats`` is the billing total reported upstream; it defaults to the
    number of seat records.
    """
    now = now or utc_now()
    user_stats = [build_seat_user_stats(seat, now) for seat in seats]

    with_activity = [user.days_since_activity for user in user_stats if user.days_since_activity is not None]

    summary = SeatSummary(
        total_seats=total_seats if total_seats is not None else len(seats),
        active_users=sum(1 for user in user_stats if user.status is ActivityStatus.ACTIVE),
        inactive_users=sum(1 for user in user_stats if user.status is ActivityStatus.INACTIVE),
        never_used=sum(1 for user in user_stats if user.status is ActivityStatus.NEVER_USED),
        adoption_rate=calculate_adoption_rate(seats, now),
        avg_days_since_activity=round_int(mean(with_activity)),
    )

    return SeatAnalytics(
        summary=summary,
        user_stats=user_stats,
        editor_distribution=calculate_editor_distribution(seats),
        activity_trend=calculate_activity_trend(seats, days, now),
    )
