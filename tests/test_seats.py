"""Tests for assistant seat activity analysis."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devmetrics.models import ActivityStatus, SeatRecord
from devmetrics.seats import (
    build_seat_analytics,
    calculate_activity_trend,
    calculate_adoption_rate,
    calculate_editor_distribution,
    determine_activity_status,
    normalize_editor_name,
)

NOW = datetime(2024, 5, 20, 12, tzinfo=timezone.utc)


def _seat(login, days_ago=None, editor="vscode/1.85.1/copilot/1.14.0") -> SeatRecord:
    last_activity_at = NOW - timedelta(days=days_ago) if days_ago is not None else None
    return SeatRecord(
        login=login,
        assigned_at=NOW - timedelta(days=90),
        last_activity_at=last_activity_at,
        last_activity_editor=editor if last_activity_at else None,
    )


@pytest.mark.parametrize(
    ("days_ago", "expected"),
    [(0, ActivityStatus.ACTIVE), (7, ActivityStatus.ACTIVE), (8, ActivityStatus.INACTIVE)],
)
def test_determine_activity_status_threshold(days_ago, expected):
    """Verify seats are active up to and including seven days since last use."""
    status, days_since = determine_activity_status(NOW - timedelta(days=days_ago), NOW)

    assert status is expected
    assert days_since == days_ago


def test_never_used_seat_has_no_days_since():
    """Verify a seat without recorded activity is never-used."""
    assert determine_activity_status(None, NOW) == (ActivityStatus.NEVER_USED, None)


def test_normalize_editor_name_uses_lowercase_prefix():
    """Verify editor identifiers map through the display-name table."""
    assert normalize_editor_name("vscode/1.85.1/copilot/1.14.0") == "VS Code"
    assert normalize_editor_name("JetBrains/2023.3") == "JetBrains IDEs"
    assert normalize_editor_name("zed/0.1") == "zed/0.1"
    assert normalize_editor_name(None) == "Unknown"


def test_calculate_adoption_rate():
    """Verify adoption is active seats over all seats with one decimal."""
    seats = [_seat("a", 1), _seat("b", 20), _seat("c")]

    assert calculate_adoption_rate(seats, NOW) == pytest.approx(33.3)
    assert calculate_adoption_rate([], NOW) == 0


def test_editor_distribution_sorted_by_count():
    """Verify editor counts, whole percentages and descending order."""
    seats = [
        _seat("a", 1, "neovim/0.9"),
        _seat("b", 1),
        _seat("c", 2, "vscode/1.84.0"),
        _seat("d"),
    ]

    shares = calculate_editor_distribution(seats)

    assert [(share.editor, share.count, share.percentage) for share in shares] == [
        ("VS Code", 2, 50),
        ("Neovim", 1, 25),
        ("Unknown", 1, 25),
    ]


def test_activity_trend_counts_active_and_never_used_per_day():
    """Verify daily active counts and constant never-used tallies."""
    seats = [_seat("a", 3), _seat("b", 20), _seat("c")]

    trend = calculate_activity_trend(seats, 3, NOW)

    assert [day.date for day in trend] == ["2024-05-18", "2024-05-19", "2024-05-20"]
    assert [day.active_users for day in trend] == [1, 1, 1]
    assert all(day.never_used == 1 for day in trend)
    assert all(day.inactive_users == 1 for day in trend)
    assert all(day.total_seats == 3 for day in trend)


def test_activity_trend_excludes_activity_after_the_day():
    """Verify activity recorded after a given day does not count for that day."""
    seats = [_seat("a", 0)]

    trend = calculate_activity_trend(seats, 2, NOW)

    assert [day.active_users for day in trend] == [0, 1]


def test_activity_trend_counts_late_evening_activity_for_its_own_day():
    """Verify activity late in a day counts for that day and the following seven."""
    seat = SeatRecord(
        login="night-owl",
        assigned_at=NOW - timedelta(days=90),
        last_activity_at=datetime(2024, 5, 12, 23, 30, tzinfo=timezone.utc),
        last_activity_editor="vscode",
    )

    trend = calculate_activity_trend([seat], 10, NOW)

    by_date = {day.date: day.active_users for day in trend}
    assert by_date["2024-05-11"] == 0
    assert by_date["2024-05-12"] == 1
    assert by_date["2024-05-19"] == 1
    assert by_date["2024-05-20"] == 0


def test_build_seat_analytics_summary_excludes_never_used_from_average():
    """Verify summary counts and average days computed over used seats only."""
    seats = [_seat("a", 2), _seat("b", 10), _seat("c")]

    analytics = build_seat_analytics(seats, 7, total_seats=5, now=NOW)
    summary = analytics.summary

    assert summary.total_seats == 5
    assert summary.active_users == 1
    assert summary.inactive_users == 1
    assert summary.never_used == 1
    assert summary.avg_days_since_activity == 6
    assert len(analytics.activity_trend) == 7
    assert analytics.to_dict()["user_stats"][0]["avatar"] == "https://github.com/a.png"
