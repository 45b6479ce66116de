"""Tests for trend builders and the pull request analytics bundle."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devmetrics.models import PullRequest, PullRequestState
from devmetrics.trends import (
    build_change_request_analytics,
    build_scatter_data,
    calculate_daily_cycle_time_trend,
    find_stale_prs,
    recent_activity_trend,
    stale_threshold_days,
)

NOW = datetime(2024, 2, 10, 12, tzinfo=timezone.utc)


def _pr(number, created_at, merged_at=None, state=None, updated_at=None, author="alice", commit_dates=()):
    if state is None:
        state = PullRequestState.MERGED if merged_at else PullRequestState.OPEN
    return PullRequest(
        number=number,
        title=f"PR {number}",
        state=state,
        author=author,
        created_at=created_at,
        updated_at=updated_at or merged_at or created_at,
        merged_at=merged_at,
        additions=30,
        deletions=10,
        repository="web",
        owner="acme",
        commit_dates=tuple(commit_dates),
    )


def test_daily_trend_has_one_bucket_per_day_oldest_first():
    """Verify every day in the window is present and days without merges are zero."""
    created = NOW - timedelta(hours=40)
    prs = [
        _pr(1, created, merged_at=created + timedelta(hours=10)),
        _pr(2, created, merged_at=created + timedelta(hours=20)),
    ]

    trend = calculate_daily_cycle_time_trend(prs, days=3, now=NOW)

    assert [day.date for day in trend] == ["2024-02-08", "2024-02-09", "2024-02-10"]
    assert trend[0].total_hours == 0
    merged_day = {day.date: day for day in trend}["2024-02-09"]
    assert merged_day.pickup_hours == pytest.approx(15.0)
    assert merged_day.total_hours == pytest.approx(15.0)


def test_daily_trend_ignores_unmerged_and_out_of_window_merges():
    """Verify open PRs and merges outside the window never create buckets."""
    prs = [
        _pr(1, NOW - timedelta(hours=5)),
        _pr(2, NOW - timedelta(days=20), merged_at=NOW - timedelta(days=19)),
    ]

    trend = calculate_daily_cycle_time_trend(prs, days=2, now=NOW)

    assert len(trend) == 2
    assert all(day.total_hours == 0 for day in trend)


def test_recent_activity_trend_counts_prs_with_commits_per_day():
    """Verify per-day counts of authored PRs having a commit that day."""
    prs = [
        _pr(1, NOW - timedelta(days=2), commit_dates=[NOW - timedelta(days=1), NOW - timedelta(hours=1)]),
        _pr(2, NOW - timedelta(days=2), commit_dates=[NOW - timedelta(hours=2)]),
        _pr(3, NOW - timedelta(days=2), author="bob", commit_dates=[NOW]),
    ]

    trend = recent_activity_trend(prs, "alice", days=7, now=NOW)

    assert trend == [0, 0, 0, 0, 0, 1, 2]


@pytest.mark.parametrize(
    ("days", "expected"),
    [(0, 7), (4, 3), (14, 7), (30, 14), (90, 14)],
)
def test_stale_threshold_days(days, expected):
    """Verify the stale threshold is half the window, clamped to 3..14 days."""
    assert stale_threshold_days(days) == expected


def test_find_stale_prs_only_reports_old_open_prs():
    """Verify only open PRs without recent updates are stale."""
    created = NOW - timedelta(days=20)
    prs = [
        _pr(1, created, updated_at=NOW - timedelta(days=8)),
        _pr(2, created, updated_at=NOW - timedelta(days=6)),
        _pr(3, created, merged_at=NOW - timedelta(days=10)),
    ]

    stale = find_stale_prs(prs, now=NOW)

    assert [pr.id for pr in stale] == ["web-1"]


def test_scatter_data_uses_merged_prs_only():
    """Verify scatter points pair size with total cycle time for merged PRs."""
    created = NOW - timedelta(days=1)
    prs = [_pr(1, created, merged_at=created + timedelta(hours=6)), _pr(2, created)]

    points = build_scatter_data(prs)

    assert len(points) == 1
    assert points[0].size == 40
    assert points[0].time == pytest.approx(6)


def test_change_request_analytics_summary():
    """Verify averages, merge rate and percentiles of the analytics bundle."""
    created = NOW - timedelta(days=2)
    prs = [
        _pr(1, created, merged_at=created + timedelta(hours=10)),
        _pr(2, created, merged_at=created + timedelta(hours=20)),
        _pr(3, created),
    ]

    analytics = build_change_request_analytics(prs, now=NOW)
    summary = analytics.summary

    assert summary.avg_cycle_time == pytest.approx(15.0)
    assert summary.avg_pickup_time == pytest.approx(15.0)
    assert summary.avg_review_time == 0
    assert summary.merge_rate == pytest.approx(66.7)
    assert summary.p50_cycle_time == pytest.approx(15.0)
    assert summary.p90_cycle_time == pytest.approx(19.0)
    assert len(analytics.cycle_time_trend) == 14
    assert len(analytics.scatter_data) == 2
    assert analytics.to_dict()["summary"]["merge_rate"] == pytest.approx(66.7)


def test_change_request_analytics_empty_input():
    """Verify empty input yields zeroed summary values rather than errors."""
    analytics = build_change_request_analytics([], now=NOW)

    assert analytics.summary.merge_rate == 0
    assert analytics.summary.p50_cycle_time is None
    assert analytics.scatter_data == []
