"""Trend builders and the organization-wide pull request analytics bundle."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from .cycle_time import calculate_cycle_time
from .models import (
    ChangeRequestAnalytics,
    ChangeRequestSummary,
    CycleTimeBreakdown,
    CycleTimeDaily,
    PullRequest,
    PullRequestState,
    PullRequestSummary,
    ScatterPoint,
)
from .pull_requests import summarize_pull_request
from .stats import calculate_percentile, mean, round1
from .timewindow import date_key, filter_by_creation_date, start_of_day, utc_now

MAX_TREND_DAYS = 14
DEFAULT_STALE_DAYS = 7
MIN_STALE_DAYS = 3
MAX_STALE_DAYS = 14


def calculate_daily_cycle_time_trend(
    prs: Sequence[PullRequest],
    days: int = 30,
    now: Optional[datetime] = None,
) -> List[CycleTimeDaily]:
    """Average cycle-time components per merge day over the last ``days`` days.

    Every day in the window gets a bucket, oldest first; days without merges
    report zeros.
    """
    now = now or utc_now()
    buckets: Dict[str, List[CycleTimeBreakdown]] = {}
    for offset in range(days):
        buckets[date_key(now - timedelta(days=offset))] = []

    for pr in filter_by_creation_date(prs, days, now):
        if pr.merged_at is None:
            continue
        bucket = buckets.get(date_key(pr.merged_at))
        if bucket is not None:
            bucket.append(calculate_cycle_time(pr))

    trend: List[CycleTimeDaily] = []
    for day in sorted(buckets):
        breakdowns = buckets[day]
        trend.append(
            CycleTimeDaily(
                date=day,
                coding_hours=round1(mean(b.coding_hours for b in breakdowns)),
                pickup_hours=round1(mean(b.pickup_hours for b in breakdowns)),
                review_hours=round1(mean(b.review_hours for b in breakdowns)),
                total_hours=round1(mean(b.total_hours for b in breakdowns)),
            )
        )
    return trend


def recent_activity_trend(
    prs: Sequence[PullRequest],
    login: str,
    days: int = 7,
    now: Optional[datetime] = None,
) -> List[int]:
    """Per-day count of ``login``'s PRs with at least one commit that day, oldest first."""
    today = start_of_day(now or utc_now())
    authored = [pr for pr in prs if pr.authored_by(login)]
    trend: List[int] = []

    for offset in range(days - 1, -1, -1):
        day_start = today - timedelta(days=offset)
        day_end = day_start + timedelta(days=1) - timedelta(milliseconds=1)
        trend.append(
            sum(
                1
                for pr in authored
                if any(day_start <= committed <= day_end for committed in pr.commit_dates)
            )
        )
    return trend


def stale_threshold_days(days: int = 0) -> int:
    """Half the selected window, kept within 3..14 days; 7 without a window."""
    if days <= 0:
        return DEFAULT_STALE_DAYS
    return max(MIN_STALE_DAYS, min(MAX_STALE_DAYS, int(days * 0.5)))


def find_stale_prs(
    prs: Sequence[PullRequest],
    days: int = 0,
    now: Optional[datetime] = None,
) -> List[PullRequestSummary]:
    """Open pull requests not updated within the stale threshold."""
    threshold = (now or utc_now()) - timedelta(days=stale_threshold_days(days))
    return [
        summarize_pull_request(pr)
        for pr in prs
        if pr.state is PullRequestState.OPEN and pr.updated_at < threshold
    ]


def build_scatter_data(prs: Sequence[PullRequest]) -> List[ScatterPoint]:
    """One size-versus-total-hours point per merged pull request."""
    return [
        ScatterPoint(
            size=pr.size,
            time=calculate_cycle_time(pr).total_hours,
            pr=summarize_pull_request(pr),
        )
        for pr in prs
        if pr.is_merged
    ]


def build_change_request_analytics(
    prs: Sequence[PullRequest],
    days: int = 0,
    now: Optional[datetime] = None,
) -> ChangeRequestAnalytics:
    """Build the organization-wide pull request analytics bundle."""
    now = now or utc_now()
    filtered = filter_by_creation_date(prs, days, now)
    merged = [pr for pr in filtered if pr.is_merged]

    breakdowns = [calculate_cycle_time(pr) for pr in merged]
    totals = sorted(b.total_hours for b in breakdowns)
    merge_rate = len(merged) / len(filtered) * 100 if filtered else 0.0

    p50 = calculate_percentile(totals, 50)
    p90 = calculate_percentile(totals, 90)

    summary = ChangeRequestSummary(
        avg_cycle_time=round1(mean(totals)),
        avg_pickup_time=round1(mean(b.pickup_hours for b in breakdowns)),
        avg_review_time=round1(mean(b.review_hours for b in breakdowns)),
        merge_rate=round1(merge_rate),
        p50_cycle_time=round1(p50) if p50 is not None else None,
        p90_cycle_time=round1(p90) if p90 is not None else None,
    )

    return ChangeRequestAnalytics(
        summary=summary,
        cycle_time_trend=calculate_daily_cycle_time_trend(
            filtered, min(days or MAX_TREND_DAYS, MAX_TREND_DAYS), now
        ),
        scatter_data=build_scatter_data(filtered),
        stale_prs=find_stale_prs(filtered, days, now),
    )
