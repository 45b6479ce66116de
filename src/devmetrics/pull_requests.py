"""Per-author pull request rollups."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .cycle_time import calculate_cycle_time
from .models import (
    GithubStats,
    PRCreatedAnalysis,
    PRCreatedDetail,
    PullRequest,
    PullRequestState,
    PullRequestSummary,
)
from .stats import mean, round1
from .timewindow import filter_by_creation_date

logger = logging.getLogger(__name__)


def summarize_pull_request(pr: PullRequest) -> PullRequestSummary:
    """Map a parsed pull request onto its display snapshot."""
    first_review_at: Optional[datetime] = min(
        (review.created_at for review in pr.reviews), default=None
    )
    return PullRequestSummary(
        id=pr.key,
        title=pr.title,
        author=pr.author or "ghost",
        created_at=pr.created_at,
        first_commit_at=pr.first_commit_at,
        first_review_at=first_review_at,
        merged_at=pr.merged_at,
        lines_added=pr.additions,
        lines_deleted=pr.deletions,
        status=pr.state.display,
        url=pr.url,
    )


def aggregate_user_pull_requests(
    prs: Sequence[PullRequest],
    login: str,
    days: int = 0,
    now: Optional[datetime] = None,
) -> GithubStats:
    """Roll up opened/merged counts, cycle time and review comments for ``login``.

    ``review_comments_given`` only counts inline comments attached to reviews
    the developer submitted on other people's PRs. It is narrower than the
    comment-given analysis, which also counts discussion comments.
    """
    filtered = filter_by_creation_date(prs, days, now)
    authored = [pr for pr in filtered if pr.authored_by(login)]
    merged = [pr for pr in authored if pr.is_merged]

    avg_cycle_time = mean(calculate_cycle_time(pr).total_hours for pr in merged)

    user = login.lower()
    review_comments_given = 0
    for pr in filtered:
        if pr.authored_by(login):
            continue
        for review in pr.reviews:
            if review.author and review.author.lower() == user:
                review_comments_given += review.comment_count

    return GithubStats(
        developer_id=login,
        prs_opened=len(authored),
        prs_merged=len(merged),
        avg_cycle_time_hours=round1(avg_cycle_time),
        review_comments_given=review_comments_given,
    )


def analyze_prs_created(
    prs: Sequence[PullRequest],
    login: str,
    days: int = 0,
    now: Optional[datetime] = None,
) -> PRCreatedAnalysis:
    """List the pull requests ``login`` authored, newest first."""
    authored = [pr for pr in filter_by_creation_date(prs, days, now) if pr.authored_by(login)]
    authored.sort(key=lambda pr: pr.created_at, reverse=True)

    details: List[PRCreatedDetail] = [
        PRCreatedDetail(
            pr_id=pr.key,
            number=pr.number,
            title=pr.title,
            url=pr.url,
            repository=pr.repository,
            status=pr.state.display,
            milestone=pr.milestone,
            created_at=pr.created_at,
            merged_at=pr.merged_at,
        )
        for pr in authored
    ]

    return PRCreatedAnalysis(
        developer_id=login,
        total_prs_created=len(details),
        total_prs_merged=sum(1 for pr in authored if pr.state is PullRequestState.MERGED),
        total_prs_open=sum(1 for pr in authored if pr.state is PullRequestState.OPEN),
        prs_created=details,
    )


def discover_authors(prs: Sequence[PullRequest]) -> List[str]:
    """Distinct PR author logins in first-seen order, compared case-insensitively."""
    seen = set()
    authors: List[str] = []
    for pr in prs:
        if not pr.author or pr.author.lower() in seen:
            continue
        seen.add(pr.author.lower())
        authors.append(pr.author)

    logger.debug("Discovered PR authors", extra={"author_count": len(authors)})
    return authors
