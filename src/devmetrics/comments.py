"""Comment-graph analysis over pull request reviews and discussions.

Both directions are computed from the same per-PR data:

- received: who commented on a developer's own pull requests
- given: which other people's pull requests a developer commented on

A comment counts when it comes from a review (its attached inline comment
count), the PR's direct comments, or a timeline issue comment. Comments by
the PR author on their own PR never count, and comments whose author is
missing (deleted users) are skipped. Logins compare case-insensitively.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .models import (
    CommentAnalysis,
    CommentAuthorStat,
    CommentGivenAnalysis,
    IssueCommentEvent,
    PRCommentedOn,
    PullRequest,
)
from .timewindow import filter_by_creation_date

TOP_COMMENTERS_LIMIT = 5


def _iter_comment_sources(pr: PullRequest) -> Iterator[Tuple[str, int, datetime]]:
    """Yield ``(lowercased author, count, timestamp)`` for every comment source on a PR."""
    for review in pr.reviews:
        if review.author and review.comment_count > 0:
            yield review.author.lower(), review.comment_count, review.created_at

    for comment in pr.comments:
        if comment.author:
            yield comment.author.lower(), 1, comment.created_at

    for item in pr.timeline:
        if isinstance(item, IssueCommentEvent) and item.author:
            yield item.author.lower(), 1, item.created_at


def analyze_comments_received(
    prs: Sequence[PullRequest],
    login: str,
    days: int = 0,
    now: Optional[datetime] = None,
) -> CommentAnalysis:
    """Tally who commented on ``login``'s pull requests, most active first."""
    counts: Dict[str, int] = {}

    for pr in filter_by_creation_date(prs, days, now):
        if not pr.authored_by(login):
            continue
        pr_author = (pr.author or "").lower()

        for commenter, count, _ in _iter_comment_sources(pr):
            if commenter == pr_author:
                continue
            counts[commenter] = counts.get(commenter, 0) + count

    commenters = sorted(
        (CommentAuthorStat(login=commenter, count=count) for commenter, count in counts.items()),
        key=lambda stat: stat.count,
        reverse=True,
    )

    return CommentAnalysis(
        developer_id=login,
        total_comments=sum(stat.count for stat in commenters),
        unique_commenters=len(commenters),
        top_commenters=commenters[:TOP_COMMENTERS_LIMIT],
        commenters=commenters,
    )


def analyze_comments_given(
    prs: Sequence[PullRequest],
    login: str,
    days: int = 0,
    now: Optional[datetime] = None,
) -> CommentGivenAnalysis:
    """List other people's pull requests that ``login`` commented on.

    Each entry carries the developer's comment count on that PR and the most
    recent of their comment timestamps across all sources.
    """
    user = login.lower()
    commented: Dict[str, PRCommentedOn] = {}

    for pr in filter_by_creation_date(prs, days, now):
        if pr.authored_by(user):
            continue

        comment_count = 0
        last_commented_at: Optional[datetime] = None
        for commenter, count, created_at in _iter_comment_sources(pr):
            if commenter != user:
                continue
            comment_count += count
            if last_commented_at is None or created_at > last_commented_at:
                last_commented_at = created_at

        if comment_count > 0:
            commented[pr.key] = PRCommentedOn(
                pr_id=pr.key,
                number=pr.number,
                title=pr.title,
                url=pr.url,
                repository=pr.repository,
                author=pr.author,
                comment_count=comment_count,
                last_commented_at=last_commented_at,
            )

    prs_commented_on: List[PRCommentedOn] = sorted(
        commented.values(), key=lambda item: item.comment_count, reverse=True
    )

    return CommentGivenAnalysis(
        developer_id=login,
        total_comments_given=sum(item.comment_count for item in prs_commented_on),
        total_prs_commented_on=len(prs_commented_on),
        prs_commented_on=prs_commented_on,
    )
