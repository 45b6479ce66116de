"""Cycle-time extraction for pull requests.

A pull request's cycle time is split into three phases, in hours:
- coding: first commit to PR creation
- pickup: PR creation to first review
- review: first review to merge

When no review happened after creation but the PR merged, the whole
creation-to-merge span is attributed to pickup.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .models import CycleTimeBreakdown, PullRequest, ReviewEvent
from .timewindow import hours_between

logger = logging.getLogger(__name__)


def find_first_review_at(pr: PullRequest) -> Optional[datetime]:
    """Return the earliest review event strictly after PR creation, if any."""
    first_review_at: Optional[datetime] = None

    for item in pr.timeline:
        if not isinstance(item, ReviewEvent):
            continue
        if item.created_at <= pr.created_at:
            continue
        if first_review_at is None or item.created_at < first_review_at:
            first_review_at = item.created_at

    return first_review_at


def calculate_cycle_time(pr: PullRequest) -> CycleTimeBreakdown:
    """Compute the coding/pickup/review breakdown for a pull request.

    Each component is clamped to zero independently before summing, so source
    timestamps that run backwards never produce negative phases.
    """
    coding_hours = hours_between(pr.first_commit_at, pr.created_at)
    pickup_hours = 0.0
    review_hours = 0.0

    first_review_at = find_first_review_at(pr)
    if first_review_at is not None:
        pickup_hours = hours_between(pr.created_at, first_review_at)
        if pr.merged_at is not None:
            review_hours = hours_between(first_review_at, pr.merged_at)
    elif pr.merged_at is not None:
        pickup_hours = hours_between(pr.created_at, pr.merged_at)

    if min(coding_hours, pickup_hours, review_hours) < 0:
        logger.debug(
            "Clamping negative cycle-time phase",
            extra={
                "pr_key": pr.key,
                "coding_hours": coding_hours,
                "pickup_hours": pickup_hours,
                "review_hours": review_hours,
            },
        )

    coding_hours = max(0.0, coding_hours)
    pickup_hours = max(0.0, pickup_hours)
    review_hours = max(0.0, review_hours)

    return CycleTimeBreakdown(
        coding_hours=coding_hours,
        pickup_hours=pickup_hours,
        review_hours=review_hours,
        total_hours=coding_hours + pickup_hours + review_hours,
    )
