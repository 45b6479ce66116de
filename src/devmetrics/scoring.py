"""Impact scoring for developer metrics."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .stats import round_int

if TYPE_CHECKING:
    from .models import GithubStats, JiraStats

MERGED_WEIGHT = 5.0
REVIEW_COMMENT_WEIGHT = 0.5
VELOCITY_WEIGHT = 1.5
BUG_FIX_WEIGHT = 3.0
MAX_SCORE = 100


def calculate_impact_score(github: "GithubStats", jira: Optional["JiraStats"] = None) -> int:
    """Weighted composite score clamped to ``[0, 100]``.

    Tracker weights only apply when tracker stats are present.
    """
    total = github.prs_merged * MERGED_WEIGHT + github.review_comments_given * REVIEW_COMMENT_WEIGHT
    if jira is not None:
        total += jira.velocity * VELOCITY_WEIGHT + jira.bugs_fixed * BUG_FIX_WEIGHT

    return max(0, min(MAX_SCORE, round_int(total)))


def determine_status(github: "GithubStats") -> str:
    """Coarse activity label shown next to a developer."""
    if github.prs_merged == 0:
        return "On Leave"
    return "Shipping"
