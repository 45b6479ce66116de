"""Sprint and ticket analysis over issue-tracker data."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .models import (
    InvestmentSlice,
    IssueCategory,
    JiraIssue,
    JiraSprint,
    JiraStats,
    JiraTicket,
    SprintAnalytics,
    SprintMetric,
    SprintState,
    SprintSummary,
)
from .stats import mean, round1, round_int
from .timewindow import SECONDS_PER_DAY, utc_now, whole_days_between

logger = logging.getLogger(__name__)

# Story points live in an organization-specific custom field; check the usual ones in order.
STORY_POINT_FIELDS: Tuple[str, ...] = (
    "customfield_10016",
    "customfield_10026",
    "customfield_10036",
)

DEFAULT_STUCK_DAYS = 3
STUCK_STATUSES: Tuple[str, ...] = ("In Progress", "Review")
TICKET_STATUSES: Tuple[str, ...] = ("To Do", "In Progress", "Review", "Done")

_ISSUE_TYPE_CATEGORIES: Dict[str, IssueCategory] = {
    "Story": IssueCategory.STORY,
    "Bug": IssueCategory.BUG,
    "Task": IssueCategory.TASK,
    "Technical Debt": IssueCategory.TECH_DEBT,
    "Sub-task": IssueCategory.TASK,
    "Support": IssueCategory.SUPPORT,
}

CATEGORY_COLORS: Dict[IssueCategory, str] = {
    IssueCategory.STORY: "#3b82f6",
    IssueCategory.BUG: "#ef4444",
    IssueCategory.TASK: "#8b5cf6",
    IssueCategory.TECH_DEBT: "#f59e0b",
    IssueCategory.SUPPORT: "#10b981",
}

_TECH_DEBT_LABELS = ("tech-debt", "technical-debt")
_FLAG_LABELS = ("blocked", "impediment")


def get_story_points(fields: Mapping[str, object]) -> float:
    """Return the first numeric story-point value found, or 0."""
    for name in STORY_POINT_FIELDS:
        value = fields.get(name)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) and value:
            return value
    return 0


def categorize_issue_type(issue_type: str) -> IssueCategory:
    """Normalize a native issue-type name; unknown types count as tasks."""
    return _ISSUE_TYPE_CATEGORIES.get(issue_type, IssueCategory.TASK)


def _has_label(issue: JiraIssue, needles: Sequence[str]) -> bool:
    return any(needle in label.lower() for label in issue.labels for needle in needles)


def map_issues_to_stats(issues: Sequence[JiraIssue], email: str) -> JiraStats:
    """Roll up tracker stats for the assignee with ``email``."""
    user = email.lower()
    assigned = [
        issue
        for issue in issues
        if issue.assignee_email is not None and issue.assignee_email.lower() == user
    ]
    done = [issue for issue in assigned if issue.is_done]

    return JiraStats(
        developer_id=email,
        velocity=sum(issue.story_points for issue in done),
        active_tickets=sum(1 for issue in assigned if not issue.is_done),
        bugs_fixed=sum(1 for issue in done if issue.issue_type == "Bug"),
        features_completed=sum(1 for issue in done if issue.issue_type == "Story"),
        tech_debt_tickets=sum(
            1
            for issue in assigned
            if issue.issue_type == "Technical Debt" or _has_label(issue, _TECH_DEBT_LABELS)
        ),
    )


def map_issue_to_ticket(issue: JiraIssue, now: Optional[datetime] = None) -> JiraTicket:
    """Map a parsed issue onto a display-ready ticket."""
    status = issue.status_name if issue.status_name in TICKET_STATUSES else "To Do"
    return JiraTicket(
        id=issue.id,
        key=issue.key,
        title=issue.summary,
        assignee=issue.assignee_name or "Unassigned",
        assignee_avatar=issue.assignee_avatar or "",
        type=categorize_issue_type(issue.issue_type),
        status=status,
        points=issue.story_points,
        days_in_status=whole_days_between(issue.updated, now or utc_now()),
        flagged=_has_label(issue, _FLAG_LABELS),
    )


def calculate_say_do_ratio(committed_points: float, completed_points: float) -> int:
    """Completed as a whole percentage of committed; 0 when nothing was committed."""
    if committed_points <= 0:
        return 0
    return round_int(completed_points / committed_points * 100)


def calculate_sprint_metrics(
    sprint: JiraSprint,
    issues: Sequence[JiraIssue],
    now: Optional[datetime] = None,
) -> SprintMetric:
    """Committed, completed and scope-change points for one sprint.

    Issues created at or before the sprint start are committed work; issues
    created later are scope change. Completed points count every done issue
    regardless of when it joined.
    """
    start = sprint.start_date or now or utc_now()

    committed = sum(issue.story_points for issue in issues if issue.created <= start)
    added = sum(issue.story_points for issue in issues if issue.created > start)
    completed = sum(issue.story_points for issue in issues if issue.is_done)

    return SprintMetric(
        id=str(sprint.id),
        name=sprint.name,
        committed_points=committed,
        completed_points=completed,
        scope_change_points=added,
        say_do_ratio=calculate_say_do_ratio(committed, completed),
        state=sprint.state,
    )


def find_stuck_tickets(
    issues: Sequence[JiraIssue],
    days_threshold: float = DEFAULT_STUCK_DAYS,
    statuses: Sequence[str] = STUCK_STATUSES,
    now: Optional[datetime] = None,
) -> List[JiraTicket]:
    """Tickets sitting in one of ``statuses`` without updates for ``days_threshold`` days."""
    now = now or utc_now()
    stuck: List[JiraTicket] = []
    for issue in issues:
        if issue.status_name not in statuses:
            continue
        days_since_update = (now - issue.updated).total_seconds() / SECONDS_PER_DAY
        if days_since_update >= days_threshold:
            stuck.append(map_issue_to_ticket(issue, now))
    return stuck


def build_investment_profile(issues: Sequence[JiraIssue]) -> List[InvestmentSlice]:
    """Issue counts per investment category, in first-seen order."""
    counts: Dict[IssueCategory, int] = {}
    for issue in issues:
        category = categorize_issue_type(issue.issue_type)
        counts[category] = counts.get(category, 0) + 1

    return [
        InvestmentSlice(name=category.value, value=count, color=CATEGORY_COLORS[category])
        for category, count in counts.items()
    ]


def build_sprint_analytics(
    sprints: Sequence[JiraSprint],
    sprint_issues: Mapping[int, Sequence[JiraIssue]],
    active_issues: Sequence[JiraIssue],
    stuck_days: float = DEFAULT_STUCK_DAYS,
    now: Optional[datetime] = None,
) -> SprintAnalytics:
    """Build the board-level sprint analytics bundle.

    An active sprint reports a say/do ratio of 0 since its completion is not
    final yet. Summary averages use finished sprints whenever there are any.
    """
    now = now or utc_now()
    history: List[SprintMetric] = []
    for sprint in sprints:
        metric = calculate_sprint_metrics(sprint, sprint_issues.get(sprint.id, ()), now)
        if sprint.state is SprintState.ACTIVE:
            metric = replace(metric, say_do_ratio=0)
        history.append(metric)

    finished = [metric for metric in history if metric.state is not SprintState.ACTIVE]
    averaged = finished or history

    all_issues: List[JiraIssue] = [issue for issues in sprint_issues.values() for issue in issues]
    bug_count = sum(1 for issue in all_issues if issue.issue_type == "Bug")
    bug_rate = bug_count / len(all_issues) * 100 if all_issues else 0.0

    logger.debug(
        "Built sprint analytics",
        extra={"sprints": len(history), "issues": len(all_issues), "active_issues": len(active_issues)},
    )

    return SprintAnalytics(
        summary=SprintSummary(
            avg_velocity=round1(mean(metric.completed_points for metric in averaged)),
            say_do_ratio=round_int(mean(metric.say_do_ratio for metric in averaged)),
            scope_creep=round1(mean(metric.scope_change_points for metric in averaged)),
            bug_rate=round1(bug_rate),
        ),
        sprint_history=history,
        active_tickets=[map_issue_to_ticket(issue, now) for issue in active_issues],
        stuck_tickets=find_stuck_tickets(active_issues, stuck_days, now=now),
        investment_profile=build_investment_profile(all_issues),
    )
