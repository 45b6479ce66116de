"""Fluent JQL construction and the canned queries used by the dashboard."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .sprints import STORY_POINT_FIELDS, STUCK_STATUSES
from .timewindow import utc_now

STANDARD_FIELDS: List[str] = [
    "summary",
    "assignee",
    "status",
    "issuetype",
    "created",
    "updated",
    "priority",
    "labels",
    "resolutiondate",
    *STORY_POINT_FIELDS,
]

ACTIVE_STATUSES = ("To Do", "In Progress", "Review")


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _quoted_list(values: Sequence[str]) -> str:
    return ", ".join(_quote(value) for value in values)


class JQLBuilder:
    """Collects ``AND``-joined conditions plus an optional ordering clause."""

    def __init__(self) -> None:
        self._conditions: List[str] = []
        self._order_by: Optional[str] = None

    def project(self, key: str) -> "JQLBuilder":
        self._conditions.append(f"project = {_quote(key)}")
        return self

    def assignee(self, email: str) -> "JQLBuilder":
        self._conditions.append(f"assignee = {_quote(email)}")
        return self

    def sprint(self, sprint_id: int) -> "JQLBuilder":
        self._conditions.append(f"sprint = {int(sprint_id)}")
        return self

    def issue_types(self, types: Sequence[str]) -> "JQLBuilder":
        self._conditions.append(f"issuetype IN ({_quoted_list(types)})")
        return self

    def statuses(self, statuses: Sequence[str]) -> "JQLBuilder":
        self._conditions.append(f"status IN ({_quoted_list(statuses)})")
        return self

    def updated_since(self, since: datetime) -> "JQLBuilder":
        self._conditions.append(f'updated >= "{since.date().isoformat()}"')
        return self

    def labels(self, labels: Sequence[str]) -> "JQLBuilder":
        self._conditions.append(f"labels IN ({_quoted_list(labels)})")
        return self

    def where(self, condition: str) -> "JQLBuilder":
        """Add a raw condition that the typed helpers do not cover."""
        self._conditions.append(condition)
        return self

    def order_by(self, field: str, direction: str = "DESC") -> "JQLBuilder":
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Unsupported sort direction: {direction}")
        self._order_by = f"ORDER BY {field} {direction}"
        return self

    def build(self) -> str:
        query = " AND ".join(self._conditions)
        if self._order_by:
            return f"{query} {self._order_by}" if query else self._order_by
        return query


def developer_issues_query(
    project_key: str,
    assignee_email: str,
    days_back: int = 14,
    now: Optional[datetime] = None,
) -> str:
    since = (now or utc_now()) - timedelta(days=days_back)
    return (
        JQLBuilder()
        .project(project_key)
        .assignee(assignee_email)
        .updated_since(since)
        .order_by("updated")
        .build()
    )


def project_issues_query(project_key: str, days_back: int, now: Optional[datetime] = None) -> str:
    """Every issue in the project updated within ``days_back`` days."""
    since = (now or utc_now()) - timedelta(days=days_back)
    return JQLBuilder().project(project_key).updated_since(since).order_by("updated").build()


def active_tickets_query(project_key: str, assignee_email: Optional[str] = None) -> str:
    builder = JQLBuilder().project(project_key).statuses(ACTIVE_STATUSES)
    if assignee_email:
        builder.assignee(assignee_email)
    return builder.order_by("priority").build()


def stuck_tickets_query(project_key: str, days_in_status: int = 3, now: Optional[datetime] = None) -> str:
    """Tickets in a working status whose status has not changed for ``days_in_status`` days."""
    stuck_since = (now or utc_now()) - timedelta(days=days_in_status)
    return (
        JQLBuilder()
        .project(project_key)
        .statuses(STUCK_STATUSES)
        .where(f'statusCategoryChangedDate <= "{stuck_since.date().isoformat()}"')
        .build()
    )
