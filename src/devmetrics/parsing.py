"""Conversion of raw API payloads into the package's internal records.

This is the only place that deals with the nested, optional-heavy upstream
shapes. Sub-records that cannot be interpreted (comments without a
timestamp, unknown timeline entries) are skipped or kept as
``UnknownEvent``; items missing fields every aggregator depends on raise
``DataValidationError``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import DataValidationError
from .models import (
    Comment,
    IssueCommentEvent,
    JiraIssue,
    JiraSprint,
    PullRequest,
    PullRequestState,
    Review,
    ReviewEvent,
    SeatRecord,
    SprintState,
    TeamMember,
    TimelineItem,
    UnknownEvent,
)
from .sprints import get_story_points
from .timewindow import parse_datetime

logger = logging.getLogger(__name__)


def _nodes(connection: Optional[Mapping[str, Any]]) -> List[Any]:
    if not connection:
        return []
    return [node for node in connection.get("nodes") or [] if node]


def _login(actor: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not actor:
        return None
    login = actor.get("login")
    return str(login) if login else None


def _sub_record_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a nested timestamp; malformed values read as missing so the sub-record is skipped."""
    try:
        return parse_datetime(value)
    except ValueError:
        logger.warning("Skipping malformed timestamp", extra={"value": value})
        return None


def _field_datetime(record: Mapping[str, Any], name: str) -> Optional[datetime]:
    """Parse an item-level timestamp.

    Raises:
        DataValidationError: If the value is present but not ISO 8601.
    """
    value = record.get(name)
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise DataValidationError(f"Malformed timestamp in '{name}': {value!r}") from exc


def parse_timeline_item(node: Mapping[str, Any]) -> TimelineItem:
    """Map one ``timelineItems`` node onto a typed timeline event."""
    typename = str(node.get("__typename") or "Unknown")
    created_at = _sub_record_datetime(node.get("createdAt") or node.get("submittedAt"))

    if created_at is not None:
        if typename == "PullRequestReview":
            return ReviewEvent(author=_login(node.get("author")), created_at=created_at)
        if typename == "IssueComment":
            return IssueCommentEvent(author=_login(node.get("author")), created_at=created_at)

    return UnknownEvent(typename=typename, created_at=created_at)


def _parse_reviews(connection: Optional[Mapping[str, Any]]) -> Tuple[Review, ...]:
    reviews: List[Review] = []
    for node in _nodes(connection):
        created_at = _sub_record_datetime(node.get("createdAt") or node.get("submittedAt"))
        if created_at is None:
            continue
        comments = node.get("comments") or {}
        reviews.append(
            Review(
                author=_login(node.get("author")),
                created_at=created_at,
                comment_count=int(comments.get("totalCount") or 0),
                state=node.get("state"),
            )
        )
    return tuple(reviews)


def _parse_comments(connection: Optional[Mapping[str, Any]]) -> Tuple[Comment, ...]:
    comments: List[Comment] = []
    for node in _nodes(connection):
        created_at = _sub_record_datetime(node.get("createdAt"))
        if created_at is None:
            continue
        comments.append(Comment(author=_login(node.get("author")), created_at=created_at))
    return tuple(comments)


def _parse_commit_dates(connection: Optional[Mapping[str, Any]]) -> Tuple:
    dates = []
    for node in _nodes(connection):
        commit = node.get("commit") or {}
        committed = _sub_record_datetime(commit.get("committedDate"))
        if committed is not None:
            dates.append(committed)
    return tuple(dates)


def parse_pull_request(node: Mapping[str, Any], repository: str = "unknown", owner: str = "unknown") -> PullRequest:
    """Parse one GraphQL pull request node.

    Raises:
        DataValidationError: If the number, creation time or state is missing
            or unrecognised.
    """
    number = node.get("number")
    created_at = _field_datetime(node, "createdAt")
    state_raw = node.get("state")

    try:
        state = PullRequestState(str(state_raw).upper())
    except ValueError:
        state = None

    if number is None or created_at is None or state is None:
        raise DataValidationError(
            "Pull request payload is missing required fields: "
            f"repository={repository}, number={number}, state={state_raw}"
        )

    milestone = node.get("milestone") or {}
    return PullRequest(
        number=int(number),
        title=str(node.get("title") or ""),
        state=state,
        author=_login(node.get("author")),
        created_at=created_at,
        updated_at=_field_datetime(node, "updatedAt") or created_at,
        merged_at=_field_datetime(node, "mergedAt"),
        closed_at=_field_datetime(node, "closedAt"),
        additions=int(node.get("additions") or 0),
        deletions=int(node.get("deletions") or 0),
        milestone=milestone.get("title"),
        repository=repository,
        owner=owner,
        reviews=_parse_reviews(node.get("reviews")),
        comments=_parse_comments(node.get("comments")),
        timeline=tuple(parse_timeline_item(item) for item in _nodes(node.get("timelineItems"))),
        commit_dates=_parse_commit_dates(node.get("commits")),
    )


def parse_org_pull_requests(data: Mapping[str, Any]) -> List[PullRequest]:
    """Flatten ``organization.repositories[].pullRequests[]`` into one list.

    Each item is stamped with its repository name and owner; the owner falls
    back to the organization login.
    """
    organization = data.get("organization")
    if not organization:
        raise DataValidationError("GraphQL response has no 'organization' object")

    org_login = organization.get("login") or "unknown"
    pull_requests: List[PullRequest] = []

    for repo in _nodes(organization.get("repositories")):
        repo_name = repo.get("name") or "unknown"
        owner = _login(repo.get("owner")) or org_login
        for node in _nodes(repo.get("pullRequests")):
            pull_requests.append(parse_pull_request(node, repository=repo_name, owner=owner))

    logger.info(
        "Parsed organization pull requests",
        extra={"organization": org_login, "pull_requests": len(pull_requests)},
    )
    return pull_requests


def parse_org_members(data: Mapping[str, Any]) -> List[TeamMember]:
    """Parse org members and attach the names of the teams each belongs to."""
    organization = data.get("organization") or {}

    teams_by_login: Dict[str, List[str]] = {}
    for team in _nodes(organization.get("teams")):
        team_name = team.get("name")
        if not team_name:
            continue
        for member in _nodes(team.get("members")):
            login = _login(member)
            if login:
                teams_by_login.setdefault(login, []).append(str(team_name))

    members: List[TeamMember] = []
    for node in _nodes(organization.get("membersWithRole")):
        login = _login(node)
        if not login:
            continue
        members.append(
            TeamMember(
                login=login,
                name=node.get("name") or None,
                email=node.get("email") or None,
                teams=tuple(teams_by_login.get(login, ())),
            )
        )
    return members


def parse_seats(payload: Mapping[str, Any]) -> Tuple[int, List[SeatRecord]]:
    """Parse the assistant billing seats response into ``(total_seats, seats)``.

    Raises:
        DataValidationError: If a seat has no assignee login or assignment date.
    """
    seats: List[SeatRecord] = []
    for item in payload.get("seats") or []:
        assignee = item.get("assignee") or {}
        login = assignee.get("login")
        assigned_at = _field_datetime(item, "created_at")
        if not login or assigned_at is None:
            raise DataValidationError(f"Seat payload is missing required fields: {item}")

        seats.append(
            SeatRecord(
                login=str(login),
                assigned_at=assigned_at,
                last_activity_at=_field_datetime(item, "last_activity_at"),
                last_activity_editor=item.get("last_activity_editor") or None,
                avatar_url=assignee.get("avatar_url") or None,
            )
        )

    total_seats = payload.get("total_seats")
    return (int(total_seats) if total_seats is not None else len(seats)), seats


def parse_jira_issue(raw: Mapping[str, Any]) -> JiraIssue:
    """Parse one issue from a search or sprint-issues response.

    Raises:
        DataValidationError: If the key or creation timestamp is missing.
    """
    fields = raw.get("fields") or {}
    key = raw.get("key")
    created = _field_datetime(fields, "created")
    if not key or created is None:
        raise DataValidationError(f"Issue payload is missing required fields: key={key}")

    status = fields.get("status") or {}
    category = status.get("statusCategory") or {}
    issue_type = fields.get("issuetype") or {}
    assignee = fields.get("assignee") or {}
    avatars = assignee.get("avatarUrls") or {}

    return JiraIssue(
        id=str(raw.get("id") or key),
        key=str(key),
        summary=str(fields.get("summary") or ""),
        issue_type=str(issue_type.get("name") or "Task"),
        status_name=str(status.get("name") or "To Do"),
        status_category=str(category.get("key") or "new"),
        created=created,
        updated=_field_datetime(fields, "updated") or created,
        story_points=get_story_points(fields),
        labels=tuple(str(label) for label in fields.get("labels") or []),
        assignee_name=assignee.get("displayName") or None,
        assignee_email=assignee.get("emailAddress") or None,
        assignee_avatar=avatars.get("48x48") or None,
    )


def parse_jira_issues(raw_issues: List[Mapping[str, Any]]) -> List[JiraIssue]:
    return [parse_jira_issue(raw) for raw in raw_issues]


def parse_sprints(raw_sprints: List[Mapping[str, Any]]) -> List[JiraSprint]:
    """Parse agile board sprints; sprints with an unknown state are skipped."""
    sprints: List[JiraSprint] = []
    for raw in raw_sprints:
        try:
            state = SprintState(str(raw.get("state") or "").lower())
        except ValueError:
            logger.warning("Skipping sprint with unknown state", extra={"sprint": raw.get("id")})
            continue
        if raw.get("id") is None:
            continue

        sprints.append(
            JiraSprint(
                id=int(raw["id"]),
                name=str(raw.get("name") or raw["id"]),
                state=state,
                start_date=_sub_record_datetime(raw.get("startDate")),
                end_date=_sub_record_datetime(raw.get("endDate")),
                complete_date=_sub_record_datetime(raw.get("completeDate")),
                goal=raw.get("goal") or None,
            )
        )
    return sprints
