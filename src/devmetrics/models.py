"""Domain models for developer metrics aggregation.

Two families of dataclasses live here:

- Parsed records (``PullRequest``, ``JiraIssue``, ``SeatRecord`` ...) that model
  only the subset of upstream payload fields the aggregators need. They are
  built once per fetch cycle by :mod:`devmetrics.parsing` and never mutated.
- Analytic results (``CycleTimeBreakdown``, ``DeveloperMetric`` ...) returned to
  the presentation layer. Each exposes ``to_dict()`` producing the
  JSON-serialisable shape stored in the cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from .scoring import calculate_impact_score, determine_status


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def avatar_url(login: str) -> str:
    """Return the public avatar URL for a GitHub login."""
    return f"https://github.com/{login}.png"


# ---------------------------------------------------------------------------
# Change-request records
# ---------------------------------------------------------------------------


class PullRequestState(str, Enum):
    """Lifecycle state reported by the GraphQL API."""

    OPEN = "OPEN"
    MERGED = "MERGED"
    CLOSED = "CLOSED"

    @property
    def display(self) -> str:
        return self.value.lower()


@dataclass(frozen=True, slots=True)
class Review:
    """A submitted review with the number of inline comments attached to it."""

    author: Optional[str]
    created_at: datetime
    comment_count: int = 0
    state: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Comment:
    """A general discussion comment on a pull request."""

    author: Optional[str]
    created_at: datetime


@dataclass(frozen=True, slots=True)
class ReviewEvent:
    """Timeline entry for a submitted review."""

    author: Optional[str]
    created_at: datetime


@dataclass(frozen=True, slots=True)
class IssueCommentEvent:
    """Timeline entry for a conversation comment."""

    author: Optional[str]
    created_at: datetime


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    """Timeline entry of a type the aggregators do not interpret."""

    typename: str
    created_at: Optional[datetime] = None


TimelineItem = Union[ReviewEvent, IssueCommentEvent, UnknownEvent]


@dataclass(frozen=True, slots=True)
class PullRequest:
    """Represents the pull request data required for metric calculations."""

    number: int
    title: str
    state: PullRequestState
    author: Optional[str]
    created_at: datetime
    updated_at: datetime
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    additions: int = 0
    deletions: int = 0
    milestone: Optional[str] = None
    repository: str = "unknown"
    owner: str = "unknown"
    reviews: Tuple[Review, ...] = ()
    comments: Tuple[Comment, ...] = ()
    timeline: Tuple[TimelineItem, ...] = ()
    commit_dates: Tuple[datetime, ...] = ()

    @property
    def key(self) -> str:
        return f"{self.repository}-{self.number}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repository}/pull/{self.number}"

    @property
    def first_commit_at(self) -> datetime:
        return self.commit_dates[0] if self.commit_dates else self.created_at

    @property
    def is_merged(self) -> bool:
        return self.state is PullRequestState.MERGED

    @property
    def size(self) -> int:
        return self.additions + self.deletions

    def authored_by(self, login: str) -> bool:
        """Case-insensitive authorship check; items without an author match nobody."""
        return self.author is not None and self.author.lower() == login.lower()


@dataclass(frozen=True, slots=True)
class TeamMember:
    """An organization member and the names of the teams they belong to."""

    login: str
    name: Optional[str] = None
    email: Optional[str] = None
    teams: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Change-request analytics
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CycleTimeBreakdown:
    """Per-item duration breakdown in hours; every component is >= 0."""

    coding_hours: float
    pickup_hours: float
    review_hours: float
    total_hours: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "coding_hours": self.coding_hours,
            "pickup_hours": self.pickup_hours,
            "review_hours": self.review_hours,
            "total_hours": self.total_hours,
        }


@dataclass(frozen=True, slots=True)
class PullRequestSummary:
    """Lightweight, display-ready snapshot of a pull request."""

    id: str
    title: str
    author: str
    created_at: datetime
    first_commit_at: datetime
    first_review_at: Optional[datetime]
    merged_at: Optional[datetime]
    lines_added: int
    lines_deleted: int
    status: str
    url: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "author_avatar": avatar_url(self.author),
            "created_at": _iso(self.created_at),
            "first_commit_at": _iso(self.first_commit_at),
            "first_review_at": _iso(self.first_review_at),
            "merged_at": _iso(self.merged_at),
            "lines_added": self.lines_added,
            "lines_deleted": self.lines_deleted,
            "status": self.status,
            "url": self.url,
        }


@dataclass(frozen=True, slots=True)
class CommentAuthorStat:
    """Number of comments attributed to one identity."""

    login: str
    count: int

    def to_dict(self) -> Dict[str, object]:
        return {"login": self.login, "count": self.count, "avatar": avatar_url(self.login)}


@dataclass(frozen=True, slots=True)
class CommentAnalysis:
    """Who commented on a developer's own pull requests."""

    developer_id: str
    total_comments: int
    unique_commenters: int
    top_commenters: List[CommentAuthorStat]
    commenters: List[CommentAuthorStat]

    def to_dict(self) -> Dict[str, object]:
        return {
            "developer_id": self.developer_id,
            "total_comments": self.total_comments,
            "unique_commenters": self.unique_commenters,
            "top_commenters": [stat.to_dict() for stat in self.top_commenters],
            "commenters": [stat.to_dict() for stat in self.commenters],
        }


@dataclass(frozen=True, slots=True)
class PRCommentedOn:
    """A pull request authored by someone else that the developer commented on."""

    pr_id: str
    number: int
    title: str
    url: str
    repository: str
    author: Optional[str]
    comment_count: int
    last_commented_at: Optional[datetime]

    def to_dict(self) -> Dict[str, object]:
        return {
            "pr_id": self.pr_id,
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "repository": self.repository,
            "author": self.author,
            "comment_count": self.comment_count,
            "last_commented_at": _iso(self.last_commented_at),
        }


@dataclass(frozen=True, slots=True)
class CommentGivenAnalysis:
    """Comments a developer left on other people's pull requests."""

    developer_id: str
    total_comments_given: int
    total_prs_commented_on: int
    prs_commented_on: List[PRCommentedOn]

    def to_dict(self) -> Dict[str, object]:
        return {
            "developer_id": self.developer_id,
            "total_comments_given": self.total_comments_given,
            "total_prs_commented_on": self.total_prs_commented_on,
            "prs_commented_on": [item.to_dict() for item in self.prs_commented_on],
        }


@dataclass(frozen=True, slots=True)
class PRCreatedDetail:
    """Creation-detail listing entry for an authored pull request."""

    pr_id: str
    number: int
    title: str
    url: str
    repository: str
    status: str
    milestone: Optional[str]
    created_at: datetime
    merged_at: Optional[datetime]

    def to_dict(self) -> Dict[str, object]:
        return {
            "pr_id": self.pr_id,
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "repository": self.repository,
            "status": self.status,
            "milestone": self.milestone,
            "created_at": _iso(self.created_at),
            "merged_at": _iso(self.merged_at),
        }


@dataclass(frozen=True, slots=True)
class PRCreatedAnalysis:
    """Pull requests authored by a developer, newest first."""

    developer_id: str
    total_prs_created: int
    total_prs_merged: int
    total_prs_open: int
    prs_created: List[PRCreatedDetail]

    def to_dict(self) -> Dict[str, object]:
        return {
            "developer_id": self.developer_id,
            "total_prs_created": self.total_prs_created,
            "total_prs_merged": self.total_prs_merged,
            "total_prs_open": self.total_prs_open,
            "prs_created": [item.to_dict() for item in self.prs_created],
        }


@dataclass(frozen=True, slots=True)
class CycleTimeDaily:
    """Average cycle-time components for items merged on one UTC day."""

    date: str
    coding_hours: float
    pickup_hours: float
    review_hours: float
    total_hours: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date,
            "coding_hours": self.coding_hours,
            "pickup_hours": self.pickup_hours,
            "review_hours": self.review_hours,
            "total_hours": self.total_hours,
        }


@dataclass(frozen=True, slots=True)
class ScatterPoint:
    """Size-versus-latency sample for one merged pull request."""

    size: int
    time: float
    pr: PullRequestSummary

    def to_dict(self) -> Dict[str, object]:
        return {"size": self.size, "time": self.time, "pr": self.pr.to_dict()}


@dataclass(frozen=True, slots=True)
class ChangeRequestSummary:
    avg_cycle_time: float
    avg_pickup_time: float
    avg_review_time: float
    merge_rate: float
    p50_cycle_time: Optional[float] = None
    p90_cycle_time: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "avg_cycle_time": self.avg_cycle_time,
            "avg_pickup_time": self.avg_pickup_time,
            "avg_review_time": self.avg_review_time,
            "merge_rate": self.merge_rate,
            "p50_cycle_time": self.p50_cycle_time,
            "p90_cycle_time": self.p90_cycle_time,
        }


@dataclass(frozen=True, slots=True)
class ChangeRequestAnalytics:
    """Organization-wide pull request analytics bundle."""

    summary: ChangeRequestSummary
    cycle_time_trend: List[CycleTimeDaily]
    scatter_data: List[ScatterPoint]
    stale_prs: List[PullRequestSummary]

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "cycle_time_trend": [day.to_dict() for day in self.cycle_time_trend],
            "scatter_data": [point.to_dict() for point in self.scatter_data],
            "stale_prs": [pr.to_dict() for pr in self.stale_prs],
        }


# ---------------------------------------------------------------------------
# Developer metrics
# ---------------------------------------------------------------------------


class Role(str, Enum):
    """Team role derived from external team names."""

    FRONTEND = "Frontend"
    BACKEND = "Backend"
    FULLSTACK = "Fullstack"
    DEVOPS = "DevOps"
    OTHER = "Other"

    @classmethod
    def from_team_name(cls, team_name: Optional[str]) -> "Role":
        """Map a free-form team name onto a role.

        Members without a team default to ``FULLSTACK``; team names that do not
        mention a known role map to ``OTHER``.
        """
        if not team_name:
            return cls.FULLSTACK

        normalized = team_name.lower().replace("-", "").replace(" ", "")
        for keyword, role in _ROLE_KEYWORDS:
            if keyword in normalized:
                return role
        return cls.OTHER


_ROLE_KEYWORDS: Tuple[Tuple[str, Role], ...] = (
    ("fullstack", Role.FULLSTACK),
    ("frontend", Role.FRONTEND),
    ("backend", Role.BACKEND),
    ("devops", Role.DEVOPS),
    ("platform", Role.DEVOPS),
    ("sre", Role.DEVOPS),
)


@dataclass(frozen=True, slots=True)
class Developer:
    id: str
    name: str
    role: Role = Role.FULLSTACK
    team: Optional[str] = None
    email: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "team": self.team,
            "email": self.email,
            "avatar": avatar_url(self.id),
        }


@dataclass(frozen=True, slots=True)
class GithubStats:
    """Per-author pull request rollup."""

    developer_id: str
    prs_opened: int
    prs_merged: int
    avg_cycle_time_hours: float
    review_comments_given: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "prs_opened": self.prs_opened,
            "prs_merged": self.prs_merged,
            "avg_cycle_time_hours": self.avg_cycle_time_hours,
            "review_comments_given": self.review_comments_given,
        }


@dataclass(frozen=True, slots=True)
class JiraStats:
    """Per-assignee issue-tracker rollup."""

    developer_id: str
    velocity: float
    active_tickets: int
    bugs_fixed: int
    features_completed: int
    tech_debt_tickets: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "velocity": self.velocity,
            "active_tickets": self.active_tickets,
            "bugs_fixed": self.bugs_fixed,
            "features_completed": self.features_completed,
            "tech_debt_tickets": self.tech_debt_tickets,
        }


@dataclass(frozen=True, slots=True)
class DeveloperMetric:
    """Composite per-developer record.

    ``impact_score`` and ``status`` are derived on access from the other fields,
    so they can never drift from the stats they summarise.
    """

    developer: Developer
    github: GithubStats
    jira: Optional[JiraStats] = None
    comment_analysis: Optional[CommentAnalysis] = None
    comment_given_analysis: Optional[CommentGivenAnalysis] = None
    pr_created_analysis: Optional[PRCreatedAnalysis] = None
    recent_activity_trend: List[int] = field(default_factory=list)

    @property
    def impact_score(self) -> int:
        return calculate_impact_score(self.github, self.jira)

    @property
    def status(self) -> str:
        return determine_status(self.github)

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = self.developer.to_dict()
        payload.update(self.github.to_dict())
        payload["jira"] = self.jira.to_dict() if self.jira is not None else None
        payload["impact_score"] = self.impact_score
        payload["status"] = self.status
        payload["recent_activity_trend"] = list(self.recent_activity_trend)
        payload["comment_analysis"] = (
            self.comment_analysis.to_dict() if self.comment_analysis is not None else None
        )
        payload["comment_given_analysis"] = (
            self.comment_given_analysis.to_dict() if self.comment_given_analysis is not None else None
        )
        payload["pr_created_analysis"] = (
            self.pr_created_analysis.to_dict() if self.pr_created_analysis is not None else None
        )
        return payload


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    total_prs_merged: int
    avg_cycle_time: float
    total_velocity: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_prs_merged": self.total_prs_merged,
            "avg_cycle_time": self.avg_cycle_time,
            "total_velocity": self.total_velocity,
        }


# ---------------------------------------------------------------------------
# Issue-tracker records and analytics
# ---------------------------------------------------------------------------


class IssueCategory(str, Enum):
    """Normalized investment category for an issue type."""

    STORY = "Story"
    BUG = "Bug"
    TASK = "Task"
    TECH_DEBT = "Tech Debt"
    SUPPORT = "Support"


class SprintState(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    FUTURE = "future"


@dataclass(frozen=True, slots=True)
class JiraIssue:
    """Represents the issue fields used by sprint and ticket analysis."""

    id: str
    key: str
    summary: str
    issue_type: str
    status_name: str
    status_category: str
    created: datetime
    updated: datetime
    story_points: float = 0
    labels: Tuple[str, ...] = ()
    assignee_name: Optional[str] = None
    assignee_email: Optional[str] = None
    assignee_avatar: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.status_category == "done"


@dataclass(frozen=True, slots=True)
class JiraSprint:
    id: int
    name: str
    state: SprintState
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    complete_date: Optional[datetime] = None
    goal: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SprintMetric:
    """Planning accuracy for one sprint."""

    id: str
    name: str
    committed_points: float
    completed_points: float
    scope_change_points: float
    say_do_ratio: int
    state: Optional[SprintState] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "committed_points": self.committed_points,
            "completed_points": self.completed_points,
            "scope_change_points": self.scope_change_points,
            "say_do_ratio": self.say_do_ratio,
            "state": self.state.value if self.state is not None else None,
        }


@dataclass(frozen=True, slots=True)
class JiraTicket:
    """Display-ready ticket."""

    id: str
    key: str
    title: str
    assignee: str
    assignee_avatar: str
    type: IssueCategory
    status: str
    points: float
    days_in_status: int
    flagged: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "key": self.key,
            "title": self.title,
            "assignee": self.assignee,
            "assignee_avatar": self.assignee_avatar,
            "type": self.type.value,
            "status": self.status,
            "points": self.points,
            "days_in_status": self.days_in_status,
            "flagged": self.flagged,
        }


@dataclass(frozen=True, slots=True)
class InvestmentSlice:
    name: str
    value: int
    color: str

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "value": self.value, "color": self.color}


@dataclass(frozen=True, slots=True)
class SprintSummary:
    avg_velocity: float
    say_do_ratio: int
    scope_creep: float
    bug_rate: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "avg_velocity": self.avg_velocity,
            "say_do_ratio": self.say_do_ratio,
            "scope_creep": self.scope_creep,
            "bug_rate": self.bug_rate,
        }


@dataclass(frozen=True, slots=True)
class SprintAnalytics:
    """Board-level sprint and ticket analytics bundle."""

    summary: SprintSummary
    sprint_history: List[SprintMetric]
    active_tickets: List[JiraTicket]
    stuck_tickets: List[JiraTicket]
    investment_profile: List[InvestmentSlice]

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "sprint_history": [sprint.to_dict() for sprint in self.sprint_history],
            "active_tickets": [ticket.to_dict() for ticket in self.active_tickets],
            "stuck_tickets": [ticket.to_dict() for ticket in self.stuck_tickets],
            "investment_profile": [item.to_dict() for item in self.investment_profile],
        }


# ---------------------------------------------------------------------------
# Assistant seat telemetry
# ---------------------------------------------------------------------------


class ActivityStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    NEVER_USED = "never-used"


@dataclass(frozen=True, slots=True)
class SeatRecord:
    """One assigned assistant seat."""

    login: str
    assigned_at: datetime
    last_activity_at: Optional[datetime] = None
    last_activity_editor: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SeatUserStats:
    login: str
    avatar: str
    assigned_at: datetime
    last_activity_at: Optional[datetime]
    last_activity_editor: Optional[str]
    days_since_activity: Optional[int]
    status: ActivityStatus

    @property
    def is_active(self) -> bool:
        return self.status is ActivityStatus.ACTIVE

    def to_dict(self) -> Dict[str, object]:
        return {
            "login": self.login,
            "avatar": self.avatar,
            "assigned_at": _iso(self.assigned_at),
            "last_activity_at": _iso(self.last_activity_at),
            "last_activity_editor": self.last_activity_editor,
            "days_since_activity": self.days_since_activity,
            "is_active": self.is_active,
            "status": self.status.value,
        }


@dataclass(frozen=True, slots=True)
class EditorShare:
    editor: str
    count: int
    percentage: int

    def to_dict(self) -> Dict[str, object]:
        return {"editor": self.editor, "count": self.count, "percentage": self.percentage}


@dataclass(frozen=True, slots=True)
class SeatActivityDay:
    date: str
    active_users: int
    inactive_users: int
    never_used: int
    total_seats: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date,
            "active_users": self.active_users,
            "inactive_users": self.inactive_users,
            "never_used": self.never_used,
            "total_seats": self.total_seats,
        }


@dataclass(frozen=True, slots=True)
class SeatSummary:
    total_seats: int
    active_users: int
    inactive_users: int
    never_used: int
    adoption_rate: float
    avg_days_since_activity: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_seats": self.total_seats,
            "active_users": self.active_users,
            "inactive_users": self.inactive_users,
            "never_used": self.never_used,
            "adoption_rate": self.adoption_rate,
            "avg_days_since_activity": self.avg_days_since_activity,
        }


@dataclass(frozen=True, slots=True)
class SeatAnalytics:
    """Assistant adoption analytics bundle."""

    summary: SeatSummary
    user_stats: List[SeatUserStats]
    editor_distribution: List[EditorShare]
    activity_trend: List[SeatActivityDay]

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "user_stats": [user.to_dict() for user in self.user_stats],
            "editor_distribution": [share.to_dict() for share in self.editor_distribution],
            "activity_trend": [day.to_dict() for day in self.activity_trend],
        }
