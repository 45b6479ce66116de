"""Dashboard service: fetch, aggregate and cache the four analytics bundles.

Every operation runs its blocking API calls in worker threads, builds the
result through the pure aggregators, and hands the whole pipeline to
:class:`~devmetrics.resilience.ResilientFetcher` under a versioned cache key.
Results are plain ``to_dict()`` payloads so a fresh result and a cache hit
look the same to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .cache import CacheService, FileStore, MemoryStore
from .comments import analyze_comments_given, analyze_comments_received
from .config import Config, JiraConfig
from .errors import ConfigurationError
from .github_client import GitHubClient, GitHubRestClient
from .jira_client import JiraClient
from .jql import STANDARD_FIELDS, active_tickets_query, project_issues_query
from .mock_data import SyntheticDataGenerator
from .models import (
    DashboardSummary,
    Developer,
    DeveloperMetric,
    JiraIssue,
    JiraSprint,
    PullRequest,
    Role,
    SprintState,
    TeamMember,
)
from .parsing import (
    parse_jira_issues,
    parse_org_members,
    parse_org_pull_requests,
    parse_seats,
    parse_sprints,
)
from .pull_requests import aggregate_user_pull_requests, analyze_prs_created, discover_authors
from .queries import GET_ORGANIZATION_MEMBERS, GET_ORGANIZATION_PULL_REQUESTS
from .resilience import ResilientFetcher
from .seats import build_seat_analytics
from .sprints import build_sprint_analytics, map_issues_to_stats
from .stats import mean, round1
from .timewindow import TimeRange, filter_by_creation_date, time_range_days, utc_now
from .trends import build_change_request_analytics, recent_activity_trend

logger = logging.getLogger(__name__)

DEVELOPER_METRICS_KEY = "dashboard_metrics_v2_{range}"
CHANGE_REQUEST_KEY = "dashboard_github_v2"
SPRINT_ANALYTICS_KEY = "dashboard_jira_v1"
SEAT_ANALYTICS_KEY = "dashboard_copilot_v1_{range}"

CHANGE_REQUEST_WINDOW_DAYS = 30
SPRINT_HISTORY_LIMIT = 6
ACTIVITY_TREND_DAYS = 7
PULL_REQUESTS_PER_REPOSITORY = 20
REPOSITORY_LIMIT = 10
MAX_SEARCH_RESULTS = 200


def build_roster(members: Sequence[TeamMember], prs: Sequence[PullRequest]) -> List[Developer]:
    """Developers to report on: org members, or distinct PR authors when none are visible."""
    if members:
        return [
            Developer(
                id=member.login,
                name=member.name or member.login,
                role=Role.from_team_name(member.teams[0] if member.teams else None),
                team=member.teams[0] if member.teams else None,
                email=member.email,
            )
            for member in members
        ]

    logger.info("No organization members visible; using pull request authors")
    return [Developer(id=login, name=login) for login in discover_authors(prs)]


def build_developer_metrics(
    prs: Sequence[PullRequest],
    roster: Sequence[Developer],
    issues: Optional[Sequence[JiraIssue]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Per-developer metrics plus the dashboard summary.

    ``prs`` must already be restricted to the selected window. Tracker stats
    are attached only when ``issues`` is given and the developer has an email.
    """
    now = now or utc_now()
    metrics: List[DeveloperMetric] = []

    for developer in roster:
        login = developer.id
        jira = None
        if issues is not None and developer.email:
            jira = map_issues_to_stats(issues, developer.email)

        metrics.append(
            DeveloperMetric(
                developer=developer,
                github=aggregate_user_pull_requests(prs, login),
                jira=jira,
                comment_analysis=analyze_comments_received(prs, login),
                comment_given_analysis=analyze_comments_given(prs, login),
                pr_created_analysis=analyze_prs_created(prs, login),
                recent_activity_trend=recent_activity_trend(prs, login, ACTIVITY_TREND_DAYS, now),
            )
        )

    with_jira = [metric.jira for metric in metrics if metric.jira is not None]
    summary = DashboardSummary(
        total_prs_merged=sum(metric.github.prs_merged for metric in metrics),
        avg_cycle_time=round1(mean(metric.github.avg_cycle_time_hours for metric in metrics)),
        total_velocity=sum(stats.velocity for stats in with_jira) if with_jira else None,
    )

    logger.info("Built developer metrics", extra={"developers": len(metrics), "pull_requests": len(prs)})
    return {"metrics": [metric.to_dict() for metric in metrics], "summary": summary.to_dict()}


def _recent_sprints(sprints: Sequence[JiraSprint], limit: int) -> List[JiraSprint]:
    """Newest closed sprints plus any active sprint, ordered by start date."""

    def start_key(sprint: JiraSprint) -> datetime:
        return sprint.start_date or datetime.min.replace(tzinfo=utc_now().tzinfo)

    ordered = sorted(sprints, key=start_key)
    closed = [sprint for sprint in ordered if sprint.state is SprintState.CLOSED][-limit:]
    active = [sprint for sprint in ordered if sprint.state is SprintState.ACTIVE]
    return sorted(closed + active, key=start_key)


@dataclass
class DashboardContext:
    """Everything the service needs, built once at startup and passed in."""

    config: Config
    cache: CacheService
    fetcher: ResilientFetcher
    github: GitHubClient
    github_rest: GitHubRestClient
    jira: Optional[JiraClient] = None
    synthetic: SyntheticDataGenerator = field(default_factory=SyntheticDataGenerator)

    @classmethod
    def from_config(cls, config: Config) -> "DashboardContext":
        """Wire live clients and a cache backed by ``cache_dir`` or process memory."""
        store = FileStore(config.cache_dir) if config.cache_dir else MemoryStore()
        cache = CacheService(store, default_ttl_minutes=config.cache_ttl_minutes)
        return cls(
            config=config,
            cache=cache,
            fetcher=ResilientFetcher(cache, fallback_to_mock=config.fallback_to_mock),
            github=GitHubClient(config),
            github_rest=GitHubRestClient(config),
            jira=JiraClient(config.jira) if config.jira is not None else None,
            synthetic=SyntheticDataGenerator(org=config.github_org),
        )


class DashboardService:
    """Asynchronous entry points used by the presentation layer."""

    def __init__(self, context: DashboardContext, clock: Callable[[], datetime] = utc_now) -> None:
        self._context = context
        self._clock = clock

    @property
    def context(self) -> DashboardContext:
        return self._context

    def _tracker(self) -> Optional[Tuple[JiraClient, JiraConfig]]:
        """The tracker client and its settings, or ``None`` when not configured."""
        if self._context.config.jira is None or self._context.jira is None:
            return None
        return self._context.jira, self._context.config.jira

    def _require_jira(self) -> Tuple[JiraClient, JiraConfig]:
        tracker = self._tracker()
        if tracker is None:
            raise ConfigurationError(
                "Issue tracker is not configured.",
                [("JIRA_DOMAIN", "set the JIRA_* variables to enable sprint analytics")],
            )
        return tracker

    async def _load_pull_requests(self) -> List[PullRequest]:
        data = await asyncio.to_thread(
            self._context.github.query,
            GET_ORGANIZATION_PULL_REQUESTS,
            {
                "org": self._context.config.github_org,
                "repositories": REPOSITORY_LIMIT,
                "first": PULL_REQUESTS_PER_REPOSITORY,
            },
        )
        return parse_org_pull_requests(data)

    async def _load_members(self) -> List[TeamMember]:
        data = await asyncio.to_thread(
            self._context.github.query,
            GET_ORGANIZATION_MEMBERS,
            {"org": self._context.config.github_org, "first": 100},
        )
        return parse_org_members(data)

    async def _search_issues(self, jira: JiraClient, jql: str) -> List[JiraIssue]:
        result = await asyncio.to_thread(jira.search_issues, jql, STANDARD_FIELDS, MAX_SEARCH_RESULTS)
        return parse_jira_issues(result["issues"])

    async def fetch_developer_metrics(self, time_range: TimeRange) -> Dict[str, Any]:
        """``{"metrics": [...], "summary": {...}}`` for the selected window."""
        time_range = TimeRange(time_range)
        days = time_range_days(time_range)
        tracker = self._tracker()

        async def fetch() -> Dict[str, Any]:
            now = self._clock()
            prs = filter_by_creation_date(await self._load_pull_requests(), days, now)
            members = await self._load_members()

            issues: Optional[List[JiraIssue]] = None
            if tracker is not None:
                jira, jira_config = tracker
                jql = project_issues_query(jira_config.project_key, days, now)
                issues = await self._search_issues(jira, jql)

            return build_developer_metrics(prs, build_roster(members, prs), issues, now)

        def fallback() -> Dict[str, Any]:
            now = self._clock()
            synthetic = self._context.synthetic
            prs = filter_by_creation_date(synthetic.pull_requests(now=now), days, now)
            issues = synthetic.project_issues(now) if tracker is not None else None
            return build_developer_metrics(prs, build_roster(synthetic.members(), prs), issues, now)

        return await self._context.fetcher.fetch(
            DEVELOPER_METRICS_KEY.format(range=time_range.value), fetch, fallback
        )

    async def fetch_change_request_analytics(self) -> Dict[str, Any]:
        """Organization-wide pull request analytics over the last 30 days."""

        async def fetch() -> Dict[str, Any]:
            now = self._clock()
            prs = filter_by_creation_date(await self._load_pull_requests(), CHANGE_REQUEST_WINDOW_DAYS, now)
            return build_change_request_analytics(prs, now=now).to_dict()

        def fallback() -> Dict[str, Any]:
            now = self._clock()
            prs = filter_by_creation_date(
                self._context.synthetic.pull_requests(now=now), CHANGE_REQUEST_WINDOW_DAYS, now
            )
            return build_change_request_analytics(prs, now=now).to_dict()

        return await self._context.fetcher.fetch(CHANGE_REQUEST_KEY, fetch, fallback)

    async def fetch_sprint_analytics(self) -> Dict[str, Any]:
        """Sprint history, ticket lists and investment profile for the configured board.

        Raises:
            ConfigurationError: If the issue tracker is not configured.
        """
        jira, jira_config = self._require_jira()

        async def fetch() -> Dict[str, Any]:
            now = self._clock()
            raw_sprints = await asyncio.to_thread(jira.get_sprints, jira_config.board_id)
            sprints = _recent_sprints(parse_sprints(raw_sprints), SPRINT_HISTORY_LIMIT)

            sprint_issues: Dict[int, List[JiraIssue]] = {}
            for sprint in sprints:
                raw_issues = await asyncio.to_thread(
                    jira.get_sprint_issues, sprint.id, MAX_SEARCH_RESULTS, STANDARD_FIELDS
                )
                sprint_issues[sprint.id] = parse_jira_issues(raw_issues)

            active_issues = await self._search_issues(jira, active_tickets_query(jira_config.project_key))
            return build_sprint_analytics(sprints, sprint_issues, active_issues, now=now).to_dict()

        def fallback() -> Dict[str, Any]:
            now = self._clock()
            synthetic = self._context.synthetic
            sprints, sprint_issues = synthetic.sprint_data(now=now)
            return build_sprint_analytics(
                sprints, sprint_issues, synthetic.active_issues(now), now=now
            ).to_dict()

        return await self._context.fetcher.fetch(SPRINT_ANALYTICS_KEY, fetch, fallback)

    async def fetch_seat_analytics(self, time_range: TimeRange) -> Dict[str, Any]:
        """Assistant seat adoption with a daily activity trend over the selected window."""
        time_range = TimeRange(time_range)
        days = time_range_days(time_range)

        async def fetch() -> Dict[str, Any]:
            now = self._clock()
            payload = await asyncio.to_thread(
                self._context.github_rest.get_copilot_seats, self._context.config.github_org
            )
            total_seats, seats = parse_seats(payload)
            return build_seat_analytics(seats, days, total_seats, now).to_dict()

        def fallback() -> Dict[str, Any]:
            now = self._clock()
            total_seats, seats = self._context.synthetic.seats(now)
            return build_seat_analytics(seats, days, total_seats, now).to_dict()

        return await self._context.fetcher.fetch(
            SEAT_ANALYTICS_KEY.format(range=time_range.value), fetch, fallback
        )

    def clear_cache(self) -> None:
        self._context.cache.clear()
        logger.info("Cleared dashboard cache")
