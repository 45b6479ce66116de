"""Deterministic synthetic records used when live data is unavailable.

The generator produces the same parsed record types the API parsers do, so
the service runs them through the regular aggregation code and the synthetic
bundles have exactly the live output shape.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

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
)
from .timewindow import utc_now

DEFAULT_SEED = 42

_MEMBERS: Tuple[Tuple[str, str, str], ...] = (
    ("alice-chen", "Alice Chen", "Fullstack"),
    ("bob-smith", "Bob Smith", "Backend"),
    ("charlie-kim", "Charlie Kim", "Frontend"),
    ("diana-prince", "Diana Prince", "DevOps"),
    ("ethan-hunt", "Ethan Hunt", "Fullstack"),
    ("fiona-gallagher", "Fiona Gallagher", "Frontend"),
    ("george-martin", "George Martin", "Backend"),
)

_REPOSITORIES = ("web-app", "api-service", "infrastructure")

_PR_TITLES = (
    "Refactor authentication middleware",
    "Add dark mode support to dashboard",
    "Fix memory leak in websocket connection",
    "Update dependencies to latest versions",
    "Implement new user onboarding flow",
    "Optimize database queries for reporting",
    "Add automated tests for payment gateway",
    "Fix UI glitch on mobile safari",
    "Integrate new logging service",
    "Refactor sidebar component",
)

_ISSUE_TYPES = ("Story", "Story", "Story", "Bug", "Bug", "Task", "Technical Debt", "Support")
_POINTS = (1, 2, 3, 5, 8)
_EDITORS = (
    "vscode/1.85.1/copilot/1.14.0",
    "vscode/1.84.2/copilot/1.13.0",
    "JetBrains-IC/2023.3/copilot-intellij/1.4.0",
    "neovim/0.9.4/copilot.vim/1.12.0",
    None,
)


class SyntheticDataGenerator:
    """Seeded source of plausible organization data.

    Every method reseeds from ``seed`` so repeated calls with the same ``now``
    return identical records.
    """

    def __init__(self, seed: int = DEFAULT_SEED, org: str = "acme") -> None:
        self._seed = seed
        self._org = org

    def _rng(self, salt: str) -> random.Random:
        return random.Random(f"{self._seed}:{salt}")

    def members(self) -> List[TeamMember]:
        return [
            TeamMember(
                login=login,
                name=name,
                email=f"{login}@example.com",
                teams=(f"{team} Team",),
            )
            for login, name, team in _MEMBERS
        ]

    def pull_requests(self, count: int = 40, now: Optional[datetime] = None) -> List[PullRequest]:
        """Pull requests created over the last 30 days with reviews and comments."""
        now = now or utc_now()
        rng = self._rng("pull_requests")
        logins = [login for login, _, _ in _MEMBERS]
        prs: List[PullRequest] = []

        for index in range(count):
            author = rng.choice(logins)
            reviewers = rng.sample([login for login in logins if login != author], k=rng.randint(0, 2))
            created_at = now - timedelta(hours=rng.randint(2, 30 * 24))
            first_commit_at = created_at - timedelta(hours=rng.randint(1, 48))

            state = rng.choices(
                (PullRequestState.MERGED, PullRequestState.OPEN, PullRequestState.CLOSED),
                weights=(7, 2, 1),
            )[0]

            reviews: List[Review] = []
            timeline: List[object] = []
            comments: List[Comment] = []
            review_at = created_at
            for reviewer in reviewers:
                review_at = review_at + timedelta(hours=rng.randint(1, 24))
                reviews.append(
                    Review(
                        author=reviewer,
                        created_at=review_at,
                        comment_count=rng.randint(0, 6),
                        state=rng.choice(("APPROVED", "COMMENTED", "CHANGES_REQUESTED")),
                    )
                )
                timeline.append(ReviewEvent(author=reviewer, created_at=review_at))

                if rng.random() < 0.5:
                    comment_at = review_at + timedelta(minutes=rng.randint(5, 240))
                    comments.append(Comment(author=reviewer, created_at=comment_at))
                    timeline.append(IssueCommentEvent(author=reviewer, created_at=comment_at))

            end = min(now, review_at + timedelta(hours=rng.randint(1, 36)))
            merged_at = end if state is PullRequestState.MERGED else None
            closed_at = end if state is not PullRequestState.OPEN else None
            updated_at = end if state is not PullRequestState.OPEN else created_at + timedelta(
                hours=rng.randint(0, 24)
            )

            prs.append(
                PullRequest(
                    number=1000 + index,
                    title=rng.choice(_PR_TITLES),
                    state=state,
                    author=author,
                    created_at=created_at,
                    updated_at=min(updated_at, now),
                    merged_at=merged_at,
                    closed_at=closed_at,
                    additions=rng.randint(10, 800),
                    deletions=rng.randint(5, 400),
                    repository=rng.choice(_REPOSITORIES),
                    owner=self._org,
                    reviews=tuple(reviews),
                    comments=tuple(comments),
                    timeline=tuple(sorted(timeline, key=lambda item: item.created_at)),  # type: ignore[attr-defined]
                    commit_dates=(first_commit_at, created_at - timedelta(minutes=rng.randint(1, 59))),
                )
            )
        return prs

    def _issue(self, rng: random.Random, key_number: int, created: datetime, now: datetime) -> JiraIssue:
        login, name, _ = rng.choice(_MEMBERS)
        done = rng.random() < 0.6
        status_name = "Done" if done else rng.choice(("To Do", "In Progress", "Review"))
        labels: Tuple[str, ...] = ()
        if rng.random() < 0.1:
            labels = ("blocked",)

        updated = min(now, created + timedelta(days=rng.randint(0, 10)))
        return JiraIssue(
            id=str(10000 + key_number),
            key=f"DEV-{key_number}",
            summary=rng.choice(_PR_TITLES),
            issue_type=rng.choice(_ISSUE_TYPES),
            status_name=status_name,
            status_category="done" if done else ("new" if status_name == "To Do" else "indeterminate"),
            created=created,
            updated=updated,
            story_points=rng.choice(_POINTS),
            labels=labels,
            assignee_name=name,
            assignee_email=f"{login}@example.com",
        )

    def sprint_data(
        self,
        sprint_count: int = 6,
        now: Optional[datetime] = None,
    ) -> Tuple[List[JiraSprint], Dict[int, List[JiraIssue]]]:
        """Two-week sprints ending with the currently active one, with their issues."""
        now = now or utc_now()
        rng = self._rng("sprints")
        sprints: List[JiraSprint] = []
        sprint_issues: Dict[int, List[JiraIssue]] = {}
        key_number = 1

        for index in range(sprint_count):
            offset = sprint_count - 1 - index
            start = now - timedelta(days=14 * offset + 7)
            end = start + timedelta(days=14)
            active = offset == 0
            sprint_id = 100 + index
            sprints.append(
                JiraSprint(
                    id=sprint_id,
                    name=f"Sprint {sprint_id}",
                    state=SprintState.ACTIVE if active else SprintState.CLOSED,
                    start_date=start,
                    end_date=end,
                    complete_date=None if active else end,
                )
            )

            issues: List[JiraIssue] = []
            for _ in range(rng.randint(8, 14)):
                # Roughly one in five issues joins after the sprint started.
                if rng.random() < 0.2:
                    created = start + timedelta(days=rng.randint(1, 7))
                else:
                    created = start - timedelta(days=rng.randint(0, 5))
                issues.append(self._issue(rng, key_number, min(created, now), now))
                key_number += 1
            sprint_issues[sprint_id] = issues

        return sprints, sprint_issues

    def active_issues(self, now: Optional[datetime] = None) -> List[JiraIssue]:
        """Open issues across the project."""
        sprints, sprint_issues = self.sprint_data(now=now)
        active_sprint = next((sprint for sprint in sprints if sprint.state is SprintState.ACTIVE), None)
        if active_sprint is None:
            return []
        return [issue for issue in sprint_issues[active_sprint.id] if not issue.is_done]

    def project_issues(self, now: Optional[datetime] = None) -> List[JiraIssue]:
        _, sprint_issues = self.sprint_data(now=now)
        return [issue for issues in sprint_issues.values() for issue in issues]

    def seats(self, now: Optional[datetime] = None) -> Tuple[int, List[SeatRecord]]:
        """One seat per member plus a few extra, with mixed activity."""
        now = now or utc_now()
        rng = self._rng("seats")
        logins = [login for login, _, _ in _MEMBERS] + ["intern-1", "intern-2", "contractor-1"]
        seats: List[SeatRecord] = []

        for login in logins:
            assigned_at = now - timedelta(days=rng.randint(30, 200))
            roll = rng.random()
            if roll < 0.15:
                last_activity_at = None
            elif roll < 0.75:
                last_activity_at = now - timedelta(hours=rng.randint(0, 7 * 24))
            else:
                last_activity_at = now - timedelta(days=rng.randint(8, 45))

            seats.append(
                SeatRecord(
                    login=login,
                    assigned_at=assigned_at,
                    last_activity_at=last_activity_at,
                    last_activity_editor=rng.choice(_EDITORS) if last_activity_at else None,
                )
            )
        return len(seats), seats
