"""GitHub GraphQL and REST clients for change-request and seat data."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

import requests

from .config import Config
from .errors import ApiError, AuthenticationError

logger = logging.getLogger(__name__)

RATE_LIMIT_WARNING_THRESHOLD = 1000


def _extract_backoff_seconds(response: requests.Response, attempt: int, max_backoff: int) -> int:
    """Compute exponential backoff seconds, honoring Retry-After when available."""
    retry_after_header = response.headers.get("Retry-After")
    if retry_after_header:
        try:
            return min(max_backoff, max(1, int(retry_after_header)))
        except ValueError:
            pass

    return min(max_backoff, 2 ** (attempt - 1))


class _GitHubSession:
    """Shared session setup and request loop for the GitHub clients.

    A single attempt is made per call by default so that
    :class:`~devmetrics.resilience.ResilientFetcher` owns the retry ceiling;
    pass ``max_retries`` above 1 to retry 429/5xx responses in the client.
    """

    _MAX_BACKOFF_SECONDS = 30

    def __init__(
        self,
        token: str,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
        max_retries: int = 1,
    ) -> None:
        if not token:
            raise AuthenticationError("A GitHub token is required to call the GitHub API.")

        self._timeout_seconds = timeout_seconds
        self._max_retries = max(1, max_retries)
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {token}"})

    def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        """Execute a request, retrying transient 429/5xx responses up to ``max_retries`` attempts.

        Raises:
            ApiError: If the request repeatedly fails, returns HTTP >= 400,
                or does not return a JSON object.
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._session.request(method, url, timeout=self._timeout_seconds, **kwargs)
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._max_retries:
                    raise ApiError(f"GitHub request failed after retries: {method} {url}") from exc
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or 500 <= status_code <= 599

            if is_retryable and attempt < self._max_retries:
                time.sleep(_extract_backoff_seconds(response, attempt, self._MAX_BACKOFF_SECONDS))
                continue

            self._check_rate_limit(response)

            if status_code >= 400:
                raise ApiError(
                    f"GitHub API error: {status_code} {response.reason}",
                    messages=[response.text],
                    status_code=status_code,
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise ApiError(f"GitHub API returned invalid JSON: {method} {url}") from exc

            if not isinstance(payload, dict):
                raise ApiError(f"GitHub API returned unexpected payload shape: {method} {url}")

            return payload

        raise ApiError(f"GitHub request failed after retries: {method} {url}") from last_error

    def _check_rate_limit(self, response: requests.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is None:
            return
        try:
            remaining_count = int(remaining)
        except ValueError:
            return
        if remaining_count < RATE_LIMIT_WARNING_THRESHOLD:
            logger.warning(
                "GitHub rate limit running low",
                extra={
                    "remaining": remaining_count,
                    "reset": response.headers.get("X-RateLimit-Reset"),
                },
            )


class GitHubClient(_GitHubSession):
    """GraphQL client for organization pull request and member queries."""

    def __init__(
        self,
        config: Config,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
        max_retries: int = 1,
    ) -> None:
        super().__init__(config.github_token, timeout_seconds, session, max_retries)
        self._api_url = config.github_api_url
        self._session.headers.update({"Content-Type": "application/json"})

    def query(self, query: str, variables: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        Raises:
            ApiError: On transport failures, non-2xx responses or a non-empty
                GraphQL ``errors`` array (every message is kept).
        """
        payload = self._request_json(
            "POST",
            self._api_url,
            json={"query": query, "variables": dict(variables or {})},
        )

        errors = payload.get("errors")
        if errors:
            messages: List[str] = [str(error.get("message", error)) for error in errors if error]
            raise ApiError(f"GraphQL errors: {', '.join(messages)}", messages=messages)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ApiError("GraphQL response has no data object")
        return data


class GitHubRestClient(_GitHubSession):
    """REST client for the assistant seat billing endpoint."""

    _API_VERSION = "2022-11-28"
    _SEATS_PAGE_SIZE = 100

    def __init__(
        self,
        config: Config,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
        max_retries: int = 1,
    ) -> None:
        super().__init__(config.github_token, timeout_seconds, session, max_retries)
        self._base_url = config.github_rest_url.rstrip("/")
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": self._API_VERSION,
            }
        )

    def get_copilot_seats(self, org: str) -> Dict[str, Any]:
        """Return ``{"total_seats": int, "seats": [...]}`` across all result pages."""
        url = f"{self._base_url}/orgs/{org}/copilot/billing/seats"
        seats: List[Dict[str, Any]] = []
        total_seats: Optional[int] = None
        page = 1

        while True:
            payload = self._request_json("GET", url, params={"per_page": self._SEATS_PAGE_SIZE, "page": page})
            batch = payload.get("seats") or []
            seats.extend(batch)
            if total_seats is None and payload.get("total_seats") is not None:
                total_seats = int(payload["total_seats"])

            if len(batch) < self._SEATS_PAGE_SIZE or (total_seats is not None and len(seats) >= total_seats):
                break
            page += 1

        return {"total_seats": total_seats if total_seats is not None else len(seats), "seats": seats}
