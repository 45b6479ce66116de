"""Jira Cloud REST client for issues, sprints and boards."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from requests.auth import HTTPBasicAuth

from .config import JiraConfig
from .errors import ApiError

logger = logging.getLogger(__name__)

SPRINT_STATES = ("active", "closed", "future")


class JiraClient:
    """Small, typed client for the Jira platform and agile APIs."""

    _SPRINT_PAGE_SIZE = 50

    def __init__(
        self,
        config: JiraConfig,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize an authenticated Jira API client.

        Args:
            config: Tracker connection settings (domain, email, API token).
            timeout_seconds: Per-request timeout in seconds.
            session: Optional pre-built session, mainly for tests.
        """
        self._config = config
        self._timeout_seconds = timeout_seconds
        self._base_url = f"https://{config.domain}"

        self._session = session if session is not None else requests.Session()
        self._session.auth = HTTPBasicAuth(config.email, config.api_token)
        self._session.headers.update({"Accept": "application/json", "Content-Type": "application/json"})

    def _build_url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Execute a request and decode its JSON body.

        Raises:
            ApiError: If the request fails, returns HTTP >= 400, or does not
                return valid JSON.
        """
        url = self._build_url(path)
        logger.debug("Jira request", extra={"method": method, "url": url})

        try:
            response = self._session.request(method, url, timeout=self._timeout_seconds, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(f"Jira request failed: {method} {url}") from exc

        if response.status_code >= 400:
            raise ApiError(
                f"Jira API error: {response.status_code} {response.reason}",
                messages=[f"URL: {url}", f"Details: {response.text}"],
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"Jira API returned invalid JSON: {method} {url}") from exc

    def search_issues(self, jql: str, fields: Sequence[str] = (), max_results: int = 100) -> Dict[str, Any]:
        """Run a JQL search; returns ``{"issues": [...], "total": int}``."""
        body: Dict[str, Any] = {"jql": jql, "maxResults": max_results}
        if fields:
            body["fields"] = list(fields)

        payload = self._request_json("POST", "rest/api/3/search/jql", json=body)
        issues = payload.get("issues") or []
        return {"issues": issues, "total": int(payload.get("total", len(issues)))}

    def get_board(self, board_id: int) -> Dict[str, Any]:
        return self._request_json("GET", f"rest/agile/1.0/board/{board_id}")

    def get_sprints(self, board_id: int, state: Optional[str] = None) -> List[Dict[str, Any]]:
        """List a board's sprints, optionally restricted to one state."""
        if state is not None and state not in SPRINT_STATES:
            raise ValueError(f"Unsupported sprint state: {state}")

        sprints: List[Dict[str, Any]] = []
        start_at = 0
        while True:
            params: Dict[str, Any] = {"startAt": start_at, "maxResults": self._SPRINT_PAGE_SIZE}
            if state:
                params["state"] = state
            payload = self._request_json("GET", f"rest/agile/1.0/board/{board_id}/sprint", params=params)
            values = payload.get("values") or []
            sprints.extend(values)

            if payload.get("isLast", True) or not values:
                return sprints
            start_at += len(values)

    def get_sprint_issues(
        self,
        sprint_id: int,
        max_results: int = 200,
        fields: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"maxResults": max_results}
        if fields:
            params["fields"] = ",".join(fields)
        payload = self._request_json("GET", f"rest/agile/1.0/sprint/{sprint_id}/issue", params=params)
        return payload.get("issues") or []

    def get_fields(self) -> List[Dict[str, Any]]:
        return self._request_json("GET", "rest/api/3/field")

    def test_connection(self) -> Dict[str, Any]:
        """Return ``{"success": True, "user": name}`` or ``{"success": False, "error": msg}``."""
        try:
            me = self._request_json("GET", "rest/api/3/myself")
        except ApiError as exc:
            logger.warning("Jira connection test failed", extra={"error": str(exc)})
            return {"success": False, "error": str(exc)}
        return {"success": True, "user": me.get("displayName")}
