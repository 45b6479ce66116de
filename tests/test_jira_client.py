"""Tests for the Jira REST client with mocked HTTP."""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
import requests

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devmetrics.config import JiraConfig
from devmetrics.errors import ApiError
from devmetrics.jira_client import JiraClient


def _build_client() -> JiraClient:
    config = JiraConfig(
        domain="acme.atlassian.net",
        email="bot@acme.io",
        api_token="jira-token",
        board_id=42,
        project_key="DEV",
    )
    return JiraClient(config=config)


def _response(status_code: int, payload=None, text: str = "", reason: str = "OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.text = text
    response.json.return_value = payload if payload is not None else {}
    return response


def test_client_uses_basic_auth():
    """Verify the session authenticates with email and API token."""
    client = _build_client()

    assert client._session.auth.username == "bot@acme.io"
    assert client._session.auth.password == "jira-token"


def test_search_issues_posts_jql_body():
    """Verify search sends jql, maxResults and fields and returns issues with total."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(200, {"issues": [{"key": "DEV-1"}], "total": 7}))

    result = client.search_issues('project = "DEV"', fields=["summary", "status"], max_results=50)

    assert result == {"issues": [{"key": "DEV-1"}], "total": 7}
    args, kwargs = client._session.request.call_args
    assert args == ("POST", "https://acme.atlassian.net/rest/api/3/search/jql")
    assert kwargs["json"] == {"jql": 'project = "DEV"', "maxResults": 50, "fields": ["summary", "status"]}


def test_search_issues_defaults_total_to_issue_count():
    """Verify a missing total falls back to the number of issues returned."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(200, {"issues": [{"key": "DEV-1"}, {"key": "DEV-2"}]}))

    assert client.search_issues("project = DEV")["total"] == 2


def test_get_sprints_follows_pagination():
    """Verify sprint pages are requested until isLast is reported."""
    client = _build_client()
    client._session.request = Mock(
        side_effect=[
            _response(200, {"values": [{"id": 1}, {"id": 2}], "isLast": False}),
            _response(200, {"values": [{"id": 3}], "isLast": True}),
        ]
    )

    sprints = client.get_sprints(42, state="closed")

    assert [sprint["id"] for sprint in sprints] == [1, 2, 3]
    first_call, second_call = client._session.request.call_args_list
    assert first_call.args[1] == "https://acme.atlassian.net/rest/agile/1.0/board/42/sprint"
    assert first_call.kwargs["params"] == {"startAt": 0, "maxResults": 50, "state": "closed"}
    assert second_call.kwargs["params"]["startAt"] == 2


def test_get_sprints_rejects_unknown_state():
    """Verify only active, closed and future sprint states are accepted."""
    client = _build_client()

    with pytest.raises(ValueError):
        client.get_sprints(42, state="archived")


def test_get_sprint_issues_joins_fields():
    """Verify sprint issue requests pass the field list comma-joined."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(200, {"issues": [{"key": "DEV-9"}]}))

    issues = client.get_sprint_issues(7, fields=["summary", "status"])

    assert issues == [{"key": "DEV-9"}]
    kwargs = client._session.request.call_args.kwargs
    assert kwargs["params"] == {"maxResults": 200, "fields": "summary,status"}


def test_http_error_raises_api_error_with_details():
    """Verify non-2xx responses raise ApiError with URL and response details."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(400, text="Bad JQL", reason="Bad Request"))

    with pytest.raises(ApiError) as exc_info:
        client.search_issues("nonsense")

    assert exc_info.value.status_code == 400
    assert exc_info.value.messages == [
        "URL: https://acme.atlassian.net/rest/api/3/search/jql",
        "Details: Bad JQL",
    ]


def test_transport_error_raises_api_error():
    """Verify request exceptions are wrapped in ApiError."""
    client = _build_client()
    client._session.request = Mock(side_effect=requests.Timeout("slow"))

    with pytest.raises(ApiError):
        client.get_board(42)


def test_connection_success_and_failure():
    """Verify test_connection reports the user or the error without raising."""
    client = _build_client()
    client._session.request = Mock(return_value=_response(200, {"displayName": "Dashboard Bot"}))
    assert client.test_connection() == {"success": True, "user": "Dashboard Bot"}

    client._session.request = Mock(return_value=_response(401, text="nope", reason="Unauthorized"))
    result = client.test_connection()
    assert result["success"] is False
    assert "401" in result["error"]
