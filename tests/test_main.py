"""Tests for application orchestration in the main module."""

import json
import sys
from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devmetrics.config import Config
from devmetrics.errors import ApiError, AuthenticationError, ConfigurationError
from devmetrics.main import orchestrate
from devmetrics.timewindow import TimeRange

CONFIG = Config(github_token="secret", github_org="acme")

BUNDLE = {
    "metrics": [
        {
            "id": "alice",
            "name": "Alice",
            "prs_opened": 2,
            "prs_merged": 1,
            "avg_cycle_time_hours": 10.0,
            "review_comments_given": 3,
            "impact_score": 7,
            "status": "Shipping",
        }
    ],
    "summary": {"total_prs_merged": 1, "avg_cycle_time": 10.0, "total_velocity": None},
}


def _service(**methods) -> Mock:
    service = Mock()
    for name, value in methods.items():
        setattr(service, name, value)
    service.context.fetcher.drain = AsyncMock()
    return service


def test_orchestrate_success_prints_json(capsys):
    """Verify orchestration returns 0 and prints the bundle as JSON."""
    service = _service(fetch_developer_metrics=AsyncMock(return_value=BUNDLE))

    with patch("devmetrics.main.load_config", return_value=CONFIG) as load_config_mock, patch(
        "devmetrics.main.DashboardContext"
    ) as context_mock, patch("devmetrics.main.DashboardService", return_value=service):
        exit_code = orchestrate(["developers", "--range", "month"])

    assert exit_code == 0
    load_config_mock.assert_called_once_with()
    context_mock.from_config.assert_called_once_with(CONFIG)
    service.fetch_developer_metrics.assert_awaited_once_with(TimeRange.MONTH)
    service.context.fetcher.drain.assert_awaited_once()
    assert json.loads(capsys.readouterr().out) == BUNDLE


def test_orchestrate_text_format_renders_report(capsys):
    """Verify --format text renders the developer report."""
    service = _service(fetch_developer_metrics=AsyncMock(return_value=BUNDLE))

    with patch("devmetrics.main.load_config", return_value=CONFIG), patch(
        "devmetrics.main.DashboardContext"
    ), patch("devmetrics.main.DashboardService", return_value=service), patch(
        "devmetrics.main.generate_report", return_value="REPORT"
    ) as report_mock:
        exit_code = orchestrate(["--format", "text", "developers"])

    assert exit_code == 0
    report_mock.assert_called_once_with(BUNDLE, "sprint")
    assert "REPORT" in capsys.readouterr().out


def test_orchestrate_clear_cache(capsys):
    """Verify clear-cache empties the cache and reports it."""
    service = _service()

    with patch("devmetrics.main.load_config", return_value=CONFIG), patch(
        "devmetrics.main.DashboardContext"
    ), patch("devmetrics.main.DashboardService", return_value=service):
        exit_code = orchestrate(["clear-cache"])

    assert exit_code == 0
    service.clear_cache.assert_called_once_with()
    assert "Cache cleared." in capsys.readouterr().out


def test_orchestrate_missing_token_returns_auth_error():
    """Verify authentication failures return the authentication exit code."""
    with patch(
        "devmetrics.main.load_config",
        side_effect=AuthenticationError("Missing required GitHub Personal Access Token."),
    ):
        exit_code = orchestrate(["pull-requests"])

    assert exit_code == 3


def test_orchestrate_configuration_error_returns_configuration_exit_code(capsys):
    """Verify configuration problems return the configuration exit code."""
    service = _service(
        fetch_sprint_analytics=AsyncMock(side_effect=ConfigurationError("Issue tracker is not configured."))
    )

    with patch("devmetrics.main.load_config", return_value=CONFIG), patch(
        "devmetrics.main.DashboardContext"
    ), patch("devmetrics.main.DashboardService", return_value=service):
        exit_code = orchestrate(["sprints"])

    assert exit_code == 2
    assert "Issue tracker is not configured." in capsys.readouterr().err


def test_orchestrate_api_error_returns_api_exit_code(capsys):
    """Verify upstream API failures return the API exit code and list their messages."""
    service = _service(
        fetch_seat_analytics=AsyncMock(side_effect=ApiError("GraphQL errors", messages=["Bad credentials"]))
    )

    with patch("devmetrics.main.load_config", return_value=CONFIG), patch(
        "devmetrics.main.DashboardContext"
    ), patch("devmetrics.main.DashboardService", return_value=service):
        exit_code = orchestrate(["seats"])

    assert exit_code == 4
    service.context.fetcher.drain.assert_awaited_once()
    assert "- Bad credentials" in capsys.readouterr().err


def test_orchestrate_unexpected_error_returns_generic_exit_code():
    """Verify unexpected exceptions are mapped to the generic non-zero exit code."""
    args = Namespace(command="developers", verbose=False)

    with patch("devmetrics.main.parse_args", return_value=args), patch(
        "devmetrics.main.load_config", side_effect=RuntimeError("boom")
    ):
        exit_code = orchestrate()

    assert exit_code == 1
