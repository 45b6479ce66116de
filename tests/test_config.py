"""Tests for environment-driven configuration loading."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devmetrics.config import DEFAULT_CACHE_TTL_MINUTES, DEFAULT_GRAPHQL_URL, load_config
from devmetrics.errors import AuthenticationError, ConfigurationError

BASE_ENV = {"GITHUB_TOKEN": "ghp_secret", "GITHUB_ORG": "acme"}

JIRA_ENV = {
    "JIRA_DOMAIN": "acme.atlassian.net",
    "JIRA_EMAIL": "bot@acme.io",
    "JIRA_API_TOKEN": "jira-token",
    "JIRA_BOARD_ID": "42",
    "JIRA_PROJECT_KEY": "DEV",
}


def test_load_config_defaults():
    """Verify minimal environment yields defaults and no tracker config."""
    config = load_config(BASE_ENV)

    assert config.github_token == "ghp_secret"
    assert config.github_org == "acme"
    assert config.github_api_url == DEFAULT_GRAPHQL_URL
    assert config.cache_ttl_minutes == DEFAULT_CACHE_TTL_MINUTES
    assert config.cache_dir is None
    assert config.fallback_to_mock is False
    assert config.jira is None


def test_load_config_with_full_jira_group():
    """Verify a complete JIRA_* group produces a typed tracker config."""
    config = load_config({**BASE_ENV, **JIRA_ENV, "FALLBACK_TO_MOCK": "TRUE", "CACHE_TTL_MINUTES": "5"})

    assert config.jira is not None
    assert config.jira.board_id == 42
    assert config.jira.project_key == "DEV"
    assert config.fallback_to_mock is True
    assert config.cache_ttl_minutes == 5


def test_missing_token_raises_authentication_error():
    """Verify an absent token is reported as an authentication problem."""
    with pytest.raises(AuthenticationError) as exc_info:
        load_config({"GITHUB_ORG": "acme"})

    assert exc_info.value.problems[0][0] == "GITHUB_TOKEN"


def test_all_problems_are_reported_together():
    """Verify missing org, bad TTL and a partial tracker group are collected in one error."""
    env = {
        "GITHUB_TOKEN": "ghp_secret",
        "CACHE_TTL_MINUTES": "-1",
        "JIRA_DOMAIN": "acme.atlassian.net",
    }

    with pytest.raises(ConfigurationError) as exc_info:
        load_config(env)

    variables = [variable for variable, _ in exc_info.value.problems]
    assert "GITHUB_ORG" in variables
    assert "CACHE_TTL_MINUTES" in variables
    assert "JIRA_EMAIL" in variables
    assert "JIRA_BOARD_ID" in variables
    assert "GITHUB_ORG" in str(exc_info.value)


def test_non_integer_board_id_is_rejected():
    """Verify a non-numeric board id is a configuration problem."""
    env = {**BASE_ENV, **JIRA_ENV, "JIRA_BOARD_ID": "board"}

    with pytest.raises(ConfigurationError) as exc_info:
        load_config(env)

    assert exc_info.value.problems == [("JIRA_BOARD_ID", "expected an integer board id")]


def test_load_config_reads_process_environment(monkeypatch):
    """Verify os.environ is used when no mapping is passed."""
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    monkeypatch.setenv("GITHUB_ORG", "env-org")
    monkeypatch.setenv("CACHE_DIR", "/tmp/dev-metrics")
    for name in JIRA_ENV:
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config.github_token == "env-token"
    assert config.cache_dir == "/tmp/dev-metrics"
