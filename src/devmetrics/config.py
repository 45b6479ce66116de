"""Configuration parsing and validation for the developer metrics aggregator."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from .errors import AuthenticationError, ConfigurationError

DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
DEFAULT_REST_URL = "https://api.github.com"
DEFAULT_CACHE_TTL_MINUTES = 15

_JIRA_VARIABLES = (
    "JIRA_DOMAIN",
    "JIRA_EMAIL",
    "JIRA_API_TOKEN",
    "JIRA_BOARD_ID",
    "JIRA_PROJECT_KEY",
)


@dataclass(frozen=True)
class JiraConfig:
    """Issue-tracker connection settings."""

    domain: str
    email: str
    api_token: str
    board_id: int
    project_key: str


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the metrics service."""

    github_token: str
    github_org: str
    github_api_url: str = DEFAULT_GRAPHQL_URL
    github_rest_url: str = DEFAULT_REST_URL
    jira: Optional[JiraConfig] = None
    cache_ttl_minutes: int = DEFAULT_CACHE_TTL_MINUTES
    cache_dir: Optional[str] = None
    fallback_to_mock: bool = False


def _read(environ: Mapping[str, str], name: str) -> str:
    return (environ.get(name) or "").strip()


def _load_jira(environ: Mapping[str, str], problems: List[Tuple[str, str]]) -> Optional[JiraConfig]:
    values = {name: _read(environ, name) for name in _JIRA_VARIABLES}
    present = [name for name, value in values.items() if value]
    if not present:
        return None

    missing = [name for name in _JIRA_VARIABLES if not values[name]]
    for name in missing:
        problems.append((name, "required when any JIRA_* variable is set"))
    if missing:
        return None

    try:
        board_id = int(values["JIRA_BOARD_ID"])
    except ValueError:
        problems.append(("JIRA_BOARD_ID", "expected an integer board id"))
        return None

    return JiraConfig(
        domain=values["JIRA_DOMAIN"],
        email=values["JIRA_EMAIL"],
        api_token=values["JIRA_API_TOKEN"],
        board_id=board_id,
        project_key=values["JIRA_PROJECT_KEY"],
    )


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build and validate application configuration from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        A validated ``Config`` instance.

    Raises:
        AuthenticationError: If ``GITHUB_TOKEN`` is not configured.
        ConfigurationError: If any other value is missing or invalid. All
            problems are reported together.
    """
    env = os.environ if environ is None else environ
    problems: List[Tuple[str, str]] = []

    token = _read(env, "GITHUB_TOKEN")
    if not token:
        raise AuthenticationError(
            "Missing required GitHub Personal Access Token. "
            "Set the 'GITHUB_TOKEN' environment variable before fetching metrics.",
            [("GITHUB_TOKEN", "GitHub Personal Access Token is required")],
        )

    org = _read(env, "GITHUB_ORG")
    if not org:
        problems.append(("GITHUB_ORG", "GitHub organization name is required"))

    ttl_raw = _read(env, "CACHE_TTL_MINUTES") or str(DEFAULT_CACHE_TTL_MINUTES)
    ttl_minutes = DEFAULT_CACHE_TTL_MINUTES
    try:
        ttl_minutes = int(ttl_raw)
        if ttl_minutes < 0:
            problems.append(("CACHE_TTL_MINUTES", "expected a non-negative integer"))
    except ValueError:
        problems.append(("CACHE_TTL_MINUTES", "expected a non-negative integer"))

    jira = _load_jira(env, problems)

    if problems:
        raise ConfigurationError("Configuration validation failed.", problems)

    return Config(
        github_token=token,
        github_org=org,
        github_api_url=_read(env, "GITHUB_API_URL") or DEFAULT_GRAPHQL_URL,
        github_rest_url=(_read(env, "GITHUB_REST_URL") or DEFAULT_REST_URL).rstrip("/"),
        jira=jira,
        cache_ttl_minutes=ttl_minutes,
        cache_dir=_read(env, "CACHE_DIR") or None,
        fallback_to_mock=_read(env, "FALLBACK_TO_MOCK").lower() == "true",
    )
