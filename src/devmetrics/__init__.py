"""Engineering metrics aggregation for GitHub, Jira and assistant seat data."""

__version__ = "0.1.0"
