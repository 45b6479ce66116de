"""Custom exception types for the developer metrics aggregator."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple


class MetricsError(Exception):
    """Base exception for all recoverable metrics aggregator errors."""


class ConfigurationError(MetricsError):
    """Raised when runtime configuration values are missing or invalid.

    Configuration problems are fatal: the fetch orchestrator never retries
    them and never hides them behind cached or synthetic data.
    """

    def __init__(self, message: str, problems: Optional[Sequence[Tuple[str, str]]] = None) -> None:
        super().__init__(message)
        self.problems: List[Tuple[str, str]] = list(problems or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.problems:
            return base
        details = "; ".join(f"{variable}: {message}" for variable, message in self.problems)
        return f"{base} ({details})"


class AuthenticationError(ConfigurationError):
    """Raised when API credentials are unavailable."""


class ApiError(MetricsError):
    """Raised when an upstream API request fails or returns an error payload."""

    def __init__(
        self,
        message: str,
        messages: Optional[Sequence[str]] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.messages: List[str] = list(messages or [])
        self.status_code = status_code


class DataValidationError(ApiError):
    """Raised when API payloads are missing structurally required fields."""
