"""Command-line argument parsing for the developer metrics aggregator."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from .timewindow import TimeRange

COMMANDS = ("developers", "pull-requests", "sprints", "seats", "clear-cache")


def _time_range(value: str) -> TimeRange:
    """Parse and validate a time-range CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a known range name.
    """
    try:
        return TimeRange(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(item.value for item in TimeRange)
        raise argparse.ArgumentTypeError(f"must be one of: {choices}") from exc


def _add_range_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--range",
        dest="time_range",
        type=_time_range,
        default=TimeRange.SPRINT,
        help="Lookback window: sprint (14 days), month (30) or quarter (90). Default: sprint.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dev-metrics",
        description=(
            "Aggregate engineering metrics from GitHub, Jira and assistant seat "
            "telemetry into dashboard-ready JSON."
        ),
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=("json", "text"),
        default="json",
        help="Output format (default: json). Text is available for 'developers'.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    developers = subparsers.add_parser("developers", help="Per-developer metrics and summary.")
    _add_range_argument(developers)

    subparsers.add_parser("pull-requests", help="Organization pull request analytics (last 30 days).")
    subparsers.add_parser("sprints", help="Sprint analytics for the configured Jira board.")

    seats = subparsers.add_parser("seats", help="Assistant seat adoption analytics.")
    _add_range_argument(seats)

    subparsers.add_parser("clear-cache", help="Remove every cached dashboard entry.")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Namespace with ``command``, ``output_format``, ``verbose`` and, for the
        ranged commands, ``time_range``.
    """
    return build_parser().parse_args(argv)
