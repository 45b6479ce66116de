"""Statistics and formatting helpers for metric reporting.

This module provides utilities for:
- Rounding with halves rounded up.
- Computing means and linear-interpolation percentiles.
- Formatting hour-based durations for text output.
- Building a human-readable report for the developer metrics bundle.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


def round_half_up(value: float, digits: int = 0) -> float:
    """Round ``value`` to ``digits`` decimals with halves rounded up (``2.5`` -> ``3``)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """Round to the nearest integer, halves rounded up."""
    return int(round_half_up(value))


def round1(value: float) -> float:
    """Round to one decimal place, halves rounded up."""
    return round_half_up(value, 1)


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean, or ``0.0`` for an empty input."""
    items = list(values)
    if not items:
        return 0.0
    return sum(items) / len(items)


def calculate_percentile(sorted_values: Sequence[float], p: float) -> Optional[float]:
    """Calculate a percentile using linear interpolation.

    The input sequence is expected to already be sorted in ascending order.
    Empty input returns ``None``.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    if not sorted_values:
        return None

    if p <= 0:
        return sorted_values[0]

    if p >= 100:
        return sorted_values[-1]

    position = (len(sorted_values) - 1) * (p / 100.0)
    lower_index = math.floor(position)
    upper_index = math.ceil(position)

    if lower_index == upper_index:
        return sorted_values[int(position)]

    lower_value = sorted_values[lower_index]
    upper_value = sorted_values[upper_index]
    return lower_value + (upper_value - lower_value) * (position - lower_index)


def format_hours(hours: Optional[float]) -> str:
    """Format an hour-based duration as ``Nd HHh`` or ``HHh``.

    Returns ``"n/a"`` when ``hours`` is ``None``.
    """
    if hours is None:
        return "n/a"

    total_hours = int(round_half_up(max(0.0, hours)))
    days, remaining = divmod(total_hours, 24)
    if days:
        return f"{days}d {remaining:02d}h"
    return f"{remaining:02d}h"


def generate_report(bundle: Mapping[str, Any], range_label: str) -> str:
    """Generate a human-readable report for a developer metrics bundle.

    Args:
        bundle: ``{"metrics": [...], "summary": {...}}`` as returned by
            ``DashboardService.fetch_developer_metrics``.
        range_label: Time range name shown in the header.

    Returns:
        Formatted multi-line text report, developers ordered by impact score.
    """
    summary: Dict[str, Any] = dict(bundle.get("summary") or {})
    metrics: List[Dict[str, Any]] = sorted(
        bundle.get("metrics") or [],
        key=lambda metric: metric.get("impact_score", 0),
        reverse=True,
    )

    lines = [
        f"Developer Metrics Report ({range_label})",
        "",
        f"PRs merged: {summary.get('total_prs_merged', 0)}",
        f"Average cycle time: {format_hours(summary.get('avg_cycle_time'))}",
    ]
    if summary.get("total_velocity") is not None:
        lines.append(f"Total velocity: {summary['total_velocity']}")

    lines.append("")
    for metric in metrics:
        lines.append(
            f"{metric.get('name', metric.get('id'))} ({metric.get('role')})"
            f" | impact={metric.get('impact_score', 0)}"
            f" | opened={metric.get('prs_opened', 0)}"
            f" | merged={metric.get('prs_merged', 0)}"
            f" | cycle={format_hours(metric.get('avg_cycle_time_hours'))}"
            f" | review comments={metric.get('review_comments_given', 0)}"
        )

    return "\n".join(lines)
