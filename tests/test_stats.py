"""Tests for rounding, statistics and report rendering."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devmetrics.stats import (
    calculate_percentile,
    format_hours,
    generate_report,
    mean,
    round1,
    round_half_up,
    round_int,
)


def test_round_half_up_rounds_halves_away_from_even():
    """Verify halves round up instead of to the nearest even integer."""
    assert round_int(2.5) == 3
    assert round_int(0.5) == 1
    assert round_int(2.4) == 2
    assert round_half_up(12.25, 1) == pytest.approx(12.3)


def test_round1_keeps_one_decimal():
    """Verify one-decimal rounding used for averages."""
    assert round1(10.04) == pytest.approx(10.0)
    assert round1(10.25) == pytest.approx(10.3)
    assert round1(0) == 0


def test_mean_of_empty_input_is_zero():
    """Verify mean returns 0.0 for no samples instead of dividing by zero."""
    assert mean([]) == 0.0
    assert mean(iter([2, 4])) == 3.0


def test_calculate_percentile_empty_returns_none():
    """Verify percentile calculation returns None when sample list is empty."""
    assert calculate_percentile([], 50) is None


def test_calculate_percentile_multiple_values_p50_p90():
    """Verify linear interpolation percentile values for a multi-value sorted sample."""
    values = [10.0, 20.0, 30.0, 40.0]
    assert calculate_percentile(values, 50) == pytest.approx(25.0)
    assert calculate_percentile(values, 90) == pytest.approx(37.0)


def test_calculate_percentile_rejects_out_of_range():
    """Verify percentiles outside 0..100 raise ValueError."""
    with pytest.raises(ValueError):
        calculate_percentile([1.0], 101)


def test_format_hours_handles_none_small_and_multi_day_values():
    """Verify hour formatter handles missing, sub-day and multi-day values."""
    assert format_hours(None) == "n/a"
    assert format_hours(0) == "00h"
    assert format_hours(5.4) == "05h"
    assert format_hours(50) == "2d 02h"
    assert format_hours(-3) == "00h"


def test_generate_report_orders_developers_by_impact():
    """Verify the text report lists the summary and developers by descending impact."""
    bundle = {
        "metrics": [
            {"id": "bob", "name": "Bob", "role": "Backend", "impact_score": 10, "prs_merged": 2},
            {"id": "alice", "name": "Alice", "role": "Frontend", "impact_score": 40, "prs_merged": 8},
        ],
        "summary": {"total_prs_merged": 10, "avg_cycle_time": 26.0, "total_velocity": None},
    }

    report = generate_report(bundle, "sprint")

    assert "Developer Metrics Report (sprint)" in report
    assert "PRs merged: 10" in report
    assert "Average cycle time: 1d 02h" in report
    assert "Total velocity" not in report
    assert report.index("Alice") < report.index("Bob")
