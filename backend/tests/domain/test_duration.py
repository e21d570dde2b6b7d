"""Tests for the duration guard.

Due dates are anchored on activation and stretched by the intended
duration, never by the calendar dates the gig was posted with.
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from app.domain.duration import (
    DEFAULT_DURATION_WEEKS,
    compute_due_date,
    duration_days,
    normalize_duration_weeks,
    original_duration_from_dates,
)

pytestmark = pytest.mark.unit

DAY_0 = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
THREE_DAYS = Decimal(3) / Decimal(7)


def test_three_day_project_due_on_day_three():
    assert compute_due_date(DAY_0, THREE_DAYS) == DAY_0 + timedelta(days=3)


def test_late_activation_shifts_and_preserves_duration():
    """Activated two days late: due day 5, not day 3."""
    late = DAY_0 + timedelta(days=2)
    assert compute_due_date(late, THREE_DAYS) == DAY_0 + timedelta(days=5)


def test_jan_gig_matched_late_still_gets_three_days():
    activated = datetime(2025, 1, 3, 9, 0, tzinfo=UTC)
    due = compute_due_date(activated, THREE_DAYS)
    assert due.date() == date(2025, 1, 6)


@pytest.mark.parametrize(
    "weeks,expected_days",
    [
        (Decimal("1"), 7),
        (Decimal("2"), 14),
        (Decimal("1.5"), 11),  # 10.5 rounds half-up
        (Decimal("0.05"), 1),  # never less than one day
        ("0.5", 4),
    ],
)
def test_duration_days_rounding(weeks, expected_days):
    assert duration_days(weeks) == expected_days


@pytest.mark.parametrize("bad", [None, 0, -2, "abc", "NaN", "Infinity"])
def test_invalid_duration_defaults_to_one_week(bad):
    assert normalize_duration_weeks(bad) == DEFAULT_DURATION_WEEKS
    assert duration_days(bad) == 7


def test_fractional_quantized_weeks_keep_day_count():
    """Weeks stored at four decimal places still round to the same days."""
    stored = THREE_DAYS.quantize(Decimal("0.0001"))
    assert duration_days(stored) == duration_days(THREE_DAYS) == 3


def test_original_duration_from_one_week_of_dates():
    duration = original_duration_from_dates(date(2025, 1, 1), date(2025, 1, 8))
    assert duration.weeks == Decimal(1)
    assert duration.estimated_hours == Decimal(40)
    assert duration.intended_start == date(2025, 1, 1)
    assert duration.intended_end == date(2025, 1, 8)


def test_original_duration_counts_partial_work_weeks_up():
    duration = original_duration_from_dates(date(2025, 1, 1), date(2025, 1, 3))
    assert duration_days(duration.weeks) == 2
    assert duration.estimated_hours == Decimal(16)  # ceil(2 * 5 / 7) = 2 work days


def test_original_duration_rejects_inverted_dates():
    with pytest.raises(ValueError, match="after"):
        original_duration_from_dates(date(2025, 1, 8), date(2025, 1, 1))
    with pytest.raises(ValueError):
        original_duration_from_dates(date(2025, 1, 1), date(2025, 1, 1))
