"""Duration guard: due dates follow the intended duration, not the posted calendar.

Pure domain functions. No DB access, fully deterministic.

A gig posted for Jan 1-3 but only matched on Jan 3 must still get three days of
working time, so the due date is always anchored on the activation instant:

    due_date = activated_at + round(duration_weeks * 7) days
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_DURATION_WEEKS = Decimal("1")
MIN_DURATION_DAYS = 1
HOURS_PER_WORK_DAY = 8
WORK_DAYS_PER_WEEK = 5


@dataclass(frozen=True)
class OriginalDuration:
    """Intended duration captured once at activation and never recalculated."""

    weeks: Decimal
    estimated_hours: Decimal
    intended_start: date | None = None
    intended_end: date | None = None


def normalize_duration_weeks(duration_weeks) -> Decimal:
    """Coerce a duration to a positive Decimal, defaulting to one week.

    Upstream gig data is sometimes incomplete; a missing or non-positive
    duration falls back to DEFAULT_DURATION_WEEKS instead of failing activation.
    """
    if duration_weeks is None:
        logger.warning("duration_missing_defaulted", default_weeks=str(DEFAULT_DURATION_WEEKS))
        return DEFAULT_DURATION_WEEKS
    try:
        weeks = Decimal(str(duration_weeks))
    except (InvalidOperation, ValueError):
        logger.warning("duration_invalid_defaulted", value=str(duration_weeks))
        return DEFAULT_DURATION_WEEKS
    if not weeks.is_finite() or weeks <= 0:
        logger.warning("duration_invalid_defaulted", value=str(duration_weeks))
        return DEFAULT_DURATION_WEEKS
    return weeks


def duration_days(duration_weeks) -> int:
    """Whole days covered by a duration, rounded half-up, at least one day."""
    weeks = normalize_duration_weeks(duration_weeks)
    days = int((weeks * 7).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(MIN_DURATION_DAYS, days)


def compute_due_date(activated_at: datetime, duration_weeks) -> datetime:
    """Compute a due date from the activation instant and intended duration.

    Args:
        activated_at: Instant the project (or task) became active
        duration_weeks: Original intended duration in weeks (may be fractional)

    Returns:
        activated_at shifted by the intended number of whole days
    """
    return activated_at + timedelta(days=duration_days(duration_weeks))


def original_duration_from_dates(intended_start: date, intended_end: date) -> OriginalDuration:
    """Derive the intended duration from the dates a gig was posted with.

    Raises:
        ValueError: If intended_end is not after intended_start
    """
    if intended_end <= intended_start:
        raise ValueError("intended_end must be after intended_start")

    total_days = max(1, math.ceil((intended_end - intended_start).total_seconds() / 86400))
    work_days = max(1, math.ceil(total_days * WORK_DAYS_PER_WEEK / 7))
    weeks = Decimal(total_days) / Decimal(7)

    return OriginalDuration(
        weeks=weeks,
        estimated_hours=Decimal(work_days * HOURS_PER_WORK_DAY),
        intended_start=intended_start,
        intended_end=intended_end,
    )
