"""Time-window helpers: week buckets, overlaps and durations.

Date ranges are inclusive on both ends. Week ids are ISO year-weeks
("2024-W01"); weeks start on Monday.
"""
import logging
import math
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Union

from capacity_sync.schemas.entities import Season

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]

ONE_DAY = timedelta(days=1)
DEFAULT_TIMEFRAME_DAYS = 30


def to_date(value: DateLike) -> date:
    """Normalize a date, datetime or ISO string to a date.

    Raises:
        ValueError: If a string is not an ISO date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def week_id(day: DateLike) -> str:
    """ISO year-week id of a day."""
    iso = to_date(day).isocalendar()
    return f"{iso[0]}-W{iso[1]:02d}"


def weekly_buckets(start: DateLike, end: DateLike) -> Iterator[str]:
    """Yield the week ids covering [start, end].

    A single-day range yields exactly one bucket; an inverted range is
    clamped to its start day.
    """
    start_day = to_date(start)
    end_day = max(to_date(end), start_day)

    monday = start_day - timedelta(days=start_day.weekday())
    while monday <= end_day:
        yield week_id(monday)
        monday += timedelta(weeks=1)


def periods_overlap(
    a_start: DateLike,
    a_end: DateLike,
    b_start: DateLike,
    b_end: DateLike,
) -> bool:
    """Check whether two inclusive date ranges share at least one day.

    Each range [s, e] is tested as the half-open interval [s, e + 1 day).
    """
    a_from, a_to = to_date(a_start), to_date(a_end) + ONE_DAY
    b_from, b_to = to_date(b_start), to_date(b_end) + ONE_DAY
    return a_from < b_to and b_from < a_to


def calendar_duration(start: DateLike, end: DateLike) -> int:
    """Whole days in [start, end], counted inclusively. Minimum 1."""
    days = (to_date(end) - to_date(start)).days + 1
    return max(1, days)


def weekly_hours(total_hours: float, start: DateLike, end: DateLike) -> float:
    """Spread total hours evenly over the weeks a range spans."""
    weeks = calendar_duration(start, end) / 7
    return total_hours / weeks


def working_days(start: DateLike, end: DateLike, days_per_week: float = 5) -> int:
    """Approximate working days between two dates from a days-per-week ratio."""
    total_days = (to_date(end) - to_date(start)).days
    return max(0, round(total_days * days_per_week / 7))


def end_date_from_duration(start: DateLike, duration_days: float, days_per_week: float = 5) -> date:
    """End date after ``duration_days`` working days, weekends included."""
    if days_per_week <= 0:
        logger.warning(
            "Non-positive days per week, using calendar days",
            extra={"days_per_week": days_per_week},
        )
        days_per_week = 7
    calendar_days = math.ceil(duration_days * 7 / days_per_week)
    return to_date(start) + timedelta(days=calendar_days)


def default_timeframe(
    season: Optional[Season] = None,
    today: Optional[date] = None,
) -> tuple[date, date]:
    """Timeframe for a work item without dates.

    Uses the season when both of its dates are set, otherwise today plus
    30 days.
    """
    if season is not None and season.start_date and season.end_date:
        return season.start_date, season.end_date

    start = today or date.today()
    return start, start + timedelta(days=DEFAULT_TIMEFRAME_DAYS)
