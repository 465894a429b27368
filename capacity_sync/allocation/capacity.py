"""Capacity model.

Pure functions converting a member's schedule and team allocation into an
effective weekly capacity, and hours into percentages and back.

None of these raise: missing inputs fall back to 8 h/day and 5 days/week so
a slider can always be rendered.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from capacity_sync.schemas.entities import MemberAllocation, RosterEntry, TeamMember

DEFAULT_HOURS_PER_DAY = 8.0
DEFAULT_DAYS_PER_WEEK = 5.0
MAX_WEEKLY_CAPACITY = 100.0


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def weekly_capacity(
    hours_per_day: Optional[float] = None,
    days_per_week: Optional[float] = None,
) -> float:
    """Weekly hours from a daily schedule.

    Args:
        hours_per_day: Working hours per day (None -> 8)
        days_per_week: Working days per week (None -> 5)

    Returns:
        hours_per_day * days_per_week, never negative
    """
    hours = DEFAULT_HOURS_PER_DAY if hours_per_day is None else max(0.0, hours_per_day)
    days = DEFAULT_DAYS_PER_WEEK if days_per_week is None else max(0.0, days_per_week)
    return hours * days


def effective_capacity(
    weekly: float,
    allocation_percent: float,
    duration_days: Optional[float] = None,
    days_per_week: float = DEFAULT_DAYS_PER_WEEK,
) -> float:
    """Capacity left for one team after applying the team allocation.

    Args:
        weekly: Member weekly capacity in hours
        allocation_percent: Share of the member committed to the team (0-100)
        duration_days: Optional span to project the weekly rate over
        days_per_week: Working days per week used for the projection

    Returns:
        Weekly effective hours, or total hours over ``duration_days``
    """
    percent = _clamp(allocation_percent, 0.0, 100.0)
    hours = max(0.0, weekly) * percent / 100
    if duration_days is None:
        return hours
    if days_per_week <= 0:
        return 0.0
    return hours * max(0.0, duration_days) / days_per_week


def hours_from_percentage(percentage: float, capacity: float) -> float:
    """Convert a percentage of capacity to hours, clamped to [0, capacity]."""
    if capacity <= 0:
        return 0.0
    return capacity * _clamp(percentage, 0.0, 100.0) / 100


def percentage_from_hours(hours: float, capacity: float) -> float:
    """Convert hours to a percentage of capacity, clamped to [0, 100].

    A capacity of 0 has no meaningful percentage and yields 0.
    """
    if capacity <= 0:
        return 0.0
    return _clamp(hours / capacity * 100, 0.0, 100.0)


# =============================================================================
# Member capacity
# =============================================================================


@dataclass(frozen=True)
class MemberCapacity:
    """Resolved schedule and capacity of one member."""

    member_id: str
    hours_per_day: float
    days_per_week: float
    weekly_capacity: float
    allocation_percent: float
    effective_capacity: float


def resolve_member_capacity(
    member: TeamMember,
    roster_entry: Optional[RosterEntry] = None,
    default_hours_per_day: float = DEFAULT_HOURS_PER_DAY,
    default_days_per_week: float = DEFAULT_DAYS_PER_WEEK,
    max_weekly: float = MAX_WEEKLY_CAPACITY,
) -> MemberCapacity:
    """Resolve a member's effective capacity.

    The roster entry owns the allocation percentage; the member's own
    ``team_allocation_percent`` is only used when the member is on no roster.
    An explicit ``weekly_capacity`` wins over hours * days.
    """
    hours_per_day = member.hours_per_day if member.hours_per_day is not None else default_hours_per_day
    days_per_week = member.days_per_week if member.days_per_week is not None else default_days_per_week

    if member.weekly_capacity is not None:
        weekly = member.weekly_capacity
    else:
        weekly = weekly_capacity(hours_per_day, days_per_week)
    weekly = min(weekly, max_weekly)

    percent = roster_entry.allocation_percent if roster_entry is not None else member.team_allocation_percent

    return MemberCapacity(
        member_id=member.id,
        hours_per_day=hours_per_day,
        days_per_week=days_per_week,
        weekly_capacity=weekly,
        allocation_percent=percent,
        effective_capacity=effective_capacity(weekly, percent),
    )


def team_bandwidth(capacities: Iterable[MemberCapacity]) -> float:
    """Total effective weekly hours of a team."""
    return sum(capacity.effective_capacity for capacity in capacities)


def split_requested_hours(
    roster: Iterable[RosterEntry],
    requested_hours: float,
) -> list[MemberAllocation]:
    """Distribute hours requested from a team across its roster.

    Each member receives ``allocation_percent`` of the request.
    """
    requested = max(0.0, requested_hours)
    return [
        MemberAllocation(
            member_id=entry.member_id,
            hours=entry.allocation_percent / 100 * requested,
        )
        for entry in roster
    ]
