"""Cost summary of a work item's member allocations."""
from typing import Mapping, Optional

from capacity_sync.allocation.capacity import DEFAULT_HOURS_PER_DAY
from capacity_sync.schemas.allocation import CostLine, CostSummary
from capacity_sync.schemas.entities import TeamMember, WorkItem

# Applied when a member has no rate set
DEFAULT_HOURLY_RATE = 100.0


def calculate_cost_summary(
    work_item: WorkItem,
    members: Mapping[str, TeamMember],
    default_rate: float = DEFAULT_HOURLY_RATE,
) -> CostSummary:
    """Cost of every member allocated to a work item.

    ``TeamMember.daily_rate`` is charged per hour. Hours of a member spread
    over several team allocations are merged into one line.

    Args:
        work_item: Work item whose team allocations are costed
        members: Known members by id (unknown members use defaults)
        default_rate: Hourly rate for members without one

    Returns:
        CostSummary with one line per member
    """
    hours_by_member: dict[str, float] = {}
    names: dict[str, str] = {}
    for team_allocation in work_item.team_allocations:
        for allocation in team_allocation.allocated_members:
            hours_by_member[allocation.member_id] = (
                hours_by_member.get(allocation.member_id, 0.0) + allocation.hours
            )
            if allocation.name:
                names.setdefault(allocation.member_id, allocation.name)

    summary = CostSummary()
    for member_id, hours in hours_by_member.items():
        member: Optional[TeamMember] = members.get(member_id)
        rate = default_rate
        hours_per_day = DEFAULT_HOURS_PER_DAY
        name = names.get(member_id, member_id[:8])
        if member is not None:
            if member.daily_rate is not None:
                rate = member.daily_rate
            if member.hours_per_day:
                hours_per_day = member.hours_per_day
            name = member.title or name

        days = hours / hours_per_day
        cost = hours * rate
        summary.lines.append(
            CostLine(
                member_id=member_id,
                name=name,
                hours=hours,
                days=days,
                hourly_rate=rate,
                cost=cost,
            )
        )
        summary.total_cost += cost
        summary.total_hours += hours
        summary.total_days += days

    return summary
