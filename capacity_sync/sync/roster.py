"""Roster synchronization rule.

The team allocation percentage of a member is stored twice: on the roster
entry of the member's team and as ``teamAllocationPercent`` on the member.
The roster entry owns it. The member owns its schedule (hours per day, days
per week).

The helpers below compute camelCase patches and return an empty dict when
nothing differs, so applying their output repeatedly converges.
"""
import math
from typing import Any, Optional

from capacity_sync.allocation.capacity import resolve_member_capacity, team_bandwidth
from capacity_sync.config import Settings
from capacity_sync.schemas.entities import EntityType, RosterWorkItemAllocation, Team, WorkItem
from capacity_sync.workspace import Workspace


def _differs(current: Optional[float], target: float) -> bool:
    return current is None or not math.isclose(current, target, abs_tol=1e-9)


def redirect_member_allocation(workspace: Workspace, member_id: str, percent: float) -> Optional[Team]:
    """Move a member-side allocation edit onto the roster entry of its team.

    Returns:
        The team with the updated roster, or None when the member is on no
        roster or the entry already holds that percentage
    """
    team = workspace.team_of(member_id)
    if team is None:
        return None
    entry = team.roster_entry(member_id)
    percent = min(100.0, max(0.0, percent))
    if not _differs(entry.allocation_percent, percent):
        return None

    roster = [
        {**item.to_data(), "allocationPercent": percent} if item.member_id == member_id else item.to_data()
        for item in team.roster
    ]
    return workspace.apply_patch(EntityType.TEAM, team.id, {"roster": roster})


def member_mirror_patch(workspace: Workspace, member_id: str, settings: Settings) -> dict[str, Any]:
    """Fields of a member that are out of date with its roster entry and schedule.

    Covers ``teamAllocationPercent`` (mirror of the roster) and
    ``effectiveCapacity`` (derived).
    """
    member = workspace.member(member_id)
    if member is None:
        return {}
    capacity = resolve_member_capacity(
        member,
        workspace.roster_entry_for(member_id),
        default_hours_per_day=settings.default_hours_per_day,
        default_days_per_week=settings.default_days_per_week,
        max_weekly=settings.max_weekly_capacity,
    )

    patch: dict[str, Any] = {}
    if _differs(member.team_allocation_percent, capacity.allocation_percent):
        patch["teamAllocationPercent"] = capacity.allocation_percent
    if _differs(member.effective_capacity, capacity.effective_capacity):
        patch["effectiveCapacity"] = capacity.effective_capacity
    return patch


def team_bandwidth_patch(workspace: Workspace, team_id: str, settings: Settings) -> dict[str, Any]:
    """``bandwidth`` of a team when it no longer matches its roster.

    Roster entries of members the workspace does not hold contribute nothing.
    """
    team = workspace.team(team_id)
    if team is None:
        return {}
    capacities = [
        resolve_member_capacity(
            member,
            entry,
            default_hours_per_day=settings.default_hours_per_day,
            default_days_per_week=settings.default_days_per_week,
            max_weekly=settings.max_weekly_capacity,
        )
        for entry in team.roster
        if (member := workspace.member(entry.member_id)) is not None
    ]
    bandwidth = team_bandwidth(capacities)
    if not _differs(team.bandwidth, bandwidth):
        return {}
    return {"bandwidth": bandwidth}


def roster_work_item_patch(workspace: Workspace, team_id: str, work_item: WorkItem) -> dict[str, Any]:
    """``roster`` of a team with per-work-item hours synced from a work item.

    Each roster entry gets the member's hours on the work item under this
    team; an entry with no hours left drops the work item.
    """
    team = workspace.team(team_id)
    if team is None:
        return {}

    hours_by_member: dict[str, float] = {}
    for allocation in work_item.team_allocations:
        if allocation.team_id != team_id:
            continue
        for member in allocation.allocated_members:
            hours_by_member[member.member_id] = hours_by_member.get(member.member_id, 0.0) + member.hours

    changed = False
    roster = []
    for entry in team.roster:
        others = [a for a in entry.per_work_item_allocations if a.work_item_id != work_item.id]
        current = next((a for a in entry.per_work_item_allocations if a.work_item_id == work_item.id), None)
        hours = hours_by_member.get(entry.member_id, 0.0)

        allocations = list(others)
        if hours > 0:
            allocations.append(RosterWorkItemAllocation(work_item_id=work_item.id, hours=hours))
        if (current is None) != (hours <= 0) or (current is not None and _differs(current.hours, hours)):
            changed = True

        roster.append({
            **entry.to_data(),
            "perWorkItemAllocations": [a.to_data() for a in allocations],
        })

    return {"roster": roster} if changed else {}
