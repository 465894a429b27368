"""Allocation aggregator.

Sums a member's allocation records per calendar week and over a query
window, and compares them against the member's effective capacity.

The verdicts are advisory: they feed warning badges and numeric excess in
the UI and never block a write.

Usage:
    aggregator = AllocationAggregator(workspace, settings)
    report = aggregator.member_report("member-1")
    result = aggregator.check_member_availability("member-1", start, end)
"""
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

import structlog

from capacity_sync.allocation.calendar import (
    DateLike,
    calendar_duration,
    default_timeframe,
    periods_overlap,
    to_date,
    weekly_buckets,
    weekly_hours,
)
from capacity_sync.allocation.capacity import (
    DEFAULT_DAYS_PER_WEEK,
    effective_capacity,
    resolve_member_capacity,
)
from capacity_sync.config import Settings, get_settings
from capacity_sync.schemas.allocation import (
    AllocationRecord,
    AvailabilityResult,
    MemberAllocationReport,
    WeeklyLoad,
)
from capacity_sync.schemas.entities import Season, WorkItem
from capacity_sync.workspace import Workspace

logger = structlog.get_logger()


# =============================================================================
# Pure aggregation
# =============================================================================


def weekly_loads(records: Iterable[AllocationRecord], capacity: float) -> list[WeeklyLoad]:
    """Expand records into calendar weeks and sum weekly hours per week.

    Detects any single week above capacity even when the averaged rate of a
    long record looks fine.
    """
    loads: dict[str, WeeklyLoad] = {}
    for record in records:
        for week in weekly_buckets(record.start_date, record.end_date):
            load = loads.get(week)
            if load is None:
                load = loads[week] = WeeklyLoad(week_id=week, allocated_hours=0.0, capacity=capacity)
            load.allocated_hours += record.weekly_hours
            load.work_item_ids.append(record.work_item_id)
    return [loads[week] for week in sorted(loads)]


def check_availability(
    capacity: float,
    records: Iterable[AllocationRecord],
    window_start: DateLike,
    window_end: DateLike,
    exclude_hours: float = 0.0,
) -> AvailabilityResult:
    """Availability of a member over a query window.

    Args:
        capacity: Member's effective weekly capacity
        records: Allocation records referencing the member
        window_start: First day of the query window
        window_end: Last day of the query window (inclusive)
        exclude_hours: Hours of the allocation being edited, so it does not
            count against itself

    Returns:
        AvailabilityResult for the window
    """
    duration_days = calendar_duration(window_start, window_end)
    total_capacity = effective_capacity(capacity, 100.0, duration_days, DEFAULT_DAYS_PER_WEEK)

    total_allocated = sum(
        record.total_hours
        for record in records
        if periods_overlap(record.start_date, record.end_date, window_start, window_end)
    )
    total_allocated = max(0.0, total_allocated - exclude_hours)

    available_hours = max(0.0, total_capacity - total_allocated)
    over_allocated_by = max(0.0, total_allocated - total_capacity)

    return AvailabilityResult(
        available=available_hours > 0 and over_allocated_by == 0,
        available_hours=available_hours,
        over_allocated_by=over_allocated_by,
        total_allocated_hours=total_allocated,
        total_capacity=total_capacity,
    )


def records_for_work_item(
    work_item: WorkItem,
    known_member_ids: Optional[set[str]] = None,
    season: Optional[Season] = None,
    today: Optional[date] = None,
) -> list[AllocationRecord]:
    """Allocation records of every member allocated to a work item.

    Members with zero hours, and members not in ``known_member_ids`` when it
    is given, are skipped. A work item without dates uses the season (or
    today plus 30 days) as its timeframe.
    """
    if work_item.timeframe is not None:
        start, end = work_item.timeframe.start_date, work_item.timeframe.end_date
    else:
        start, end = default_timeframe(season, today)

    records = []
    for team_allocation in work_item.team_allocations:
        for member in team_allocation.allocated_members:
            if not member.member_id or member.hours <= 0:
                continue
            if known_member_ids is not None and member.member_id not in known_member_ids:
                continue
            records.append(
                AllocationRecord(
                    member_id=member.member_id,
                    work_item_id=work_item.id,
                    work_item_name=work_item.title or work_item.id[:8],
                    start_date=to_date(start),
                    end_date=to_date(end),
                    weekly_hours=weekly_hours(member.hours, start, end),
                    total_hours=member.hours,
                )
            )
    return records


# =============================================================================
# Workspace aggregation
# =============================================================================


class AllocationAggregator:
    """Aggregates allocation records for the members of a workspace.

    Records are recomputed from the workspace on every call; nothing is
    cached between passes.
    """

    def __init__(self, workspace: Workspace, settings: Optional[Settings] = None):
        """Initialize aggregator.

        Args:
            workspace: Local entity state to read members, teams and work items from
            settings: Engine settings (defaults to ``get_settings()``)
        """
        self._workspace = workspace
        self._settings = settings or get_settings()

    def default_season(self) -> Optional[Season]:
        for team in self._workspace.teams:
            if team.season is not None:
                return team.season
        return None

    def member_capacity(self, member_id: str) -> Optional[float]:
        """Effective weekly capacity of a member, None when unknown."""
        member = self._workspace.member(member_id)
        if member is None:
            return None
        resolved = resolve_member_capacity(
            member,
            self._workspace.roster_entry_for(member_id),
            default_hours_per_day=self._settings.default_hours_per_day,
            default_days_per_week=self._settings.default_days_per_week,
            max_weekly=self._settings.max_weekly_capacity,
        )
        return resolved.effective_capacity

    def build_records(self, today: Optional[date] = None) -> dict[str, list[AllocationRecord]]:
        """Allocation records of every known member, keyed by member id."""
        known = {member.id for member in self._workspace.members}
        season = self.default_season()

        by_member: dict[str, list[AllocationRecord]] = defaultdict(list)
        for work_item in self._workspace.work_items:
            for record in records_for_work_item(work_item, known, season, today):
                by_member[record.member_id].append(record)
        return dict(by_member)

    def member_report(self, member_id: str, today: Optional[date] = None) -> Optional[MemberAllocationReport]:
        """Weekly allocation report of one member, None when unknown."""
        member = self._workspace.member(member_id)
        if member is None:
            return None

        resolved = resolve_member_capacity(
            member,
            self._workspace.roster_entry_for(member_id),
            default_hours_per_day=self._settings.default_hours_per_day,
            default_days_per_week=self._settings.default_days_per_week,
            max_weekly=self._settings.max_weekly_capacity,
        )
        records = self.build_records(today).get(member_id, [])

        return MemberAllocationReport(
            member_id=member_id,
            name=member.title or member_id[:8],
            weekly_capacity=resolved.weekly_capacity,
            team_allocation_percent=resolved.allocation_percent,
            effective_capacity=resolved.effective_capacity,
            records=records,
            weeks=weekly_loads(records, resolved.effective_capacity),
        )

    def reports(self, today: Optional[date] = None) -> dict[str, MemberAllocationReport]:
        """Reports for every member of the workspace."""
        reports = {}
        for member in self._workspace.members:
            report = self.member_report(member.id, today)
            if report is not None:
                reports[member.id] = report
        return reports

    def conflicts(self, today: Optional[date] = None) -> list[MemberAllocationReport]:
        """Reports of members over capacity in at least one week."""
        return [report for report in self.reports(today).values() if report.is_over_allocated]

    def check_member_availability(
        self,
        member_id: str,
        window_start: DateLike,
        window_end: DateLike,
        exclude_hours: float = 0.0,
        today: Optional[date] = None,
    ) -> AvailabilityResult:
        """Availability of a member over a query window.

        A member unknown to the workspace gets the configured fallback
        capacity (40 h/week by default) and no records.
        """
        capacity = self.member_capacity(member_id)
        if capacity is None:
            logger.info(
                "availability_unknown_member",
                member_id=member_id,
                fallback_capacity=self._settings.unknown_member_capacity,
            )
            return check_availability(
                self._settings.unknown_member_capacity, [], window_start, window_end
            )

        records = self.build_records(today).get(member_id, [])
        result = check_availability(capacity, records, window_start, window_end, exclude_hours)

        logger.debug(
            "availability_checked",
            member_id=member_id,
            effective_capacity=capacity,
            total_capacity=result.total_capacity,
            total_allocated_hours=result.total_allocated_hours,
            exclude_hours=exclude_hours,
            available=result.available,
        )
        return result
