"""Capacity model, calendar buckets, allocation aggregation, cost and milestone rollup."""
from capacity_sync.allocation.aggregator import (
    AllocationAggregator,
    check_availability,
    records_for_work_item,
    weekly_loads,
)
from capacity_sync.allocation.calendar import (
    calendar_duration,
    default_timeframe,
    end_date_from_duration,
    periods_overlap,
    to_date,
    week_id,
    weekly_buckets,
    weekly_hours,
    working_days,
)
from capacity_sync.allocation.capacity import (
    MemberCapacity,
    effective_capacity,
    hours_from_percentage,
    percentage_from_hours,
    resolve_member_capacity,
    split_requested_hours,
    team_bandwidth,
    weekly_capacity,
)
from capacity_sync.allocation.cost import calculate_cost_summary
from capacity_sync.allocation.milestone import (
    calculate_milestone_metrics,
    monthly_provider_cost,
    option_monthly_revenue,
)

__all__ = [
    # Capacity
    "MemberCapacity",
    "weekly_capacity",
    "effective_capacity",
    "hours_from_percentage",
    "percentage_from_hours",
    "resolve_member_capacity",
    "team_bandwidth",
    "split_requested_hours",
    # Calendar
    "to_date",
    "week_id",
    "weekly_buckets",
    "periods_overlap",
    "calendar_duration",
    "weekly_hours",
    "working_days",
    "end_date_from_duration",
    "default_timeframe",
    # Aggregation
    "AllocationAggregator",
    "weekly_loads",
    "check_availability",
    "records_for_work_item",
    # Cost
    "calculate_cost_summary",
    # Milestone rollup
    "calculate_milestone_metrics",
    "monthly_provider_cost",
    "option_monthly_revenue",
]
