"""Schemas for entities, derived allocations and update events."""
from capacity_sync.schemas.allocation import (
    AllocationRecord,
    AvailabilityResult,
    CostLine,
    CostSummary,
    MemberAllocationReport,
    MilestoneMetrics,
    OptionRevenueLine,
    ProviderCostLine,
    WeeklyLoad,
)
from capacity_sync.schemas.entities import (
    ENTITY_MODELS,
    WORK_ITEM_TYPES,
    CamelModel,
    Edge,
    EntityType,
    MemberAllocation,
    Milestone,
    ProviderCost,
    ProviderCostDetails,
    RosterEntry,
    RosterWorkItemAllocation,
    Season,
    Team,
    TeamAllocation,
    TeamMember,
    Timeframe,
    WorkItem,
)
from capacity_sync.schemas.events import UpdateEvent

__all__ = [
    # Entities
    "CamelModel",
    "EntityType",
    "ENTITY_MODELS",
    "WORK_ITEM_TYPES",
    "Timeframe",
    "Season",
    "TeamMember",
    "RosterEntry",
    "RosterWorkItemAllocation",
    "Team",
    "MemberAllocation",
    "TeamAllocation",
    "ProviderCost",
    "ProviderCostDetails",
    "WorkItem",
    "Milestone",
    "Edge",
    # Derived allocations
    "AllocationRecord",
    "WeeklyLoad",
    "AvailabilityResult",
    "MemberAllocationReport",
    "CostLine",
    "CostSummary",
    "ProviderCostLine",
    "OptionRevenueLine",
    "MilestoneMetrics",
    # Events
    "UpdateEvent",
]
