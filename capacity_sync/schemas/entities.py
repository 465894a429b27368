"""Entity models for the planning canvas.

Python attributes are snake_case; persisted and published keys are the
camelCase aliases, which are also the manifest field ids.
"""
from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EntityType(str, Enum):
    """Entity types placed on the canvas."""

    TEAM_MEMBER = "teamMember"
    TEAM = "team"
    FEATURE = "feature"
    OPTION = "option"
    PROVIDER = "provider"
    MILESTONE = "milestone"
    META = "meta"


# Entity types that carry team allocations and a timeframe
WORK_ITEM_TYPES: frozenset[EntityType] = frozenset(
    {EntityType.FEATURE, EntityType.OPTION, EntityType.PROVIDER}
)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_data(self) -> dict[str, Any]:
        """Dump to the camelCase dict shape used on the bus and in the store."""
        return self.model_dump(by_alias=True, mode="json")


class Timeframe(CamelModel):
    """Inclusive date range."""

    start_date: date
    end_date: date


class Season(CamelModel):
    """Planning season of a team. Used as the default work item timeframe."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    name: str = ""


# =============================================================================
# Team Member
# =============================================================================


class TeamMember(CamelModel):
    """A person with a weekly schedule.

    ``team_allocation_percent`` mirrors the roster entry of the member's team,
    which owns that fact (see ``capacity_sync.sync.roster``).
    """

    id: str
    title: str = ""
    description: str = ""
    hours_per_day: Optional[float] = Field(default=None, ge=0, le=24)
    days_per_week: Optional[float] = Field(default=None, ge=0, le=7)
    weekly_capacity: Optional[float] = Field(default=None, ge=0)
    team_allocation_percent: float = Field(default=100.0, ge=0, le=100)
    effective_capacity: Optional[float] = Field(default=None, ge=0)
    daily_rate: Optional[float] = Field(default=None, ge=0)
    team_id: Optional[str] = None
    roles: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    start_date: Optional[date] = None


# =============================================================================
# Team
# =============================================================================


class RosterWorkItemAllocation(CamelModel):
    """Hours a roster member has committed to one work item."""

    work_item_id: str
    hours: float = Field(default=0.0, ge=0)


class RosterEntry(CamelModel):
    """Membership of one member in a team.

    ``allocation_percent`` is the authoritative team-level allocation.
    """

    member_id: str
    allocation_percent: float = Field(default=100.0, ge=0, le=100)
    role: str = ""
    start_date: Optional[date] = None
    per_work_item_allocations: list[RosterWorkItemAllocation] = Field(default_factory=list)


class Team(CamelModel):
    """A team and its ordered roster."""

    id: str
    title: str = ""
    description: str = ""
    roster: list[RosterEntry] = Field(default_factory=list)
    bandwidth: Optional[float] = Field(default=None, ge=0)
    season: Optional[Season] = None

    def roster_entry(self, member_id: str) -> Optional[RosterEntry]:
        """Find the roster entry of a member."""
        for entry in self.roster:
            if entry.member_id == member_id:
                return entry
        return None


# =============================================================================
# Work Item
# =============================================================================


class MemberAllocation(CamelModel):
    """Hours of one member assigned to a work item."""

    member_id: str
    name: str = ""
    hours: float = Field(default=0.0, ge=0)


class TeamAllocation(CamelModel):
    """Hours requested from a team and how they are split among members."""

    team_id: str
    team_name: str = ""
    team_bandwidth: Optional[float] = Field(default=None, ge=0)
    requested_hours: float = Field(default=0.0, ge=0)
    allocated_members: list[MemberAllocation] = Field(default_factory=list)


class ProviderCostDetails(CamelModel):
    """Pricing of one provider cost item. Only fixed amounts are rolled up."""

    type: str = ""
    amount: Optional[float] = None
    frequency: Optional[str] = None
    unit_price: Optional[float] = None
    percentage: Optional[float] = None
    minimum_monthly: Optional[float] = None


class ProviderCost(CamelModel):
    """A cost item of a provider: fixed, unit, revenue share or tiered."""

    id: str = ""
    name: str = ""
    cost_type: str = "fixed"
    details: Optional[ProviderCostDetails] = None


class WorkItem(CamelModel):
    """Generalization of the feature, option and provider entities.

    ``costs`` is only set on providers; ``monthly_volume`` and
    ``transaction_fee_rate`` (percent) only on options.
    """

    id: str
    type: EntityType = EntityType.FEATURE
    title: str = ""
    description: str = ""
    status: str = "planning"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    team_allocations: list[TeamAllocation] = Field(default_factory=list)
    goals: list[Any] = Field(default_factory=list)
    risks: list[Any] = Field(default_factory=list)
    costs: list[ProviderCost] = Field(default_factory=list)
    monthly_volume: Optional[float] = Field(default=None, ge=0)
    transaction_fee_rate: Optional[float] = Field(default=None, ge=0)

    @property
    def timeframe(self) -> Optional[Timeframe]:
        """Timeframe when both dates are set."""
        if self.start_date is None or self.end_date is None:
            return None
        return Timeframe(start_date=self.start_date, end_date=self.end_date)

    def member_hours(self, member_id: str) -> float:
        """Total hours of a member across all team allocations."""
        return sum(
            member.hours
            for allocation in self.team_allocations
            for member in allocation.allocated_members
            if member.member_id == member_id
        )


# =============================================================================
# Milestone
# =============================================================================


class Milestone(CamelModel):
    """A delivery goal whose totals roll up from the work items connected to it."""

    id: str
    title: str = ""
    description: str = ""
    status: str = "planning"
    kpis: list[Any] = Field(default_factory=list)
    total_cost: Optional[float] = Field(default=None, ge=0)
    monthly_value: Optional[float] = Field(default=None, ge=0)


# =============================================================================
# Edge
# =============================================================================


class Edge(CamelModel):
    """A relationship between two nodes of the graph."""

    id: str = ""
    source: str
    target: str
    type: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source, self.target)

    def other_end(self, node_id: str) -> str:
        """The node at the opposite end from ``node_id``."""
        return self.target if self.source == node_id else self.source


# Model class per entity type; meta nodes only publish through the manifest
# and have no engine-side model.
ENTITY_MODELS: dict[EntityType, type[CamelModel]] = {
    EntityType.TEAM_MEMBER: TeamMember,
    EntityType.TEAM: Team,
    EntityType.FEATURE: WorkItem,
    EntityType.OPTION: WorkItem,
    EntityType.PROVIDER: WorkItem,
    EntityType.MILESTONE: Milestone,
}
