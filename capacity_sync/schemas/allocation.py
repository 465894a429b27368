"""Derived allocation data.

None of these are persisted: they are recomputed from work items, teams and
members on every aggregation pass.
"""
from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class AllocationRecord:
    """Hours of one member on one work item, spread over its timeframe.

    Attributes:
        member_id: Allocated member
        work_item_id: Work item the hours belong to
        work_item_name: Display name of the work item
        start_date: First day of the work item timeframe
        end_date: Last day of the work item timeframe (inclusive)
        weekly_hours: total_hours divided by the number of weeks spanned
        total_hours: Hours assigned to the member on the work item
    """

    member_id: str
    work_item_id: str
    work_item_name: str
    start_date: date
    end_date: date
    weekly_hours: float
    total_hours: float


@dataclass
class WeeklyLoad:
    """Summed weekly hours of a member in one calendar week."""

    week_id: str
    allocated_hours: float
    capacity: float
    work_item_ids: list[str] = field(default_factory=list)

    @property
    def over_allocated_by(self) -> float:
        return max(0.0, self.allocated_hours - self.capacity)

    @property
    def is_over_allocated(self) -> bool:
        return self.allocated_hours > self.capacity


@dataclass(frozen=True)
class AvailabilityResult:
    """Verdict for a member over a query window.

    Attributes:
        available: True when hours remain and nothing is over-committed
        available_hours: max(0, total_capacity - total_allocated_hours)
        over_allocated_by: max(0, total_allocated_hours - total_capacity)
        total_allocated_hours: Hours of overlapping records minus excluded hours, at least 0
        total_capacity: Effective capacity projected over the window
    """

    available: bool
    available_hours: float
    over_allocated_by: float
    total_allocated_hours: float = 0.0
    total_capacity: float = 0.0


@dataclass
class MemberAllocationReport:
    """All allocations of one member with the weekly over-allocation verdict."""

    member_id: str
    name: str
    weekly_capacity: float
    team_allocation_percent: float
    effective_capacity: float
    records: list[AllocationRecord] = field(default_factory=list)
    weeks: list[WeeklyLoad] = field(default_factory=list)

    @property
    def is_over_allocated(self) -> bool:
        return any(week.is_over_allocated for week in self.weeks)

    @property
    def over_allocated_by(self) -> float:
        """Peak weekly excess over effective capacity."""
        return max((week.over_allocated_by for week in self.weeks), default=0.0)

    @property
    def total_hours(self) -> float:
        return sum(record.total_hours for record in self.records)


@dataclass(frozen=True)
class CostLine:
    """Cost of one member on a work item."""

    member_id: str
    name: str
    hours: float
    days: float
    hourly_rate: float
    cost: float


@dataclass
class CostSummary:
    """Cost of all member allocations of a work item."""

    lines: list[CostLine] = field(default_factory=list)
    total_cost: float = 0.0
    total_hours: float = 0.0
    total_days: float = 0.0

    @property
    def daily_cost(self) -> float:
        return self.total_cost / self.total_days if self.total_days > 0 else 0.0


@dataclass(frozen=True)
class ProviderCostLine:
    """Monthly amount of one fixed provider cost item."""

    provider_id: str
    name: str
    amount: float
    cost_type: str


@dataclass(frozen=True)
class OptionRevenueLine:
    """Monthly revenue of one option: volume times fee rate."""

    option_id: str
    name: str
    monthly_volume: float
    transaction_fee_rate: float
    monthly_revenue: float


@dataclass
class MilestoneMetrics:
    """Totals of the work items connected to a milestone.

    Attributes:
        total_cost: team_costs + provider_costs
        monthly_value: Sum of option revenues
        team_costs: Member costs of every connected work item
        provider_costs: Fixed provider costs, annual amounts spread monthly
        option_revenues: Same as monthly_value
        status_counts: Connected work items per status
    """

    total_cost: float = 0.0
    monthly_value: float = 0.0
    team_costs: float = 0.0
    provider_costs: float = 0.0
    option_revenues: float = 0.0
    node_count: int = 0
    completed_count: int = 0
    status_counts: dict[str, int] = field(default_factory=dict)
    work_item_costs: dict[str, CostSummary] = field(default_factory=dict)
    provider_lines: list[ProviderCostLine] = field(default_factory=list)
    option_lines: list[OptionRevenueLine] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.node_count > 0 and self.completed_count == self.node_count
