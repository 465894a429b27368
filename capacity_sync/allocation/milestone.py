"""Milestone rollup of connected work items.

A milestone's ``totalCost`` is the member cost of every connected work item
plus the fixed monthly costs of connected providers; its ``monthlyValue`` is
the revenue of connected options (monthly volume times fee rate).
"""
from typing import Iterable, Mapping

from capacity_sync.allocation.cost import DEFAULT_HOURLY_RATE, calculate_cost_summary
from capacity_sync.schemas.allocation import MilestoneMetrics, OptionRevenueLine, ProviderCostLine
from capacity_sync.schemas.entities import EntityType, ProviderCost, TeamMember, WorkItem

MONTHS_PER_YEAR = 12


def monthly_provider_cost(cost: ProviderCost) -> float:
    """Monthly amount of a provider cost item.

    Only fixed costs carry an amount that does not depend on usage; annual
    amounts are spread over twelve months. Everything else counts 0.
    """
    details = cost.details
    if cost.cost_type != "fixed" or details is None or not details.amount:
        return 0.0
    amount = max(0.0, details.amount)
    if details.frequency == "annual":
        amount /= MONTHS_PER_YEAR
    return amount


def option_monthly_revenue(work_item: WorkItem) -> float:
    volume = work_item.monthly_volume or 0.0
    rate = work_item.transaction_fee_rate or 0.0
    return volume * rate / 100


def calculate_milestone_metrics(
    work_items: Iterable[WorkItem],
    members: Mapping[str, TeamMember],
    default_rate: float = DEFAULT_HOURLY_RATE,
) -> MilestoneMetrics:
    """Roll up cost, value and status counts of a milestone's work items.

    Args:
        work_items: Work items connected to the milestone
        members: Known members by id, for rates
        default_rate: Hourly rate for members without one

    Returns:
        MilestoneMetrics; all zero when nothing is connected
    """
    metrics = MilestoneMetrics()
    for work_item in work_items:
        metrics.node_count += 1
        metrics.status_counts[work_item.status] = metrics.status_counts.get(work_item.status, 0) + 1
        if work_item.status == "completed":
            metrics.completed_count += 1
        name = work_item.title or work_item.id

        if work_item.type == EntityType.PROVIDER:
            for cost in work_item.costs:
                amount = monthly_provider_cost(cost)
                if amount <= 0:
                    continue
                metrics.provider_costs += amount
                metrics.provider_lines.append(
                    ProviderCostLine(
                        provider_id=work_item.id,
                        name=f"{name} ({cost.name or 'Cost'})",
                        amount=amount,
                        cost_type=cost.cost_type,
                    )
                )

        if work_item.type == EntityType.OPTION:
            revenue = option_monthly_revenue(work_item)
            if revenue > 0:
                metrics.option_revenues += revenue
                metrics.option_lines.append(
                    OptionRevenueLine(
                        option_id=work_item.id,
                        name=name,
                        monthly_volume=work_item.monthly_volume or 0.0,
                        transaction_fee_rate=work_item.transaction_fee_rate or 0.0,
                        monthly_revenue=revenue,
                    )
                )

        if work_item.team_allocations:
            summary = calculate_cost_summary(work_item, members, default_rate)
            metrics.work_item_costs[work_item.id] = summary
            metrics.team_costs += summary.total_cost

    metrics.total_cost = metrics.team_costs + metrics.provider_costs
    metrics.monthly_value = metrics.option_revenues
    return metrics
