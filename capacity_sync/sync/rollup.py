"""Milestone rollup patch.

A milestone's ``totalCost`` and ``monthlyValue`` are derived from the work
items connected to it by an edge. Like the roster helpers, the patch is
empty when the stored totals already match.
"""
import math
from typing import Any, Optional

from capacity_sync.allocation.milestone import calculate_milestone_metrics
from capacity_sync.schemas.allocation import MilestoneMetrics
from capacity_sync.workspace import Workspace


def milestone_metrics(workspace: Workspace, milestone_id: str) -> MilestoneMetrics:
    members = {member.id: member for member in workspace.members}
    return calculate_milestone_metrics(workspace.connected_work_items(milestone_id), members)


def milestone_rollup_patch(workspace: Workspace, milestone_id: str) -> dict[str, Any]:
    """``totalCost``/``monthlyValue`` of a milestone when they are out of date."""
    milestone = workspace.milestone(milestone_id)
    if milestone is None:
        return {}
    metrics = milestone_metrics(workspace, milestone_id)

    patch: dict[str, Any] = {}
    if _differs(milestone.total_cost, metrics.total_cost):
        patch["totalCost"] = metrics.total_cost
    if _differs(milestone.monthly_value, metrics.monthly_value):
        patch["monthlyValue"] = metrics.monthly_value
    return patch


def _differs(current: Optional[float], target: float) -> bool:
    return current is None or not math.isclose(current, target, abs_tol=1e-9)
