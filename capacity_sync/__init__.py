"""Resource allocation and cross-entity synchronization engine.

Computes how much of each team member's weekly capacity is committed,
flags over-allocation across overlapping time windows, and propagates
edits between dependent entities through a manifest-scoped update bus.
"""
from capacity_sync.engine import PlanningEngine
from capacity_sync.schemas.entities import EntityType

__version__ = "0.1.0"

__all__ = [
    "PlanningEngine",
    "EntityType",
    "__version__",
]
