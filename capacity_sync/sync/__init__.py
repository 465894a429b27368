"""Cross-entity synchronization: bus, loop guard, debounced persistence, derived patches."""
from capacity_sync.sync.bus import PublishResult, Subscription, UpdateBus, UpdateHandler
from capacity_sync.sync.gateway import PersistenceGateway, WriteResult
from capacity_sync.sync.handlers import EventDispatcher
from capacity_sync.sync.loop_guard import LoopGuard, SubscriberState
from capacity_sync.sync.rollup import milestone_metrics, milestone_rollup_patch
from capacity_sync.sync.roster import (
    member_mirror_patch,
    redirect_member_allocation,
    roster_work_item_patch,
    team_bandwidth_patch,
)
from capacity_sync.sync.scheduler import DebounceScheduler

__all__ = [
    # Bus
    "UpdateBus",
    "UpdateHandler",
    "Subscription",
    "PublishResult",
    # Loop guard
    "LoopGuard",
    "SubscriberState",
    # Persistence
    "DebounceScheduler",
    "PersistenceGateway",
    "WriteResult",
    # Roster rule
    "redirect_member_allocation",
    "member_mirror_patch",
    "team_bandwidth_patch",
    "roster_work_item_patch",
    # Milestone rollup
    "milestone_metrics",
    "milestone_rollup_patch",
    # Handlers
    "EventDispatcher",
]
