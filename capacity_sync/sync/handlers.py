"""Event handlers per (subscriber type, publisher type).

A handler runs after the loop guard accepted an event. It recomputes the
subscriber's derived state from the workspace and hands any resulting patch
back to the engine, which applies it locally and schedules its write.

Usage:
    dispatcher = EventDispatcher(engine)
    dispatcher.dispatch(EntityType.TEAM, "team-1", event)
"""
from typing import TYPE_CHECKING, Callable, Optional

import structlog

from capacity_sync.schemas.entities import WORK_ITEM_TYPES, EntityType, WorkItem
from capacity_sync.schemas.events import UpdateEvent
from capacity_sync.sync.rollup import milestone_rollup_patch
from capacity_sync.sync.roster import (
    member_mirror_patch,
    roster_work_item_patch,
    team_bandwidth_patch,
)

if TYPE_CHECKING:
    from capacity_sync.engine import PlanningEngine

logger = structlog.get_logger()

Handler = Callable[[str, UpdateEvent], None]

# Member fields that change a team's bandwidth
CAPACITY_FIELDS = (
    "hoursPerDay",
    "daysPerWeek",
    "weeklyCapacity",
    "teamAllocationPercent",
    "effectiveCapacity",
)


class EventDispatcher:
    """Routes accepted update events to the handler of the subscriber type.

    Pairs without a handler are valid manifest subscriptions whose effect is
    outside the engine (display-only fields); they are logged and ignored.
    """

    def __init__(self, engine: "PlanningEngine"):
        self.engine = engine
        self._handlers: dict[tuple[EntityType, EntityType], Handler] = {
            (EntityType.TEAM_MEMBER, EntityType.TEAM): self.member_on_team,
            (EntityType.TEAM, EntityType.TEAM_MEMBER): self.team_on_member,
        }
        for work_item_type in WORK_ITEM_TYPES:
            self._handlers[(EntityType.TEAM_MEMBER, work_item_type)] = self.member_on_work_item
            self._handlers[(EntityType.TEAM, work_item_type)] = self.team_on_work_item
            self._handlers[(work_item_type, EntityType.TEAM)] = self.work_item_on_team
            self._handlers[(work_item_type, EntityType.TEAM_MEMBER)] = self.work_item_on_member
            self._handlers[(EntityType.MILESTONE, work_item_type)] = self.milestone_on_work_item

    def handler_for(self, subscriber_type: EntityType, publisher_type) -> Optional[Handler]:
        try:
            publisher = EntityType(publisher_type)
        except ValueError:
            return None
        return self._handlers.get((EntityType(subscriber_type), publisher))

    def dispatch(self, subscriber_type: EntityType, subscriber_id: str, event: UpdateEvent) -> bool:
        """Run the handler for an event. Returns False if no handler exists."""
        handler = self.handler_for(subscriber_type, event.publisher_type)
        if handler is None:
            logger.debug(
                "event_not_handled",
                subscriber_type=EntityType(subscriber_type).value,
                subscriber_id=subscriber_id,
                publisher_type=event.publisher_type,
            )
            return False
        handler(subscriber_id, event)
        return True

    # -------------------------------------------------------------------------
    # Team member
    # -------------------------------------------------------------------------

    def member_on_team(self, member_id: str, event: UpdateEvent) -> None:
        """Refresh the member's allocation mirror from the roster."""
        if not event.touches("roster"):
            return
        patch = member_mirror_patch(self.engine.workspace, member_id, self.engine.settings)
        self.engine.apply_derived(EntityType.TEAM_MEMBER, member_id, patch, source=event.publisher_id)

    def member_on_work_item(self, member_id: str, event: UpdateEvent) -> None:
        """Warn when the member ends up over capacity. Never blocks the edit."""
        if not event.touches("teamAllocations"):
            return
        work_item = self.engine.workspace.work_item(event.publisher_id)
        if work_item is None or work_item.member_hours(member_id) <= 0:
            return

        report = self.engine.aggregator.member_report(member_id)
        if report is not None and report.is_over_allocated:
            logger.warning(
                "member_over_allocated",
                member_id=member_id,
                work_item_id=work_item.id,
                over_allocated_by=report.over_allocated_by,
            )
            self.engine.notifier.warning(
                f"{report.name} is over-allocated by {report.over_allocated_by:g}h in at least one week",
                member_id=member_id,
                work_item_id=work_item.id,
            )

    # -------------------------------------------------------------------------
    # Team
    # -------------------------------------------------------------------------

    def team_on_member(self, team_id: str, event: UpdateEvent) -> None:
        """Recompute bandwidth when a roster member's capacity changes."""
        if not event.touches(*CAPACITY_FIELDS):
            return
        team = self.engine.workspace.team(team_id)
        if team is None or team.roster_entry(event.publisher_id) is None:
            return
        patch = team_bandwidth_patch(self.engine.workspace, team_id, self.engine.settings)
        self.engine.apply_derived(EntityType.TEAM, team_id, patch, source=event.publisher_id)

    def team_on_work_item(self, team_id: str, event: UpdateEvent) -> None:
        """Sync per-work-item hours of the roster from the work item."""
        if not event.touches("teamAllocations"):
            return
        work_item = self.engine.workspace.work_item(event.publisher_id)
        if work_item is None:
            return
        patch = roster_work_item_patch(self.engine.workspace, team_id, work_item)
        self.engine.apply_derived(EntityType.TEAM, team_id, patch, source=event.publisher_id)

    # -------------------------------------------------------------------------
    # Work items
    # -------------------------------------------------------------------------

    def work_item_on_team(self, work_item_id: str, event: UpdateEvent) -> None:
        """Refresh the cached name and bandwidth of the team's allocation."""
        if not event.touches("title", "bandwidth"):
            return
        work_item = self.engine.workspace.work_item(work_item_id)
        if work_item is None:
            return

        title = event.payload.get("title")
        bandwidth = event.payload.get("bandwidth")
        changed = False
        allocations = []
        for allocation in work_item.team_allocations:
            data = allocation.to_data()
            if allocation.team_id == event.publisher_id:
                if event.touches("title") and title and title != allocation.team_name:
                    data["teamName"] = title
                    changed = True
                if event.touches("bandwidth") and bandwidth is not None and bandwidth != allocation.team_bandwidth:
                    data["teamBandwidth"] = bandwidth
                    changed = True
            allocations.append(data)

        if changed:
            self._apply_allocations(work_item, allocations, event)

    def work_item_on_member(self, work_item_id: str, event: UpdateEvent) -> None:
        """Rename the member in the work item's allocations."""
        if not event.touches("title"):
            return
        work_item = self.engine.workspace.work_item(work_item_id)
        title = event.payload.get("title")
        if work_item is None or not title:
            return

        changed = False
        allocations = []
        for allocation in work_item.team_allocations:
            data = allocation.to_data()
            for member in data["allocatedMembers"]:
                if member["memberId"] == event.publisher_id and member["name"] != title:
                    member["name"] = title
                    changed = True
            allocations.append(data)

        if changed:
            self._apply_allocations(work_item, allocations, event)

    def _apply_allocations(self, work_item: WorkItem, allocations: list[dict], event: UpdateEvent) -> None:
        self.engine.apply_derived(
            work_item.type,
            work_item.id,
            {"teamAllocations": allocations},
            source=event.publisher_id,
        )

    # -------------------------------------------------------------------------
    # Milestone
    # -------------------------------------------------------------------------

    def milestone_on_work_item(self, milestone_id: str, event: UpdateEvent) -> None:
        """Roll a connected work item's cost and value into the milestone totals."""
        connected = self.engine.workspace.connected_work_items(milestone_id)
        if not any(work_item.id == event.publisher_id for work_item in connected):
            return
        patch = milestone_rollup_patch(self.engine.workspace, milestone_id)
        self.engine.apply_derived(EntityType.MILESTONE, milestone_id, patch, source=event.publisher_id)
