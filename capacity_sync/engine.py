"""Planning engine.

Composes the workspace, update bus, loop guard, debounced persistence
gateway and allocation aggregator into the surface a UI layer calls.

Flow of one edit:
1. The patch is applied to the workspace at once (optimistic)
2. Derived fields of the edited entity are recomputed and merged in
3. The write is debounced through the gateway
4. After the write, subscribers receive a manifest-scoped event, pass the
   loop guard and recompute their own derived state, which may schedule
   further writes

Usage:
    engine = PlanningEngine(store)
    engine.add_entity(member)
    engine.edit(EntityType.TEAM_MEMBER, member.id, {"hoursPerDay": 6})
    await engine.close()
"""
import time
from datetime import date
from functools import partial
from typing import Any, Callable, Mapping, Optional

import structlog
from pydantic import ValidationError

from capacity_sync.allocation.aggregator import AllocationAggregator
from capacity_sync.allocation.calendar import DateLike, default_timeframe
from capacity_sync.allocation.capacity import split_requested_hours
from capacity_sync.allocation.cost import calculate_cost_summary
from capacity_sync.config import Settings, get_settings
from capacity_sync.manifest import ManifestRegistry
from capacity_sync.notifications import LogNotifier, Notifier
from capacity_sync.schemas.allocation import (
    AvailabilityResult,
    CostSummary,
    MemberAllocationReport,
    MilestoneMetrics,
)
from capacity_sync.schemas.entities import (
    ENTITY_MODELS,
    WORK_ITEM_TYPES,
    CamelModel,
    Edge,
    EntityType,
    WorkItem,
)
from capacity_sync.schemas.events import UpdateEvent
from capacity_sync.store.interface import GraphStore
from capacity_sync.sync.bus import UpdateBus
from capacity_sync.sync.gateway import PersistenceGateway, WriteResult
from capacity_sync.sync.handlers import EventDispatcher
from capacity_sync.sync.loop_guard import LoopGuard
from capacity_sync.sync.rollup import milestone_metrics, milestone_rollup_patch
from capacity_sync.sync.roster import (
    member_mirror_patch,
    redirect_member_allocation,
    team_bandwidth_patch,
)
from capacity_sync.sync.scheduler import DebounceScheduler
from capacity_sync.workspace import Workspace, entity_type_of

logger = structlog.get_logger()

# Upper bound on commit rounds in flush(); each round may schedule derived writes
MAX_FLUSH_ROUNDS = 10


class PlanningEngine:
    """Facade over allocation and synchronization."""

    def __init__(
        self,
        store: GraphStore,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
        registry: Optional[ManifestRegistry] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize engine.

        Args:
            store: Backing graph store
            settings: Engine settings (defaults to ``get_settings()``)
            notifier: Receives user-visible messages (defaults to the log)
            registry: Manifest registry (defaults to the shipped manifests)
            clock: Time source of the loop guard
        """
        self.settings = settings or get_settings()
        self.notifier = notifier or LogNotifier()
        self.workspace = Workspace()
        self.bus = UpdateBus(registry)
        self.guard = LoopGuard(clock=clock, settings=self.settings)
        self.scheduler = DebounceScheduler(settings=self.settings)
        self.gateway = PersistenceGateway(
            store,
            self.bus,
            self.guard,
            scheduler=self.scheduler,
            notifier=self.notifier,
            settings=self.settings,
        )
        self.aggregator = AllocationAggregator(self.workspace, self.settings)
        self.dispatcher = EventDispatcher(self)

    # =========================================================================
    # Entity lifecycle
    # =========================================================================

    def attach(self, entity_type: EntityType, entity_id: str) -> None:
        """Subscribe an entity to the bus according to its manifest."""
        entity_type = EntityType(entity_type)
        self.bus.subscribe(entity_id, entity_type, partial(self._on_event, entity_type, entity_id))

    def add_entity(self, entity: CamelModel, persist: bool = True) -> CamelModel:
        """Place an entity in the workspace and subscribe it.

        Args:
            entity: Team member, team or work item model
            persist: Schedule a write of the full entity

        Returns:
            The entity with its derived fields filled in
        """
        entity_type = entity_type_of(entity)
        self.workspace.put(entity)
        self.attach(entity_type, entity.id)

        derived = self._own_derived_patch(entity_type, entity.id)
        if derived:
            entity = self.workspace.apply_patch(entity_type, entity.id, derived)

        if persist:
            data = entity.to_data()
            self.gateway.schedule(entity_type, entity.id, data, list(data))

        logger.info("entity_added", entity_type=entity_type.value, entity_id=entity.id, persist=persist)
        return entity

    def remove_entity(self, entity_type: EntityType, entity_id: str) -> Optional[CamelModel]:
        """Unsubscribe an entity, drop its pending writes, guard state and edges.

        Milestones connected to a removed work item get their totals rolled up
        again without it.
        """
        entity_type = EntityType(entity_type)
        self.bus.unsubscribe(entity_id)
        self.guard.forget(entity_id)
        self.gateway.cancel_entity(entity_id)
        milestones = self.workspace.milestones_of(entity_id)
        self.workspace.drop_edges_of(entity_id)
        removed = self.workspace.remove(entity_type, entity_id) if self.workspace.holds(entity_type) else None
        for milestone in milestones:
            self.refresh_milestone(milestone.id)
        logger.info("entity_removed", entity_type=entity_type.value, entity_id=entity_id)
        return removed

    async def delete_entity(self, entity_type: EntityType, entity_id: str) -> bool:
        """Remove an entity locally and delete it from the store."""
        self.remove_entity(entity_type, entity_id)
        return await self.gateway.delete(entity_type, entity_id)

    async def load(self, entity_type: EntityType, entity_id: str) -> Optional[CamelModel]:
        """Read an entity from the store into the workspace and subscribe it.

        Returns:
            The loaded entity, or None if missing, blacklisted or invalid
        """
        entity_type = EntityType(entity_type)
        model = ENTITY_MODELS.get(entity_type)
        if model is None:
            raise KeyError(f"Workspace does not hold {entity_type.value} entities")

        data = await self.gateway.refresh(entity_type, entity_id)
        if data is None:
            return None
        if entity_type in WORK_ITEM_TYPES:
            data = {**data, "type": entity_type.value}

        try:
            entity = model.model_validate(data)
        except ValidationError as e:
            logger.error(
                "entity_load_invalid",
                entity_type=entity_type.value,
                entity_id=entity_id,
                errors=e.error_count(),
            )
            self.notifier.error(
                f"Stored {entity_type.value} could not be read",
                entity_type=entity_type.value,
                entity_id=entity_id,
            )
            return None

        self.workspace.put(entity)
        self.attach(entity_type, entity_id)
        return entity

    # =========================================================================
    # Edits
    # =========================================================================

    def edit(self, entity_type: EntityType, entity_id: str, fields: Mapping[str, Any]) -> Optional[CamelModel]:
        """Apply a local edit and schedule its write.

        A member-side ``teamAllocationPercent`` edit is moved to the roster of
        the member's team; the member receives the mirrored value.

        Args:
            entity_type: Type of the edited entity
            entity_id: ID of the edited entity
            fields: camelCase fields to change

        Returns:
            The patched entity, or None for types the workspace does not hold

        Raises:
            KeyError: If the entity is not in the workspace
            pydantic.ValidationError: If the patched entity is invalid
        """
        entity_type = EntityType(entity_type)
        fields = dict(fields)

        if not self.workspace.holds(entity_type):
            if fields:
                self.gateway.schedule(entity_type, entity_id, fields, list(fields))
            return None

        if (
            entity_type == EntityType.TEAM_MEMBER
            and "teamAllocationPercent" in fields
            and self.workspace.team_of(entity_id) is not None
        ):
            percent = float(fields.pop("teamAllocationPercent"))
            team = redirect_member_allocation(self.workspace, entity_id, percent)
            if team is not None:
                logger.info(
                    "allocation_redirected_to_roster",
                    member_id=entity_id,
                    team_id=team.id,
                    allocation_percent=percent,
                )
                self._commit_local(EntityType.TEAM, team.id, ["roster"])

        return self._commit_local(entity_type, entity_id, list(fields), fields)

    def apply_derived(
        self,
        entity_type: EntityType,
        entity_id: str,
        patch: Mapping[str, Any],
        source: Optional[str] = None,
    ) -> Optional[CamelModel]:
        """Apply a patch computed by an event handler and schedule its write."""
        if not patch:
            return None
        entity = self.workspace.apply_patch(entity_type, entity_id, patch)
        self.gateway.schedule(entity_type, entity_id, dict(patch), list(patch))
        logger.debug(
            "derived_update",
            entity_type=EntityType(entity_type).value,
            entity_id=entity_id,
            fields=sorted(patch),
            source=source,
        )
        return entity

    def _own_derived_patch(self, entity_type: EntityType, entity_id: str) -> dict[str, Any]:
        if entity_type == EntityType.TEAM_MEMBER:
            return member_mirror_patch(self.workspace, entity_id, self.settings)
        if entity_type == EntityType.TEAM:
            return team_bandwidth_patch(self.workspace, entity_id, self.settings)
        if entity_type == EntityType.MILESTONE:
            return milestone_rollup_patch(self.workspace, entity_id)
        return {}

    def _commit_local(
        self,
        entity_type: EntityType,
        entity_id: str,
        changed: list[str],
        fields: Optional[Mapping[str, Any]] = None,
    ) -> CamelModel:
        """Patch the workspace, fold in derived fields and schedule one write."""
        if fields:
            entity = self.workspace.apply_patch(entity_type, entity_id, fields)
        else:
            entity = self.workspace.get(entity_type, entity_id)
            if entity is None:
                raise KeyError(f"{entity_type.value} {entity_id} not in workspace")

        derived = self._own_derived_patch(entity_type, entity_id)
        if derived:
            entity = self.workspace.apply_patch(entity_type, entity_id, derived)

        changed = list(dict.fromkeys([*changed, *derived]))
        if changed:
            data = entity.to_data()
            payload = {key: data[key] for key in changed if key in data}
            self.gateway.schedule(entity_type, entity_id, payload, changed)
        return entity

    # =========================================================================
    # Allocation
    # =========================================================================

    def set_member_allocation(
        self,
        work_item_id: str,
        team_id: str,
        member_id: str,
        hours: float,
    ) -> AvailabilityResult:
        """Set a member's hours on a work item under one team.

        Zero hours removes the member from the team allocation. Over-allocation
        is reported, never refused.

        Returns:
            Availability of the member over the work item's timeframe after
            the change
        """
        work_item = self._require_work_item(work_item_id)
        member = self.workspace.member(member_id)
        hours = max(0.0, hours)

        allocations = [allocation.to_data() for allocation in work_item.team_allocations]
        team_allocation = next((a for a in allocations if a["teamId"] == team_id), None)
        if team_allocation is None:
            team = self.workspace.team(team_id)
            team_allocation = {
                "teamId": team_id,
                "teamName": team.title if team else "",
                "requestedHours": 0.0,
                "allocatedMembers": [],
            }
            allocations.append(team_allocation)

        members = [m for m in team_allocation["allocatedMembers"] if m["memberId"] != member_id]
        if hours > 0:
            members.append({
                "memberId": member_id,
                "name": member.title if member else "",
                "hours": hours,
            })
        team_allocation["allocatedMembers"] = members

        work_item = self.edit(work_item.type, work_item.id, {"teamAllocations": allocations})
        return self._allocation_verdict(work_item, member_id)

    def allocate_team(self, work_item_id: str, team_id: str, requested_hours: float) -> WorkItem:
        """Request hours from a team, split across its roster by allocation percent."""
        work_item = self._require_work_item(work_item_id)
        team = self.workspace.team(team_id)
        if team is None:
            raise KeyError(f"team {team_id} not in workspace")

        split = split_requested_hours(team.roster, requested_hours)
        for allocation in split:
            member = self.workspace.member(allocation.member_id)
            if member is not None:
                allocation.name = member.title

        allocations = [a.to_data() for a in work_item.team_allocations if a.team_id != team_id]
        allocations.append({
            "teamId": team_id,
            "teamName": team.title,
            "teamBandwidth": team.bandwidth,
            "requestedHours": max(0.0, requested_hours),
            "allocatedMembers": [a.to_data() for a in split if a.hours > 0],
        })
        return self.edit(work_item.type, work_item.id, {"teamAllocations": allocations})

    def _require_work_item(self, work_item_id: str) -> WorkItem:
        work_item = self.workspace.work_item(work_item_id)
        if work_item is None:
            raise KeyError(f"work item {work_item_id} not in workspace")
        return work_item

    def _allocation_verdict(self, work_item: WorkItem, member_id: str) -> AvailabilityResult:
        if work_item.timeframe is not None:
            start, end = work_item.timeframe.start_date, work_item.timeframe.end_date
        else:
            start, end = default_timeframe(self.aggregator.default_season())

        result = self.check_member_availability(member_id, start, end)
        if result.over_allocated_by > 0:
            self.notifier.warning(
                f"Member is over-allocated by {result.over_allocated_by:g}h",
                member_id=member_id,
                work_item_id=work_item.id,
            )
        return result

    def check_member_availability(
        self,
        member_id: str,
        window_start: DateLike,
        window_end: DateLike,
        exclude_hours: float = 0.0,
        today: Optional[date] = None,
    ) -> AvailabilityResult:
        return self.aggregator.check_member_availability(member_id, window_start, window_end, exclude_hours, today)

    def member_report(self, member_id: str, today: Optional[date] = None) -> Optional[MemberAllocationReport]:
        return self.aggregator.member_report(member_id, today)

    def conflicts(self, today: Optional[date] = None) -> list[MemberAllocationReport]:
        return self.aggregator.conflicts(today)

    def cost_summary(self, work_item_id: str) -> CostSummary:
        work_item = self._require_work_item(work_item_id)
        members = {member.id: member for member in self.workspace.members}
        return calculate_cost_summary(work_item, members)

    def milestone_metrics(self, milestone_id: str) -> MilestoneMetrics:
        """Cost, value and status counts of the work items connected to a milestone."""
        if self.workspace.milestone(milestone_id) is None:
            raise KeyError(f"milestone {milestone_id} not in workspace")
        return milestone_metrics(self.workspace, milestone_id)

    def refresh_milestone(self, milestone_id: str) -> Optional[CamelModel]:
        """Roll the connected work items up into the milestone totals."""
        patch = milestone_rollup_patch(self.workspace, milestone_id)
        return self.apply_derived(EntityType.MILESTONE, milestone_id, patch, source="rollup")

    # =========================================================================
    # Edges
    # =========================================================================

    async def connect(
        self,
        entity_type: EntityType,
        source_id: str,
        target_id: str,
        edge_type: str = "",
        properties: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Edge]:
        """Create an edge in the store and track it locally.

        Args:
            entity_type: Node type the edge is created under
            source_id: Source node
            target_id: Target node
            edge_type: Relationship type
            properties: Extra edge properties

        Returns:
            The stored edge, or None when the store refused it
        """
        edge = Edge(source=source_id, target=target_id, type=edge_type, properties=dict(properties or {}))
        stored = await self.gateway.create_edge(entity_type, edge)
        if stored is None:
            return None
        self.workspace.add_edge(stored)
        self._refresh_milestones_at(stored)
        return stored

    async def disconnect(self, entity_type: EntityType, edge_id: str) -> bool:
        """Delete an edge by id from the store and the workspace."""
        if not await self.gateway.delete_edge(entity_type, edge_id):
            return False
        edge = self.workspace.remove_edge(edge_id)
        if edge is not None:
            self._refresh_milestones_at(edge)
        return True

    def _refresh_milestones_at(self, edge: Edge) -> None:
        for node_id in (edge.source, edge.target):
            if self.workspace.milestone(node_id) is not None:
                self.refresh_milestone(node_id)

    # =========================================================================
    # Bus and shutdown
    # =========================================================================

    def _on_event(self, subscriber_type: EntityType, subscriber_id: str, event: UpdateEvent) -> None:
        if not self.guard.should_process(subscriber_id, event):
            return
        self.dispatcher.dispatch(subscriber_type, subscriber_id, event)

    async def flush(self) -> list[WriteResult]:
        """Commit every pending write, including writes derived from them.

        Writes run back to back, so the loop guard is drained for the duration:
        every derived event is handled and the saved entities agree.
        """
        results: list[WriteResult] = []
        with self.guard.draining():
            for _ in range(MAX_FLUSH_ROUNDS):
                if not self.scheduler.pending_keys:
                    break
                results.extend(await self.gateway.commit_all())
        if self.scheduler.pending_keys:
            logger.warning("flush_round_limit_reached", pending=self.scheduler.pending_keys)
        return results

    async def close(self) -> list[WriteResult]:
        """Flush pending writes and cancel whatever is left."""
        results = await self.flush()
        self.scheduler.cancel_all()
        return results
