"""Local-first entity state.

The workspace holds the latest local version of every entity on the canvas.
Edits land here first (optimistic) and reach the store later through the
persistence gateway.
"""
from typing import Any, Mapping, Optional

import structlog

from capacity_sync.schemas.entities import (
    WORK_ITEM_TYPES,
    CamelModel,
    Edge,
    EntityType,
    Milestone,
    RosterEntry,
    Team,
    TeamMember,
    WorkItem,
)

logger = structlog.get_logger()


def entity_type_of(entity: CamelModel) -> EntityType:
    """Entity type of a model instance."""
    if isinstance(entity, TeamMember):
        return EntityType.TEAM_MEMBER
    if isinstance(entity, Team):
        return EntityType.TEAM
    if isinstance(entity, WorkItem):
        return entity.type
    if isinstance(entity, Milestone):
        return EntityType.MILESTONE
    raise TypeError(f"Unsupported entity model: {type(entity).__name__}")


class Workspace:
    """In-memory map of team members, teams, work items, milestones and edges."""

    def __init__(self) -> None:
        self._members: dict[str, TeamMember] = {}
        self._teams: dict[str, Team] = {}
        self._work_items: dict[str, WorkItem] = {}
        self._milestones: dict[str, Milestone] = {}
        self._edges: dict[str, Edge] = {}

    def _bucket(self, entity_type: EntityType) -> dict[str, Any]:
        entity_type = EntityType(entity_type)
        if entity_type == EntityType.TEAM_MEMBER:
            return self._members
        if entity_type == EntityType.TEAM:
            return self._teams
        if entity_type in WORK_ITEM_TYPES:
            return self._work_items
        if entity_type == EntityType.MILESTONE:
            return self._milestones
        raise KeyError(f"Workspace does not hold {entity_type.value} entities")

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    @property
    def members(self) -> list[TeamMember]:
        return list(self._members.values())

    @property
    def teams(self) -> list[Team]:
        return list(self._teams.values())

    @property
    def work_items(self) -> list[WorkItem]:
        return list(self._work_items.values())

    @property
    def milestones(self) -> list[Milestone]:
        return list(self._milestones.values())

    def member(self, member_id: str) -> Optional[TeamMember]:
        return self._members.get(member_id)

    def team(self, team_id: str) -> Optional[Team]:
        return self._teams.get(team_id)

    def work_item(self, work_item_id: str) -> Optional[WorkItem]:
        return self._work_items.get(work_item_id)

    def milestone(self, milestone_id: str) -> Optional[Milestone]:
        return self._milestones.get(milestone_id)

    def get(self, entity_type: EntityType, entity_id: str) -> Optional[CamelModel]:
        return self._bucket(entity_type).get(entity_id)

    def holds(self, entity_type: EntityType) -> bool:
        """Check whether the workspace keeps entities of a type."""
        try:
            self._bucket(entity_type)
        except (KeyError, ValueError):
            return False
        return True

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def put(self, entity: CamelModel) -> None:
        """Insert or replace an entity."""
        self._bucket(entity_type_of(entity))[entity.id] = entity

    def remove(self, entity_type: EntityType, entity_id: str) -> Optional[CamelModel]:
        return self._bucket(entity_type).pop(entity_id, None)

    def apply_patch(
        self,
        entity_type: EntityType,
        entity_id: str,
        fields: Mapping[str, Any],
    ) -> CamelModel:
        """Merge camelCase fields into an entity and revalidate it.

        Raises:
            KeyError: If the entity is not in the workspace.
            pydantic.ValidationError: If the patched entity is invalid.
        """
        bucket = self._bucket(entity_type)
        current = bucket.get(entity_id)
        if current is None:
            raise KeyError(f"{EntityType(entity_type).value} {entity_id} not in workspace")

        patched = type(current).model_validate({**current.to_data(), **fields})
        bucket[entity_id] = patched
        logger.debug(
            "workspace_patched",
            entity_type=EntityType(entity_type).value,
            entity_id=entity_id,
            fields=sorted(fields),
        )
        return patched

    # -------------------------------------------------------------------------
    # Roster lookups
    # -------------------------------------------------------------------------

    def team_of(self, member_id: str) -> Optional[Team]:
        """Team whose roster holds the member.

        The member's own ``team_id`` is preferred when that team lists it.
        """
        member = self._members.get(member_id)
        if member is not None and member.team_id:
            team = self._teams.get(member.team_id)
            if team is not None and team.roster_entry(member_id) is not None:
                return team

        for team in self._teams.values():
            if team.roster_entry(member_id) is not None:
                return team
        return None

    def roster_entry_for(self, member_id: str) -> Optional[RosterEntry]:
        team = self.team_of(member_id)
        return team.roster_entry(member_id) if team is not None else None

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def add_edge(self, edge: Edge) -> None:
        self._edges[edge.id] = edge

    def remove_edge(self, edge_id: str) -> Optional[Edge]:
        return self._edges.pop(edge_id, None)

    def edges_of(self, node_id: str) -> list[Edge]:
        return [edge for edge in self._edges.values() if edge.touches(node_id)]

    def drop_edges_of(self, node_id: str) -> list[Edge]:
        """Remove every edge touching a node and return them."""
        dropped = self.edges_of(node_id)
        for edge in dropped:
            del self._edges[edge.id]
        return dropped

    def connected_work_items(self, milestone_id: str) -> list[WorkItem]:
        """Work items on the other end of the milestone's edges, in edge order."""
        work_items: dict[str, WorkItem] = {}
        for edge in self.edges_of(milestone_id):
            work_item = self._work_items.get(edge.other_end(milestone_id))
            if work_item is not None:
                work_items.setdefault(work_item.id, work_item)
        return list(work_items.values())

    def milestones_of(self, node_id: str) -> list[Milestone]:
        """Milestones connected to a node by an edge."""
        milestones: dict[str, Milestone] = {}
        for edge in self.edges_of(node_id):
            milestone = self._milestones.get(edge.other_end(node_id))
            if milestone is not None:
                milestones.setdefault(milestone.id, milestone)
        return list(milestones.values())
