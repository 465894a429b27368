"""In-memory graph store.

Implements ``GraphStore`` with merge semantics on plain dicts. Used by the
test suite and local tools; supports failure injection and keeps a log of
every write.

Usage:
    store = InMemoryGraphStore()
    await store.update_node("team", "team-1", {"title": "Platform"})
    store.fail_next(2)  # the next two calls raise StoreError
"""
import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from capacity_sync.schemas.entities import Edge
from capacity_sync.store.interface import EntityNotFoundError, StoreError

logger = logging.getLogger(__name__)


@dataclass
class WriteLogEntry:
    """One ``update_node`` call as received by the store."""

    entity_type: str
    entity_id: str
    fields: dict[str, Any] = field(default_factory=dict)


class InMemoryGraphStore:
    """Dict-backed ``GraphStore``."""

    def __init__(self, nodes: Optional[Mapping[str, Mapping[str, Any]]] = None):
        """Initialize store.

        Args:
            nodes: Optional initial nodes keyed by id. Each node must carry
                a ``type`` key.
        """
        self._nodes: dict[str, dict[str, Any]] = {
            node_id: dict(data) for node_id, data in (nodes or {}).items()
        }
        self._edges: dict[str, Edge] = {}
        self._blacklist: set[str] = set()
        self._failures_left = 0
        self.writes: list[WriteLogEntry] = []

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def fail_next(self, count: int = 1) -> None:
        """Make the next ``count`` store calls raise StoreError."""
        self._failures_left = count

    def blacklist(self, entity_id: str) -> None:
        self._blacklist.add(entity_id)

    def node(self, entity_id: str) -> Optional[dict[str, Any]]:
        """Stored data of a node without going through the async API."""
        data = self._nodes.get(entity_id)
        return copy.deepcopy(data) if data is not None else None

    @property
    def edges(self) -> list[Edge]:
        return [edge.model_copy(deep=True) for edge in self._edges.values()]

    def _maybe_fail(self, entity_type: str, entity_id: str) -> None:
        if self._failures_left > 0:
            self._failures_left -= 1
            logger.debug(f"Injected store failure for {entity_type} {entity_id}")
            raise StoreError(entity_type, entity_id, "injected failure")

    # -------------------------------------------------------------------------
    # GraphStore
    # -------------------------------------------------------------------------

    async def get_node(self, entity_type: str, entity_id: str) -> Optional[dict[str, Any]]:
        self._maybe_fail(entity_type, entity_id)
        return self.node(entity_id)

    async def update_node(self, entity_type: str, entity_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        self._maybe_fail(entity_type, entity_id)
        self.writes.append(WriteLogEntry(entity_type, entity_id, dict(fields)))

        node = self._nodes.setdefault(entity_id, {"id": entity_id, "type": entity_type})
        node.update(copy.deepcopy(dict(fields)))
        logger.debug(f"Updated {entity_type} {entity_id}: {sorted(fields)}")
        return copy.deepcopy(node)

    async def delete_node(self, entity_type: str, entity_id: str) -> None:
        self._maybe_fail(entity_type, entity_id)
        if entity_id not in self._nodes:
            raise EntityNotFoundError(entity_type, entity_id)
        del self._nodes[entity_id]
        self._edges = {key: edge for key, edge in self._edges.items() if not edge.touches(entity_id)}
        self._blacklist.add(entity_id)

    async def create_edge(self, entity_type: str, edge: Edge) -> Edge:
        self._maybe_fail(entity_type, f"{edge.source}->{edge.target}")
        stored = edge.model_copy(update={"id": edge.id or f"edge-{uuid.uuid4().hex[:12]}"}, deep=True)
        self._edges[stored.id] = stored
        logger.debug(f"Created edge {stored.id} {stored.source}->{stored.target}")
        return stored.model_copy(deep=True)

    async def delete_edge(self, entity_type: str, edge_id: str) -> None:
        self._maybe_fail(entity_type, edge_id)
        if self._edges.pop(edge_id, None) is None:
            raise EntityNotFoundError("edge", edge_id)

    def is_blacklisted(self, entity_id: str) -> bool:
        return entity_id in self._blacklist
