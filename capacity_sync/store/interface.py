"""Graph store contract.

The engine talks to its backing graph database only through this
protocol. Implementations raise ``StoreError`` for transient I/O failures;
the persistence gateway is the only place that catches it.
"""
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from capacity_sync.schemas.entities import Edge


class StoreError(Exception):
    """Exception for failed store calls."""

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        message: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = message
        super().__init__(f"Store error on {entity_type} {entity_id}: {message}")


class EntityNotFoundError(StoreError):
    """The store has no node with the requested id."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(entity_type, entity_id, "not found")


@runtime_checkable
class GraphStore(Protocol):
    """Async node/edge store.

    Node data uses camelCase keys with composite fields JSON-encoded (see
    ``capacity_sync.store.codec``).
    """

    async def get_node(self, entity_type: str, entity_id: str) -> Optional[dict[str, Any]]:
        """Fetch a node, None when it does not exist."""
        ...

    async def update_node(self, entity_type: str, entity_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Merge fields into a node (creating it if needed) and return the stored data."""
        ...

    async def delete_node(self, entity_type: str, entity_id: str) -> None: ...

    async def create_edge(self, entity_type: str, edge: Edge) -> Edge:
        """Create a relationship and return it as stored (with its id)."""
        ...

    async def delete_edge(self, entity_type: str, edge_id: str) -> None:
        """Delete a relationship by id."""
        ...

    def is_blacklisted(self, entity_id: str) -> bool:
        """Check whether a node was deleted and must not be written or read again."""
        ...
