"""Update events carried by the in-process bus."""
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class UpdateEvent:
    """Field X of entity Y changed.

    Ephemeral: never persisted, never replayed. Subscribers must treat the
    payload as a partial patch, not a full snapshot.

    Attributes:
        publisher_type: Entity type of the publisher (EntityType value)
        publisher_id: ID of the entity that changed
        relevant_field_ids: Changed fields the receiving subscriber cares about
        payload: Entity data (camelCase keys) at publish time
        timestamp: Wall-clock time of the publish call (seconds)
        source: Free-form origin tag (e.g. "gateway", "roster-sync")
    """

    publisher_type: str
    publisher_id: str
    relevant_field_ids: tuple[str, ...]
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    source: Optional[str] = None

    def touches(self, *field_ids: str) -> bool:
        """Check whether any of the given fields is relevant."""
        return any(field_id in self.relevant_field_ids for field_id in field_ids)
