"""Debounced persistence gateway.

Every write to the graph store goes through here:

1. Local edits are debounced per key (entity + changed field group)
2. Deleted (blacklisted) entities are never written or read again
3. A successful write is published on the update bus
4. A failed write keeps the optimistic local state and notifies the user
5. Configured entity types get a redundant write shortly after
6. Edges are created and deleted under the same failure handling

Usage:
    gateway = PersistenceGateway(store, bus, guard)
    key = gateway.schedule("team", "team-1", {"roster": roster}, ["roster"])
    result = await gateway.commit_now(key)
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import structlog

from capacity_sync.config import Settings, get_settings
from capacity_sync.notifications import LogNotifier, Notifier
from capacity_sync.schemas.entities import Edge
from capacity_sync.store.codec import decode_fields, encode_fields
from capacity_sync.store.interface import GraphStore
from capacity_sync.sync.bus import UpdateBus
from capacity_sync.sync.loop_guard import LoopGuard
from capacity_sync.sync.scheduler import DebounceScheduler

logger = structlog.get_logger()


@dataclass
class WriteResult:
    """Outcome of one store write."""

    entity_type: str
    entity_id: str
    success: bool
    changed_field_ids: tuple[str, ...] = ()
    skipped: bool = False
    error: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    delivered_to: list[str] = field(default_factory=list)


def _type_value(entity_type) -> str:
    return str(getattr(entity_type, "value", entity_type))


class PersistenceGateway:
    """Debounced, fault-tolerant writes to the graph store."""

    def __init__(
        self,
        store: GraphStore,
        bus: UpdateBus,
        guard: LoopGuard,
        scheduler: Optional[DebounceScheduler] = None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize gateway.

        Args:
            store: Backing graph store
            bus: Bus to publish successful writes on
            guard: Loop guard whose updating flag is held during writes
            scheduler: Debounce scheduler (created from settings if omitted)
            notifier: Receives user-visible failure messages
            settings: Engine settings
        """
        self._settings = settings or get_settings()
        self._store = store
        self._bus = bus
        self._guard = guard
        self._scheduler = scheduler or DebounceScheduler(settings=self._settings)
        self._notifier = notifier or LogNotifier()
        self._explicit_types = set(self._settings.explicit_save_entity_types)
        self._entity_keys: dict[str, set[str]] = {}

    @property
    def scheduler(self) -> DebounceScheduler:
        return self._scheduler

    @staticmethod
    def make_key(entity_type, entity_id: str, changed_field_ids: Iterable[str]) -> str:
        """Default debounce key: one timer per entity and changed field group."""
        return f"{_type_value(entity_type)}:{entity_id}:{'+'.join(sorted(set(changed_field_ids)))}"

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def schedule(
        self,
        entity_type,
        entity_id: str,
        fields: Mapping[str, Any],
        changed_field_ids: Iterable[str],
        delay_ms: Optional[int] = None,
        key: Optional[str] = None,
    ) -> str:
        """Debounce a write; a later schedule of the same key replaces it.

        Returns:
            The debounce key
        """
        changed = tuple(dict.fromkeys(changed_field_ids))
        key = key or self.make_key(entity_type, entity_id, changed)
        payload = dict(fields)

        async def _commit() -> WriteResult:
            self._release_key(entity_id, key)
            return await self.write(entity_type, entity_id, payload, changed)

        self._scheduler.schedule(key, _commit, delay_ms)
        self._entity_keys.setdefault(entity_id, set()).add(key)
        return key

    def _release_key(self, entity_id: str, key: str) -> None:
        keys = self._entity_keys.get(entity_id)
        if keys is None:
            return
        keys.discard(key)
        if not keys:
            del self._entity_keys[entity_id]

    def pending_keys_of(self, entity_id: str) -> list[str]:
        return sorted(self._entity_keys.get(entity_id, ()))

    async def commit_now(self, key: str) -> Optional[WriteResult]:
        """Run a pending write immediately. None if nothing was pending."""
        return await self._scheduler.flush(key)

    def cancel(self, key: str) -> bool:
        cancelled = self._scheduler.cancel(key)
        for entity_id in [e for e, keys in self._entity_keys.items() if key in keys]:
            self._release_key(entity_id, key)
        return cancelled

    def cancel_entity(self, entity_id: str) -> int:
        """Cancel every pending write of an entity."""
        keys = self._entity_keys.pop(entity_id, set())
        return sum(1 for key in keys if self._scheduler.cancel(key))

    async def commit_all(self) -> list[WriteResult]:
        """Run every pending write now, in scheduling order."""
        results = []
        for key in self._scheduler.pending_keys:
            result = await self._scheduler.flush(key)
            if isinstance(result, WriteResult):
                results.append(result)
        return results

    # -------------------------------------------------------------------------
    # Store access
    # -------------------------------------------------------------------------

    async def write(
        self,
        entity_type,
        entity_id: str,
        fields: Mapping[str, Any],
        changed_field_ids: Iterable[str],
    ) -> WriteResult:
        """Write fields now and publish the change on success."""
        type_value = _type_value(entity_type)
        changed = tuple(dict.fromkeys(changed_field_ids))

        if self._store.is_blacklisted(entity_id):
            logger.info("write_skipped_blacklisted", entity_type=type_value, entity_id=entity_id)
            return WriteResult(type_value, entity_id, success=False, changed_field_ids=changed, skipped=True)

        self._guard.begin_update(entity_id)
        try:
            stored = await self._store.update_node(type_value, entity_id, encode_fields(type_value, fields))
        except Exception as e:
            logger.error(
                "write_failed",
                entity_type=type_value,
                entity_id=entity_id,
                field_ids=list(changed),
                error=str(e),
                error_type=type(e).__name__,
            )
            self._notifier.error(
                f"Failed to save {type_value} changes",
                entity_type=type_value,
                entity_id=entity_id,
                error=str(e),
            )
            return WriteResult(type_value, entity_id, success=False, changed_field_ids=changed, error=str(e))
        finally:
            self._guard.end_update(entity_id)

        data = decode_fields(type_value, stored)
        published = self._bus.publish(entity_type, entity_id, data, changed, source="gateway")

        logger.info(
            "write_committed",
            entity_type=type_value,
            entity_id=entity_id,
            field_ids=list(changed),
            delivered_to=published.delivered_to,
        )

        if type_value in self._explicit_types:
            self._schedule_explicit_save(type_value, entity_id, dict(fields))

        return WriteResult(
            type_value,
            entity_id,
            success=True,
            changed_field_ids=changed,
            data=data,
            delivered_to=published.delivered_to,
        )

    def _schedule_explicit_save(self, entity_type: str, entity_id: str, fields: dict[str, Any]) -> None:
        async def _save() -> None:
            if self._store.is_blacklisted(entity_id):
                return
            try:
                await self._store.update_node(entity_type, entity_id, encode_fields(entity_type, fields))
            except Exception as e:
                logger.warning(
                    "explicit_save_failed",
                    entity_type=entity_type,
                    entity_id=entity_id,
                    error=str(e),
                )
                self._notifier.warning(
                    f"Could not confirm {entity_type} save",
                    entity_type=entity_type,
                    entity_id=entity_id,
                )
                return
            logger.debug("explicit_save_committed", entity_type=entity_type, entity_id=entity_id)

        self._scheduler.schedule(
            f"explicit-save:{entity_type}:{entity_id}",
            _save,
            self._settings.explicit_save_delay_ms,
        )

    async def refresh(self, entity_type, entity_id: str) -> Optional[dict[str, Any]]:
        """Read an entity back from the store with composite fields decoded.

        Returns:
            Decoded entity data, or None if blacklisted, missing or unreadable
        """
        type_value = _type_value(entity_type)
        if self._store.is_blacklisted(entity_id):
            logger.info("refresh_skipped_blacklisted", entity_type=type_value, entity_id=entity_id)
            return None
        try:
            stored = await self._store.get_node(type_value, entity_id)
        except Exception as e:
            logger.warning("refresh_failed", entity_type=type_value, entity_id=entity_id, error=str(e))
            self._notifier.warning(
                f"Could not refresh {type_value}",
                entity_type=type_value,
                entity_id=entity_id,
            )
            return None
        if stored is None:
            return None
        return decode_fields(type_value, stored)

    async def delete(self, entity_type, entity_id: str) -> bool:
        """Delete an entity from the store after dropping its pending writes."""
        type_value = _type_value(entity_type)
        self.cancel_entity(entity_id)
        self._scheduler.cancel(f"explicit-save:{type_value}:{entity_id}")
        try:
            await self._store.delete_node(type_value, entity_id)
        except Exception as e:
            logger.error("delete_failed", entity_type=type_value, entity_id=entity_id, error=str(e))
            self._notifier.error(
                f"Failed to delete {type_value}",
                entity_type=type_value,
                entity_id=entity_id,
                error=str(e),
            )
            return False
        logger.info("entity_deleted", entity_type=type_value, entity_id=entity_id)
        return True

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    async def create_edge(self, entity_type, edge: Edge) -> Optional[Edge]:
        """Create a relationship in the store.

        Returns:
            The stored edge (with its id), or None when an end is deleted or
            the store call failed
        """
        type_value = _type_value(entity_type)
        if self._store.is_blacklisted(edge.source) or self._store.is_blacklisted(edge.target):
            logger.info("edge_skipped_blacklisted", source=edge.source, target=edge.target)
            return None
        try:
            stored = await self._store.create_edge(type_value, edge)
        except Exception as e:
            logger.error(
                "edge_create_failed",
                entity_type=type_value,
                source=edge.source,
                target=edge.target,
                error=str(e),
            )
            self._notifier.error(
                f"Failed to connect {type_value}",
                entity_type=type_value,
                source=edge.source,
                target=edge.target,
                error=str(e),
            )
            return None
        logger.info("edge_created", entity_type=type_value, edge_id=stored.id, source=stored.source, target=stored.target)
        return stored

    async def delete_edge(self, entity_type, edge_id: str) -> bool:
        """Delete a relationship by id. Returns False when the store call failed."""
        type_value = _type_value(entity_type)
        try:
            await self._store.delete_edge(type_value, edge_id)
        except Exception as e:
            logger.error("edge_delete_failed", entity_type=type_value, edge_id=edge_id, error=str(e))
            self._notifier.error(
                f"Failed to disconnect {type_value}",
                entity_type=type_value,
                edge_id=edge_id,
                error=str(e),
            )
            return False
        logger.info("edge_deleted", entity_type=type_value, edge_id=edge_id)
        return True
