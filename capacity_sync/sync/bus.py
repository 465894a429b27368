"""In-process update bus.

Routes "field X of entity Y changed" to every registered subscriber whose
manifest listens to that (publisher type, field) pair.

Delivery is synchronous and follows registration order within one publish
call. A handler that raises is logged and skipped; the remaining
subscribers still receive the event.

Usage:
    bus = UpdateBus()
    bus.subscribe("member-1", EntityType.TEAM_MEMBER, on_update)
    bus.publish(EntityType.TEAM, "team-1", team.to_data(), ["roster"])
"""
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

import structlog

from capacity_sync.manifest import ManifestRegistry
from capacity_sync.schemas.entities import EntityType
from capacity_sync.schemas.events import UpdateEvent

logger = structlog.get_logger()

UpdateHandler = Callable[[UpdateEvent], None]


@dataclass
class Subscription:
    """A registered subscriber.

    Attributes:
        subscriber_id: Entity id of the subscriber
        subscriber_type: Entity type, selects the manifest consulted
        handler: Called with each relevant event
        publisher_ids: Only receive events from these publishers (None = any)
        active: Cleared on unsubscribe
    """

    subscriber_id: str
    subscriber_type: EntityType
    handler: UpdateHandler
    publisher_ids: Optional[frozenset[str]] = None
    active: bool = True

    def accepts_publisher(self, publisher_id: str) -> bool:
        return self.publisher_ids is None or publisher_id in self.publisher_ids


@dataclass
class PublishResult:
    """Outcome of one publish call."""

    publisher_type: str
    publisher_id: str
    published_field_ids: tuple[str, ...] = ()
    dropped_field_ids: tuple[str, ...] = ()
    events: list[UpdateEvent] = field(default_factory=list)
    delivered_to: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class UpdateBus:
    """Manifest-scoped publish/subscribe channel."""

    def __init__(
        self,
        registry: Optional[ManifestRegistry] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize bus.

        Args:
            registry: Manifest registry used for routing
            clock: Time source for event timestamps
        """
        self._registry = registry or ManifestRegistry()
        self._clock = clock
        self._subscriptions: dict[str, Subscription] = {}

    @property
    def registry(self) -> ManifestRegistry:
        return self._registry

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        subscriber_id: str,
        subscriber_type: EntityType,
        handler: UpdateHandler,
        publisher_ids: Optional[Iterable[str]] = None,
    ) -> Subscription:
        """Register a subscriber, replacing a previous registration of the same id.

        A replaced registration keeps its position in the delivery order.
        """
        subscription = Subscription(
            subscriber_id=subscriber_id,
            subscriber_type=EntityType(subscriber_type),
            handler=handler,
            publisher_ids=frozenset(publisher_ids) if publisher_ids is not None else None,
        )
        previous = self._subscriptions.get(subscriber_id)
        if previous is not None:
            previous.active = False
        self._subscriptions[subscriber_id] = subscription

        logger.debug(
            "bus_subscribed",
            subscriber_id=subscriber_id,
            subscriber_type=subscription.subscriber_type.value,
        )
        return subscription

    def unsubscribe(self, subscriber_id: str) -> bool:
        """Remove a subscriber. Returns False if it was not registered."""
        subscription = self._subscriptions.pop(subscriber_id, None)
        if subscription is None:
            return False
        subscription.active = False
        logger.debug("bus_unsubscribed", subscriber_id=subscriber_id)
        return True

    def is_subscribed(self, subscriber_id: str) -> bool:
        return subscriber_id in self._subscriptions

    @property
    def subscriber_ids(self) -> list[str]:
        return list(self._subscriptions)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def publish(
        self,
        publisher_type: EntityType,
        publisher_id: str,
        entity_data: Mapping[str, Any],
        changed_field_ids: Iterable[str],
        source: Optional[str] = None,
    ) -> PublishResult:
        """Broadcast a change to every interested subscriber.

        Args:
            publisher_type: Entity type of the changed entity
            publisher_id: ID of the changed entity
            entity_data: Entity data (camelCase keys) after the change
            changed_field_ids: Fields that changed
            source: Origin tag carried on the event

        Returns:
            PublishResult listing the subscribers reached
        """
        publisher_type_value = str(getattr(publisher_type, "value", publisher_type))
        changed = list(dict.fromkeys(changed_field_ids))
        published = tuple(self._registry.published_fields(publisher_type, changed))
        result = PublishResult(
            publisher_type=publisher_type_value,
            publisher_id=publisher_id,
            published_field_ids=published,
            dropped_field_ids=tuple(f for f in changed if f not in published),
        )

        self._registry.describe_update(publisher_type, publisher_id, changed)
        if not published:
            return result

        timestamp = self._clock()
        payload = dict(entity_data)

        # Snapshot: subscriptions changed by a handler apply to the next publish
        for subscription in list(self._subscriptions.values()):
            if not subscription.accepts_publisher(publisher_id):
                continue
            relevant = self._registry.relevant_fields(
                subscription.subscriber_type, publisher_type, published
            )
            if not relevant:
                continue
            if not subscription.active:
                logger.debug(
                    "bus_delivery_skipped_inactive",
                    subscriber_id=subscription.subscriber_id,
                    publisher_id=publisher_id,
                )
                continue

            event = UpdateEvent(
                publisher_type=publisher_type_value,
                publisher_id=publisher_id,
                relevant_field_ids=relevant,
                payload=payload,
                timestamp=timestamp,
                source=source,
            )
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(
                    "bus_handler_failed",
                    subscriber_id=subscription.subscriber_id,
                    publisher_id=publisher_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.failed.append(subscription.subscriber_id)
                continue

            result.events.append(event)
            result.delivered_to.append(subscription.subscriber_id)

        logger.debug(
            "bus_published",
            publisher_type=publisher_type_value,
            publisher_id=publisher_id,
            field_ids=list(published),
            delivered_to=result.delivered_to,
        )
        return result
