"""Manifest registry.

Answers the routing questions of the update bus: which fields a type
publishes, which publisher fields a subscriber type cares about, and which
subscriber types an update reaches.

Usage:
    registry = ManifestRegistry()
    if registry.does_publish("team", "roster"):
        subscribers = registry.subscribers_for("team", "roster")
"""
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

import structlog

from capacity_sync.manifest.definitions import MANIFESTS, EntityManifest
from capacity_sync.manifest.fields import FieldDescriptor
from capacity_sync.schemas.entities import EntityType

logger = structlog.get_logger()


@dataclass(frozen=True)
class ManifestIssue:
    """A configuration smell found by ``ManifestRegistry.validate``."""

    subscriber_type: EntityType
    publisher_type: EntityType
    field_id: str
    message: str


def _as_type(value) -> Optional[EntityType]:
    try:
        return EntityType(value)
    except ValueError:
        return None


class ManifestRegistry:
    """Lookup facade over the manifests of every entity type.

    Unknown entity types are never an error: they publish nothing and
    subscribe to nothing.
    """

    def __init__(self, manifests: Optional[Mapping[EntityType, EntityManifest]] = None):
        self._manifests: Mapping[EntityType, EntityManifest] = (
            MANIFESTS if manifests is None else manifests
        )

    def manifest(self, entity_type) -> Optional[EntityManifest]:
        entity_type = _as_type(entity_type)
        if entity_type is None:
            return None
        return self._manifests.get(entity_type)

    @property
    def entity_types(self) -> list[EntityType]:
        return list(self._manifests)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def does_publish(self, entity_type, field_id: str) -> bool:
        """Check whether an entity type publishes a field."""
        return self.field_details(entity_type, field_id) is not None

    def field_details(self, entity_type, field_id: str) -> Optional[FieldDescriptor]:
        """Descriptor of a published field, None when not published."""
        manifest = self.manifest(entity_type)
        if manifest is None:
            return None
        return manifest.published_field(field_id)

    def is_critical(self, entity_type, field_id: str) -> bool:
        details = self.field_details(entity_type, field_id)
        return bool(details and details.critical)

    def published_fields(self, entity_type, field_ids: Iterable[str]) -> list[str]:
        """Subset of field ids the entity type publishes, in input order."""
        return [field_id for field_id in field_ids if self.does_publish(entity_type, field_id)]

    # -------------------------------------------------------------------------
    # Subscribing
    # -------------------------------------------------------------------------

    def does_subscribe_to(self, subscriber_type, publisher_type) -> bool:
        """Check whether a subscriber type listens to any field of a publisher type."""
        return bool(self.subscribed_fields(subscriber_type, publisher_type))

    def subscribed_fields(self, subscriber_type, publisher_type) -> tuple[str, ...]:
        """Publisher field ids a subscriber type listens to."""
        manifest = self.manifest(subscriber_type)
        publisher = _as_type(publisher_type)
        if manifest is None or publisher is None:
            return ()
        return tuple(manifest.subscribes.get(publisher, ()))

    def relevant_fields(self, subscriber_type, publisher_type, changed_field_ids: Iterable[str]) -> tuple[str, ...]:
        """Changed fields a subscriber type listens to, in input order."""
        subscribed = set(self.subscribed_fields(subscriber_type, publisher_type))
        return tuple(field_id for field_id in changed_field_ids if field_id in subscribed)

    def subscribers_for(self, publisher_type, field_id: str) -> list[EntityType]:
        """Subscriber types reached when a publisher type changes a field.

        A field the publisher does not publish reaches nobody.
        """
        if not self.does_publish(publisher_type, field_id):
            return []
        return [
            subscriber_type
            for subscriber_type in self._manifests
            if field_id in self.subscribed_fields(subscriber_type, publisher_type)
        ]

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def describe_update(self, entity_type, entity_id: str, changed_field_ids: Iterable[str]) -> dict:
        """Log and return what an update would touch.

        Returns:
            Dict with the published, unpublished and critical fields and
            the subscriber types reached per field
        """
        changed = list(changed_field_ids)
        published = self.published_fields(entity_type, changed)
        description = {
            "entity_type": str(getattr(entity_type, "value", entity_type)),
            "entity_id": entity_id,
            "published": published,
            "unpublished": [field_id for field_id in changed if field_id not in published],
            "critical": [field_id for field_id in published if self.is_critical(entity_type, field_id)],
            "subscribers": {
                field_id: [subscriber.value for subscriber in self.subscribers_for(entity_type, field_id)]
                for field_id in published
            },
        }
        logger.debug("manifest_update_described", **description)
        return description

    def validate(self) -> list[ManifestIssue]:
        """Find subscriptions that can never fire.

        A subscription fires only when the publisher type declares the
        field, so subscribing to an undeclared field is a silent no-op.
        """
        issues = []
        for subscriber_type, manifest in self._manifests.items():
            for publisher_type, field_ids in manifest.subscribes.items():
                if publisher_type not in self._manifests:
                    issues.append(
                        ManifestIssue(
                            subscriber_type=subscriber_type,
                            publisher_type=publisher_type,
                            field_id="*",
                            message=f"{publisher_type.value} has no manifest",
                        )
                    )
                    continue
                for field_id in field_ids:
                    if not self.does_publish(publisher_type, field_id):
                        issues.append(
                            ManifestIssue(
                                subscriber_type=subscriber_type,
                                publisher_type=publisher_type,
                                field_id=field_id,
                                message=(
                                    f"{subscriber_type.value} subscribes to {publisher_type.value}.{field_id}, "
                                    f"which {publisher_type.value} does not publish"
                                ),
                            )
                        )

        for issue in issues:
            logger.warning(
                "manifest_issue",
                subscriber_type=issue.subscriber_type.value,
                publisher_type=issue.publisher_type.value,
                field_id=issue.field_id,
                message=issue.message,
            )
        return issues

    def to_mermaid(self) -> str:
        """Mermaid flowchart of the publish/subscribe graph.

        One edge per (publisher, subscriber) pair, labelled with the
        subscribed field ids.
        """
        lines = ["flowchart LR"]
        for entity_type in self._manifests:
            lines.append(f"    {entity_type.value}[{entity_type.value}]")
        for subscriber_type, manifest in self._manifests.items():
            for publisher_type, field_ids in manifest.subscribes.items():
                label = ", ".join(field_ids)
                lines.append(f"    {publisher_type.value} -->|{label}| {subscriber_type.value}")
        return "\n".join(lines) + "\n"

