"""Entity manifests: which fields each entity type publishes and subscribes to."""
from capacity_sync.manifest.definitions import MANIFESTS, EntityManifest
from capacity_sync.manifest.fields import (
    COMMON_FIELDS,
    CommonFields,
    FieldDescriptor,
    create_array_item_field,
    create_field,
    create_nested_field,
)
from capacity_sync.manifest.registry import ManifestIssue, ManifestRegistry

__all__ = [
    # Fields
    "FieldDescriptor",
    "CommonFields",
    "COMMON_FIELDS",
    "create_field",
    "create_nested_field",
    "create_array_item_field",
    # Manifests
    "EntityManifest",
    "MANIFESTS",
    # Registry
    "ManifestRegistry",
    "ManifestIssue",
]
