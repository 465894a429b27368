"""Publishable field descriptors.

A field id is the camelCase key of the entity data it describes. Nested
and array-item fields use dotted ids ("season.startDate",
"roster[].allocationPercent").
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class FieldDescriptor:
    """A fact an entity type can publish.

    Attributes:
        id: Unique field id within an entity type
        name: Human-readable name
        path: Dot-notation path into the entity data
        critical: Changes should be propagated immediately
        description: What the field represents
    """

    id: str
    name: str
    path: str
    critical: bool = False
    description: str = ""


def create_field(
    field_id: str,
    name: str,
    description: str = "",
    path: str = "",
    critical: bool = False,
) -> FieldDescriptor:
    """Top-level field; the path defaults to the id."""
    return FieldDescriptor(
        id=field_id,
        name=name,
        path=path or field_id,
        critical=critical,
        description=description,
    )


def create_nested_field(
    parent_path: str,
    field_id: str,
    name: str,
    description: str = "",
    critical: bool = False,
) -> FieldDescriptor:
    """Field of a nested object, e.g. ``season.startDate``."""
    full_id = f"{parent_path}.{field_id}"
    return create_field(full_id, name, description, full_id, critical)


def create_array_item_field(
    array_path: str,
    field_id: str,
    name: str,
    description: str = "",
    critical: bool = False,
) -> FieldDescriptor:
    """Field of every item of an array, e.g. ``roster[].memberId``."""
    full_id = f"{array_path}[].{field_id}"
    return create_field(full_id, name, description, full_id, critical)


class CommonFields:
    """Fields every entity type publishes."""

    TITLE = create_field("title", "Title", "The title or name of the entity", critical=True)
    DESCRIPTION = create_field("description", "Description", "The description or details of the entity")
    POSITION = create_field("position", "Position", "The x,y coordinates on the canvas")
    STATUS = create_field("status", "Status", "The current status of the entity", critical=True)
    CREATED_AT = create_field("createdAt", "Created At", "When the entity was created")
    UPDATED_AT = create_field("updatedAt", "Updated At", "When the entity was last updated")

    ALL = (TITLE, DESCRIPTION, POSITION, STATUS, CREATED_AT, UPDATED_AT)


COMMON_FIELDS = CommonFields.ALL
