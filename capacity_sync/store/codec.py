"""Field codecs applied at the store boundary.

The store keeps composite fields (rosters, allocations, lists) as JSON
strings. Codecs turn them into Python structures on the way in and back
into strings on the way out.

Decoding is total: an already-decoded value passes through unchanged, and
a value that cannot be decoded becomes the codec's empty default.
"""
import json
import logging
from typing import Any, Generic, Mapping, Protocol, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from capacity_sync.schemas.entities import (
    EntityType,
    RosterEntry,
    TeamAllocation,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class FieldCodec(Protocol):
    """Encode a field for the store and decode it back."""

    def encode(self, value: Any) -> Any: ...

    def decode(self, value: Any) -> Any: ...


def _parse_json(value: Any, expected: type, field_name: str) -> Any:
    """Parse a JSON string, returning None when it is not of the expected shape."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            logger.warning(
                "Failed to parse stored field",
                extra={"field": field_name, "error": str(e)},
            )
            return None
    if not isinstance(value, expected):
        if value is not None:
            logger.warning(
                "Stored field has unexpected type",
                extra={"field": field_name, "type": type(value).__name__},
            )
        return None
    return value


class JsonListCodec:
    """List stored as a JSON array string."""

    def __init__(self, field_name: str = ""):
        self.field_name = field_name

    def encode(self, value: Any) -> str:
        if isinstance(value, str):
            return value
        return json.dumps(list(value or []))

    def decode(self, value: Any) -> list:
        parsed = _parse_json(value, list, self.field_name)
        return parsed if parsed is not None else []


class JsonObjectCodec:
    """Object stored as a JSON object string. None stays None."""

    def __init__(self, field_name: str = ""):
        self.field_name = field_name

    def encode(self, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(dict(value))

    def decode(self, value: Any) -> Any:
        if value is None:
            return None
        return _parse_json(value, dict, self.field_name)


class ModelListCodec(Generic[ModelT]):
    """List of pydantic models stored as a JSON array string.

    Decoded items are validated against the model and returned as camelCase
    dicts, so the result can be merged into entity data directly.
    """

    def __init__(self, model: type[ModelT], field_name: str = ""):
        self.model = model
        self.field_name = field_name
        self._adapter = TypeAdapter(list[model])

    def encode(self, value: Any) -> str:
        if isinstance(value, str):
            return value
        items = [
            item.model_dump(by_alias=True, mode="json") if isinstance(item, BaseModel) else item
            for item in (value or [])
        ]
        return json.dumps(items)

    def decode(self, value: Any) -> list[dict]:
        parsed = _parse_json(value, list, self.field_name)
        if parsed is None:
            return []
        try:
            models = self._adapter.validate_python(parsed)
        except ValidationError as e:
            logger.warning(
                "Stored field failed validation",
                extra={
                    "field": self.field_name,
                    "model": self.model.__name__,
                    "errors": e.error_count(),
                },
            )
            return []
        return [model.model_dump(by_alias=True, mode="json") for model in models]


# =============================================================================
# Registry
# =============================================================================


def _work_item_fields() -> dict[str, FieldCodec]:
    return {
        "teamAllocations": ModelListCodec(TeamAllocation, "teamAllocations"),
        "goals": JsonListCodec("goals"),
        "risks": JsonListCodec("risks"),
        "teamMembers": JsonListCodec("teamMembers"),
        "memberAllocations": JsonListCodec("memberAllocations"),
        "costs": JsonListCodec("costs"),
    }


COMPOSITE_FIELDS: dict[EntityType, dict[str, FieldCodec]] = {
    EntityType.TEAM_MEMBER: {
        "roles": JsonListCodec("roles"),
        "skills": JsonListCodec("skills"),
    },
    EntityType.TEAM: {
        "roster": ModelListCodec(RosterEntry, "roster"),
        "season": JsonObjectCodec("season"),
    },
    EntityType.FEATURE: _work_item_fields(),
    EntityType.OPTION: _work_item_fields(),
    EntityType.PROVIDER: {
        **_work_item_fields(),
        "ddItems": JsonListCodec("ddItems"),
    },
    EntityType.MILESTONE: {
        "kpis": JsonListCodec("kpis"),
    },
    EntityType.META: {
        "tags": JsonListCodec("tags"),
        "relatedLinks": JsonListCodec("relatedLinks"),
    },
}


def _codecs_for(entity_type) -> Mapping[str, FieldCodec]:
    try:
        return COMPOSITE_FIELDS.get(EntityType(entity_type), {})
    except ValueError:
        return {}


def decode_fields(entity_type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Decode the composite fields of raw store data."""
    codecs = _codecs_for(entity_type)
    return {
        key: codecs[key].decode(value) if key in codecs else value
        for key, value in data.items()
    }


def encode_fields(entity_type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Encode the composite fields of entity data for the store."""
    codecs = _codecs_for(entity_type)
    return {
        key: codecs[key].encode(value) if key in codecs else value
        for key, value in data.items()
    }
