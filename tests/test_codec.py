"""Tests for store field codecs."""
import json

from capacity_sync.schemas import EntityType, RosterEntry
from capacity_sync.store.codec import (
    JsonListCodec,
    JsonObjectCodec,
    ModelListCodec,
    decode_fields,
    encode_fields,
)


class TestJsonListCodec:
    """Tests for JSON list fields."""

    def test_decode_string(self):
        """JSON array strings become lists."""
        assert JsonListCodec().decode('["a", "b"]') == ["a", "b"]

    def test_decode_is_idempotent(self):
        """Already-decoded lists pass through."""
        assert JsonListCodec().decode(["a"]) == ["a"]

    def test_decode_garbage(self):
        """Unparseable input decodes to an empty list."""
        assert JsonListCodec("roles").decode("{not json") == []
        assert JsonListCodec("roles").decode('{"a": 1}') == []
        assert JsonListCodec("roles").decode(None) == []

    def test_encode(self):
        """Lists are stored as JSON strings; strings are kept."""
        assert JsonListCodec().encode(["a"]) == '["a"]'
        assert JsonListCodec().encode('["a"]') == '["a"]'
        assert JsonListCodec().encode(None) == "[]"


class TestJsonObjectCodec:
    """Tests for JSON object fields."""

    def test_none_stays_none(self):
        """Missing objects stay missing."""
        assert JsonObjectCodec().decode(None) is None
        assert JsonObjectCodec().encode(None) is None

    def test_round_trip(self):
        """Objects are stored as JSON strings."""
        encoded = JsonObjectCodec().encode({"name": "Q1"})
        assert JsonObjectCodec().decode(encoded) == {"name": "Q1"}


class TestModelListCodec:
    """Tests for validated model lists."""

    def test_decode_validates_and_dumps_camel_case(self):
        """Items are validated and returned with camelCase keys."""
        codec = ModelListCodec(RosterEntry, "roster")
        decoded = codec.decode('[{"memberId": "m1", "allocationPercent": "50"}]')

        assert decoded[0]["memberId"] == "m1"
        assert decoded[0]["allocationPercent"] == 50
        assert decoded[0]["perWorkItemAllocations"] == []

    def test_invalid_items_decode_empty(self):
        """A list failing validation decodes to an empty list."""
        codec = ModelListCodec(RosterEntry, "roster")
        assert codec.decode('[{"allocationPercent": 500}]') == []

    def test_encode_models(self):
        """Models are dumped by alias before encoding."""
        codec = ModelListCodec(RosterEntry, "roster")
        encoded = codec.encode([RosterEntry(member_id="m1")])
        assert json.loads(encoded)[0]["memberId"] == "m1"


class TestFieldRegistry:
    """Tests for per-type composite fields."""

    def test_decode_fields(self):
        """Only composite fields are decoded."""
        data = decode_fields(EntityType.TEAM_MEMBER, {"title": "Ann", "roles": '["dev"]'})
        assert data == {"title": "Ann", "roles": ["dev"]}

    def test_encode_fields(self):
        """Only composite fields are encoded."""
        data = encode_fields("team", {"title": "Core", "roster": []})
        assert data == {"title": "Core", "roster": "[]"}

    def test_unknown_type_untouched(self):
        """Unknown types pass through."""
        assert decode_fields("spaceship", {"roster": "[]"}) == {"roster": "[]"}
