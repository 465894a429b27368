"""Backing store contract, field codecs and the in-memory store."""
from capacity_sync.store.codec import (
    COMPOSITE_FIELDS,
    FieldCodec,
    JsonListCodec,
    JsonObjectCodec,
    ModelListCodec,
    decode_fields,
    encode_fields,
)
from capacity_sync.store.interface import EntityNotFoundError, GraphStore, StoreError
from capacity_sync.store.memory import InMemoryGraphStore, WriteLogEntry

__all__ = [
    # Contract
    "GraphStore",
    "StoreError",
    "EntityNotFoundError",
    # Codecs
    "FieldCodec",
    "JsonListCodec",
    "JsonObjectCodec",
    "ModelListCodec",
    "COMPOSITE_FIELDS",
    "decode_fields",
    "encode_fields",
    # In-memory
    "InMemoryGraphStore",
    "WriteLogEntry",
]
