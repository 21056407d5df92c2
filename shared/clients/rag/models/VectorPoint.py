"""VectorPoint model: the unit persisted in the vector store, keyed by record id."""

import uuid
from typing import Any

from pydantic import BaseModel, field_validator

from shared.models.record import Record

# Fixed namespace for deterministic UUIDv5 point IDs.
# Changing this value would invalidate all existing point IDs in the store.
_POINT_ID_NAMESPACE = uuid.UUID("3b8e6c1a-54d2-4f0e-9a7b-2c1d0e9f8a6b")

# Qdrant point ids are unsigned 64-bit integers.
_MAX_POINT_INT = 2**64


def make_point_id(record_id: str) -> str | int:
    """Map a record id onto an id the vector store accepts.

    Qdrant only accepts unsigned 64-bit integers and UUIDs. A record id is
    used as-is only when it is already in the canonical form of one of those
    (no leading zeros, lowercase hyphenated UUID), so two distinct record ids
    never share a point. Any other string is mapped to a deterministic
    UUIDv5, so re-ingesting the same record still overwrites the same point.

    Args:
        record_id (str): The record id.

    Returns:
        str | int: The point id.
    """
    if record_id.isascii() and record_id.isdigit() and str(int(record_id)) == record_id and int(record_id) < _MAX_POINT_INT:
        return int(record_id)
    try:
        if str(uuid.UUID(record_id)) == record_id:
            return record_id
    except ValueError:
        pass
    return str(uuid.uuid5(_POINT_ID_NAMESPACE, record_id))


class VectorPoint(BaseModel):
    """Embedding plus payload for one record.

    Attributes:
        id:      Point id derived from the record id (see make_point_id).
        vector:  Fixed-dimension embedding of the record text.
        payload: Every record field except ``id``; ``record_id`` is added when
                 the point id differs from the record id.
    """

    id: str | int
    vector: list[float]
    payload: dict[str, Any]

    @field_validator("vector")
    @classmethod
    def _vector_not_empty(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("vector must not be empty")
        return v

    @classmethod
    def from_record(cls, record: Record, vector: list[float]) -> "VectorPoint":
        point_id = make_point_id(record.id)
        payload = record.to_payload()
        if str(point_id) != record.id:
            payload["record_id"] = record.id
        return cls(id=point_id, vector=vector, payload=payload)
