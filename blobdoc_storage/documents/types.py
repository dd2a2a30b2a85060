"""
Document and tombstone data types.

A Document is one JSON object stored as one blob. Its payload follows the
form-record convention used by the dashboard::

    {"id": "...", "modelId": "patients", "createdAt": "...", "updatedAt": "...",
     "values": {"<fieldId>": ...}}

A payload whose ``values`` map is missing or empty is what an interrupted
write leaves behind; such documents are invalid and never returned by reads.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..exceptions import ValidationError

DOCUMENT_SUFFIX = ".json"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def new_document_id(prefix: str = "") -> str:
    """Generate a fresh, never-reused document id."""
    return f"{prefix}{uuid.uuid4().hex}"


def is_valid_id(doc_id: Any) -> bool:
    """Ids are non-empty strings usable as a single path segment."""
    return (
        isinstance(doc_id, str)
        and bool(doc_id.strip())
        and "/" not in doc_id
        and doc_id not in (".", "..")
    )


def has_values(payload: Any) -> bool:
    """True when the payload carries a non-empty ``values`` mapping."""
    if not isinstance(payload, Mapping):
        return False
    values = payload.get("values")
    return isinstance(values, Mapping) and len(values) > 0


def is_valid_payload(payload: Any) -> bool:
    return isinstance(payload, Mapping) and is_valid_id(payload.get("id")) and has_values(payload)


def blob_name(doc_id: str) -> str:
    return f"{doc_id}{DOCUMENT_SUFFIX}"


def id_from_blob_name(name: str) -> str | None:
    """Derive the document id from a listed blob name, or None if it is not a document."""
    if not name.endswith(DOCUMENT_SUFFIX):
        return None
    doc_id = name[: -len(DOCUMENT_SUFFIX)]
    return doc_id if is_valid_id(doc_id) else None


@dataclass
class Document:
    """A JSON document in a collection.

    Attributes:
        id: Unique within the collection, assigned once at creation
        collection: Collection name (e.g. "patients")
        payload: The stored JSON object
        version: Token from the last read or write; None if never written
    """

    id: str
    collection: str
    payload: dict[str, Any] = field(default_factory=dict)
    version: str | None = None

    @property
    def values(self) -> dict[str, Any]:
        return self.payload.get("values") or {}

    @property
    def is_new(self) -> bool:
        return self.version is None

    def validate(self) -> None:
        """Raise ValidationError unless this document may be written."""
        if not is_valid_id(self.id):
            raise ValidationError("id", "must be a non-empty string without '/'", str(self.id))
        if not is_valid_id(self.collection):
            raise ValidationError("collection", "must be a non-empty string without '/'", str(self.collection))
        payload_id = self.payload.get("id")
        if payload_id is not None and payload_id != self.id:
            raise ValidationError("payload.id", f"does not match document id {self.id}", str(payload_id))
        if not has_values(self.payload):
            raise ValidationError("values", "must be a non-empty object")


def create_document(
    collection: str,
    values: Mapping[str, Any],
    model_id: str | None = None,
    doc_id: str | None = None,
) -> Document:
    """Build a new, unwritten document with a fresh id and timestamps."""
    doc_id = doc_id or new_document_id()
    now = utc_now_iso()
    return Document(
        id=doc_id,
        collection=collection,
        payload={
            "id": doc_id,
            "modelId": model_id or collection,
            "createdAt": now,
            "updatedAt": now,
            "values": dict(values),
        },
    )


@dataclass(frozen=True)
class Tombstone:
    """Marker recording that ``id`` has been deleted."""

    id: str
    deleted_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "deletedAt": self.deleted_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Tombstone:
        return cls(id=data["id"], deleted_at=data.get("deletedAt") or utc_now_iso())
