"""
Document layer.

JSON documents stored one-per-blob, with compare-and-swap updates driven by
the blob store's version tokens.
"""

from .store import DEFAULT_SINGLETON_PATH, DocumentStore
from .types import (
    Document,
    Tombstone,
    create_document,
    has_values,
    id_from_blob_name,
    is_valid_id,
    is_valid_payload,
    new_document_id,
)

__all__ = [
    "DEFAULT_SINGLETON_PATH",
    "Document",
    "DocumentStore",
    "Tombstone",
    "create_document",
    "has_values",
    "id_from_blob_name",
    "is_valid_id",
    "is_valid_payload",
    "new_document_id",
]
