"""
Tombstone ledger: directory-based deletion markers.

Every deleted id gets its own marker blob ``<namespace>/<id>``. A single
shared "deleted ids" list would need CAS on one resource and serialize all
deletions; one marker per id makes deletions commutative and lock-free.

Markers are created or overwritten, never removed. Once a marker exists for
an id, that id is gone for every reader, whether or not its document blob
was physically deleted.
"""

from __future__ import annotations

import json

from .blobs.base import BlobStore, join_path
from .documents.types import Tombstone, is_valid_id
from .exceptions import ValidationError, WriteConflictError
from .logging_utils import get_storage_logger

DEFAULT_TOMBSTONE_NAMESPACE = "deleted_log"


class TombstoneLedger:
    """Records and lists deleted document ids."""

    def __init__(self, blobs: BlobStore, namespace: str = DEFAULT_TOMBSTONE_NAMESPACE) -> None:
        self.blobs = blobs
        self.namespace = namespace

    def marker_path(self, doc_id: str) -> str:
        return join_path(self.namespace, doc_id)

    async def mark_deleted(self, doc_id: str) -> Tombstone:
        """Write (or refresh) the tombstone for ``doc_id``.

        Safe to call any number of times. Losing a race against another writer
        of the same marker still leaves the marker in place, so it counts as
        success.
        """
        if not is_valid_id(doc_id):
            raise ValidationError("id", "must be a non-empty string without '/'", str(doc_id))

        path = self.marker_path(doc_id)
        log = get_storage_logger(__name__, doc_id=doc_id, path=path, operation="tombstone")
        tombstone = Tombstone(id=doc_id)
        existing = await self.blobs.get(path)

        try:
            await self.blobs.put(
                path,
                json.dumps(tombstone.to_dict(), indent=2),
                version=existing.version if existing else None,
                message=f"Mark deleted: {doc_id}",
            )
        except WriteConflictError:
            log.debug(f"Tombstone for {doc_id} written concurrently, keeping theirs")
            return tombstone

        log.info(f"Tombstone written for {doc_id}")
        return tombstone

    async def list_deleted_ids(self) -> set[str]:
        """Ids of every tombstone. Empty when nothing was ever deleted.

        Listing failures propagate: an empty answer here would resurrect
        every deleted document in the next read.
        """
        entries = await self.blobs.list(self.namespace)
        return {entry.name for entry in entries}

    async def is_deleted(self, doc_id: str) -> bool:
        if not is_valid_id(doc_id):
            return False
        return await self.blobs.get(self.marker_path(doc_id)) is not None
