"""
Client-side reconciliation cache.

Keeps the working set a UI shows responsive despite network latency:

- A delete hides the document immediately, before any network call returns,
  and records the id in a locally persisted pending-deletion set.
- Every server snapshot is filtered again by that set (set difference), so an
  id stays hidden even while its tombstone is missing from the next listing.
- The pending set is sticky: a successful remote delete does not clear it,
  and a failed one does not roll the optimistic state back. Only an explicit
  clear_pending() un-hides ids.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path

import aiofiles
import aiofiles.os

from ..documents.types import Document
from ..exceptions import AuthenticationError, StorageError, StorageIOError
from ..logging_utils import get_storage_logger
from .orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_PENDING_DELETIONS_PATH = Path.home() / ".blobdoc" / "pending_deletions.json"


class PendingDeletions:
    """Process-local set of ids deleted by this client, persisted as a JSON array."""

    def __init__(self, path: Path | str = DEFAULT_PENDING_DELETIONS_PATH) -> None:
        self.path = Path(path)
        self._ids: set[str] = set()
        self._loaded = False

    async def load(self) -> set[str]:
        """Load the persisted set once. Missing or corrupt files give an empty set."""
        if self._loaded:
            return set(self._ids)

        try:
            if await aiofiles.os.path.exists(self.path):
                async with aiofiles.open(self.path, encoding="utf-8") as f:
                    data = json.loads(await f.read() or "[]")
                if isinstance(data, list):
                    self._ids |= {item for item in data if isinstance(item, str)}
                else:
                    logger.warning(f"Ignoring malformed pending deletions in {self.path}")
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read pending deletions from {self.path}: {e}")

        self._loaded = True
        return set(self._ids)

    def add(self, doc_id: str) -> None:
        self._ids.add(doc_id)

    async def persist(self) -> None:
        """Atomically rewrite the persisted set."""
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        except OSError as e:
            raise StorageIOError("create_directory", str(self.path.parent), e) from e

        fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".tmp_", suffix=".json")
        try:
            os.close(fd)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(sorted(self._ids)))
            await aiofiles.os.rename(temp_path, self.path)
        except OSError as e:
            try:
                await aiofiles.os.remove(temp_path)
            except OSError:
                pass
            raise StorageIOError("write_pending_deletions", str(self.path), e) from e

    async def clear(self) -> None:
        self._ids.clear()
        await self.persist()

    def filter(self, documents: Iterable[Document]) -> list[Document]:
        return [doc for doc in documents if doc.id not in self._ids]

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(set(self._ids))

    def __len__(self) -> int:
        return len(self._ids)


class ReconciliationCache:
    """Optimistic working set of one collection.

    Example:
        >>> pending = PendingDeletions()
        >>> await pending.load()
        >>> cache = ReconciliationCache(sync, pending, "patients")
        >>> await cache.refresh()
        >>> await cache.delete("p1")   # hidden at once, whatever the server says
    """

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        pending: PendingDeletions,
        collection: str,
    ) -> None:
        self.orchestrator = orchestrator
        self.pending = pending
        self.collection = collection
        self.documents: dict[str, Document] = {}
        self.last_error: str | None = None
        self.log = get_storage_logger(__name__, collection=collection)

    def visible(self) -> list[Document]:
        """The working set minus every pending deletion."""
        return self.pending.filter(self.documents.values())

    def get(self, doc_id: str) -> Document | None:
        if doc_id in self.pending:
            return None
        return self.documents.get(doc_id)

    async def refresh(self) -> list[Document]:
        """Replace the working set with a fresh server snapshot minus pending deletions."""
        try:
            fetched = await self.orchestrator.fetch_collection(self.collection)
        except StorageError as e:
            self.last_error = e.message
            self.log.error(f"Failed to load {self.collection}: {e}")
            raise

        self.last_error = None
        clean = self.pending.filter(fetched)
        self.documents = {doc.id: doc for doc in clean}
        return clean

    async def save(self, document: Document) -> Document:
        """Write a document and put the written version into the working set.

        Raises:
            WriteConflictError: The document changed remotely; the working set is untouched
        """
        version = await self.orchestrator.save_document(document)
        saved = dataclasses.replace(document, version=version)
        if saved.id not in self.pending:
            self.documents[saved.id] = saved
        return saved

    async def delete(self, doc_id: str) -> bool:
        """Hide a document now and delete it remotely.

        Returns:
            True if the remote delete succeeded. On failure the document stays
            hidden; the local pending set masks the inconsistency, and the
            reason is kept in ``last_error``.

        Raises:
            AuthenticationError: Credentials rejected; the document stays hidden
        """
        # Nothing may be awaited before the optimistic update
        self.pending.add(doc_id)
        self.documents.pop(doc_id, None)

        try:
            await self.pending.persist()
        except StorageIOError as e:
            self.log.error(
                f"Failed to persist pending deletion of {doc_id}: {e}", extra={"doc_id": doc_id}
            )

        try:
            await self.orchestrator.delete_document(self.collection, doc_id)
        except StorageError as e:
            self.last_error = e.message
            self.log.error(
                f"Deletion of {self.collection}/{doc_id} failed on server: {e}",
                extra={"doc_id": doc_id},
            )
            if isinstance(e, AuthenticationError):
                raise
            return False
        return True

    async def clear_pending(self) -> None:
        """Explicit cache reset: forget every pending deletion."""
        await self.pending.clear()
