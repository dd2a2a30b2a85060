"""
Sync orchestrator: consistent collection snapshots and tombstone-first deletes.

Reading a collection is a fan-out/fan-in:

1. Fetch the tombstone id set (the truth about deletions)
2. List the collection directory
3. Fetch every non-tombstoned member concurrently; a member that fails to
   load is omitted, it never fails the whole listing
4. Keep only valid documents whose id is not tombstoned

Every fetch is an independent, eventually consistent snapshot.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ..documents.store import DocumentStore
from ..documents.types import Document, id_from_blob_name, is_valid_payload
from ..exceptions import (
    AuthenticationError,
    StorageConnectionError,
    StorageError,
)
from ..logging_utils import get_storage_logger
from ..tombstones import TombstoneLedger


@dataclass
class StoreStatus:
    """Startup health of the backing store.

    Distinguishes "reachable but empty" (first-time setup) from
    "unreachable or rejected credentials" (fix configuration).
    """

    is_connected: bool
    document_count: int = 0
    error: str | None = None
    auth_failed: bool = False

    @property
    def needs_setup(self) -> bool:
        return self.is_connected and self.document_count == 0

    @property
    def needs_credentials(self) -> bool:
        return not self.is_connected and self.auth_failed


class SyncOrchestrator:
    """Reads collections as snapshots and sequences deletions.

    Example:
        >>> sync = SyncOrchestrator(DocumentStore(blobs), TombstoneLedger(blobs))
        >>> patients = await sync.fetch_collection("patients")
        >>> await sync.delete_document("patients", patients[0].id)
    """

    def __init__(
        self,
        documents: DocumentStore,
        ledger: TombstoneLedger,
        max_concurrency: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            documents: Document store used for reads and writes
            ledger: Tombstone ledger
            max_concurrency: Upper bound on parallel member fetches (None = unbounded)
        """
        self.documents = documents
        self.ledger = ledger
        self.max_concurrency = max_concurrency

    async def fetch_collection(self, collection: str) -> list[Document]:
        """Fetch every visible document of a collection. Order is unspecified.

        Raises:
            AuthenticationError: Credentials rejected
            StorageError: Tombstones or the directory could not be listed
        """
        deleted = await self.ledger.list_deleted_ids()

        entries = await self.documents.blobs.list(self.documents.collection_path(collection))
        if not entries:
            return []

        candidates = []
        for entry in entries:
            doc_id = id_from_blob_name(entry.name)
            if doc_id is not None and doc_id not in deleted:
                candidates.append(doc_id)

        log = get_storage_logger(__name__, collection=collection, operation="fetch")
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def fetch_one(doc_id: str) -> Document | None:
            try:
                if semaphore is None:
                    return await self.documents.read_one(collection, doc_id)
                async with semaphore:
                    return await self.documents.read_one(collection, doc_id)
            except AuthenticationError:
                raise
            except (StorageError, ValueError) as e:
                log.warning(f"Skipping {collection}/{doc_id}: {e}", extra={"doc_id": doc_id})
                return None

        # First auth failure cancels the remaining fetches
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(fetch_one(doc_id)) for doc_id in candidates]
        except* AuthenticationError as failures:
            raise failures.exceptions[0] from None

        documents = [
            doc
            for doc in (task.result() for task in tasks)
            if doc is not None and is_valid_payload(doc.payload) and doc.id not in deleted
        ]
        log.debug(
            f"Fetched {collection}: {len(documents)} visible of {len(entries)} listed, "
            f"{len(deleted)} tombstones"
        )
        return documents

    async def save_document(self, document: Document) -> str:
        """Create or CAS-update a document; see DocumentStore.write."""
        return await self.documents.write(document)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document: tombstone first, then best-effort blob removal.

        Success is defined by the tombstone. If removing the blob fails (gone
        already, stale version, transient error) the id is still never seen
        again by fetch_collection.

        Raises:
            StorageError: The tombstone could not be written
        """
        await self.ledger.mark_deleted(doc_id)

        path = self.documents.document_path(collection, doc_id)
        log = get_storage_logger(
            __name__, collection=collection, doc_id=doc_id, path=path, operation="delete"
        )
        try:
            blob = await self.documents.blobs.get(path)
            if blob is not None:
                await self.documents.blobs.delete(
                    path, blob.version, message=f"Delete {collection} {doc_id}"
                )
        except StorageError as e:
            log.warning(f"Tombstoned {collection}/{doc_id} but blob removal failed: {e}")
            return

        log.info(f"Deleted {collection}/{doc_id}")

    async def check_status(self, collection: str) -> StoreStatus:
        """Check store reachability and count the collection's visible members.

        Tombstoned ids are not counted, so a store whose documents were all
        deleted reports ``needs_setup`` even if some blob removals failed.
        Never raises for connectivity or credential problems; they are
        reported in the returned status.
        """
        log = get_storage_logger(__name__, collection=collection, operation="status")
        try:
            await self.documents.blobs.validate_access()
            entries = await self.documents.blobs.list(self.documents.collection_path(collection))
            deleted = await self.ledger.list_deleted_ids() if entries else set()
        except AuthenticationError as e:
            log.error(f"Store rejected credentials: {e}")
            return StoreStatus(is_connected=False, error=e.message, auth_failed=True)
        except StorageConnectionError as e:
            log.error(f"Store unreachable: {e}")
            return StoreStatus(is_connected=False, error=e.message)
        except StorageError as e:
            log.error(f"Store status check failed: {e}")
            return StoreStatus(is_connected=False, error=e.message)

        ids = {id_from_blob_name(entry.name) for entry in entries} - {None}
        return StoreStatus(is_connected=True, document_count=len(ids - deleted))
