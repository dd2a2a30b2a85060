"""
Blobdoc Storage

A versioned blob store (a GitHub repository, a REST blob service, or a local
directory) used as a lightweight JSON document database.

Provides:
- Compare-and-swap document writes driven by blob version tokens
- Conflict-free deletion through one tombstone marker per deleted id
- Collection snapshots fetched concurrently with per-item failure isolation
- A client reconciliation cache for optimistic deletes

Usage:

    >>> from blobdoc_storage import StoreConfig, create_orchestrator
    >>> config = StoreConfig.from_env()
    >>> sync = create_orchestrator(config)
    >>> status = await sync.check_status("patients")
    >>> if status.needs_credentials:
    ...     ...  # show "fix credentials"
    >>> patients = await sync.fetch_collection("patients")

Optimistic UI:

    >>> pending = PendingDeletions(config.pending_deletions_path)
    >>> await pending.load()
    >>> cache = ReconciliationCache(sync, pending, "patients")
    >>> await cache.refresh()
    >>> await cache.delete("p1")  # hidden immediately, tombstoned remotely
"""

from .blobs import Blob, BlobEntry, BlobStore, GitHubBlobStore, HttpBlobStore, LocalBlobStore
from .codec import decode, encode
from .config import StoreConfig, create_blob_store, create_orchestrator
from .documents import Document, DocumentStore, Tombstone, create_document
from .exceptions import (
    AuthenticationError,
    CodecError,
    RemoteError,
    StorageConnectionError,
    StorageError,
    StorageIOError,
    StoreBusyError,
    ValidationError,
    WriteConflictError,
)
from .locking import AdmissionLock
from .logging_utils import configure_structured_logging, get_storage_logger
from .sync import PendingDeletions, ReconciliationCache, StoreStatus, SyncOrchestrator
from .tombstones import TombstoneLedger

__all__ = [
    # Blob stores
    "Blob",
    "BlobEntry",
    "BlobStore",
    "GitHubBlobStore",
    "HttpBlobStore",
    "LocalBlobStore",
    # Codec
    "encode",
    "decode",
    # Configuration
    "StoreConfig",
    "create_blob_store",
    "create_orchestrator",
    # Documents
    "Document",
    "DocumentStore",
    "Tombstone",
    "TombstoneLedger",
    "create_document",
    # Sync
    "PendingDeletions",
    "ReconciliationCache",
    "StoreStatus",
    "SyncOrchestrator",
    "AdmissionLock",
    # Logging
    "configure_structured_logging",
    "get_storage_logger",
    # Exceptions
    "AuthenticationError",
    "CodecError",
    "RemoteError",
    "StorageConnectionError",
    "StorageError",
    "StorageIOError",
    "StoreBusyError",
    "ValidationError",
    "WriteConflictError",
]

__version__ = "0.1.0"
