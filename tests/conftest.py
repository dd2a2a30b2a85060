"""
Shared test configuration and fixtures.

Provides an in-memory blob store with real compare-and-swap semantics so the
document, tombstone and sync layers can be tested without a network, plus
hooks to make individual operations fail or stall.
"""

import asyncio
import json
import logging

import pytest

from blobdoc_storage.blobs.base import Blob, BlobEntry, BlobStore, join_path
from blobdoc_storage.documents.store import DocumentStore
from blobdoc_storage.exceptions import WriteConflictError
from blobdoc_storage.sync.orchestrator import SyncOrchestrator
from blobdoc_storage.tombstones import TombstoneLedger

logger = logging.getLogger(__name__)


class InMemoryBlobStore(BlobStore):
    """
    In-memory blob store for testing.

    Version tokens count writes per path: "v1", "v2", ...
    Failures can be injected per operation and path; ``put_gate`` stalls
    every put until the event is set.
    """

    def __init__(self):
        self.blobs: dict[str, tuple[str, str]] = {}
        self._counters: dict[str, int] = {}
        self.get_failures: dict[str, Exception] = {}
        self.put_failures: dict[str, Exception] = {}
        self.delete_failures: dict[str, Exception] = {}
        self.list_failures: dict[str, Exception] = {}
        self.access_error: Exception | None = None
        self.put_gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str]] = []

    def seed(self, path: str, content) -> str:
        """Store content directly (dicts are JSON-encoded) and return its version."""
        if not isinstance(content, str):
            content = json.dumps(content, ensure_ascii=False)
        return self._store(path, content)

    def _store(self, path: str, content: str) -> str:
        count = self._counters.get(path, 0) + 1
        self._counters[path] = count
        version = f"v{count}"
        self.blobs[path] = (content, version)
        return version

    async def get(self, path):
        self.calls.append(("get", path))
        if path in self.get_failures:
            raise self.get_failures[path]
        if path not in self.blobs:
            return None
        content, version = self.blobs[path]
        return Blob(content=content, version=version)

    async def put(self, path, content, version=None, message=None):
        self.calls.append(("put", path))
        if self.put_gate is not None:
            await self.put_gate.wait()
        if path in self.put_failures:
            raise self.put_failures[path]
        current = self.blobs.get(path)
        if current is None and version is not None:
            raise WriteConflictError(path, version)
        if current is not None and current[1] != version:
            raise WriteConflictError(path, version)
        return self._store(path, content)

    async def delete(self, path, version, message=None):
        self.calls.append(("delete", path))
        if path in self.delete_failures:
            raise self.delete_failures[path]
        current = self.blobs.get(path)
        if current is None:
            return
        if current[1] != version:
            raise WriteConflictError(path, version)
        del self.blobs[path]

    async def list(self, dir_path):
        dir_path = join_path(dir_path)
        self.calls.append(("list", dir_path))
        if dir_path in self.list_failures:
            raise self.list_failures[dir_path]
        prefix = dir_path + "/"
        entries = []
        for path in sorted(self.blobs):
            if path.startswith(prefix) and "/" not in path[len(prefix):]:
                entries.append(BlobEntry(name=path[len(prefix):], path=path))
        return entries

    async def validate_access(self):
        if self.access_error is not None:
            raise self.access_error


def patient(doc_id: str, **values) -> dict:
    """A stored patient payload."""
    return {
        "id": doc_id,
        "modelId": "patients",
        "createdAt": "2024-01-01T00:00:00+00:00",
        "updatedAt": "2024-01-01T00:00:00+00:00",
        "values": values,
    }


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def documents(blobs):
    return DocumentStore(blobs)


@pytest.fixture
def ledger(blobs):
    return TombstoneLedger(blobs)


@pytest.fixture
def orchestrator(documents, ledger):
    return SyncOrchestrator(documents, ledger)
