"""
Store configuration.

Configuration can be provided directly or via environment variables:

    BLOBDOC_BACKEND: "github" (default), "http" or "local"
    BLOBDOC_TOKEN: Bearer token (github, http)
    BLOBDOC_GITHUB_OWNER / BLOBDOC_GITHUB_REPO / BLOBDOC_GITHUB_BRANCH (default: main)
    BLOBDOC_ENDPOINT: Base URL (http) or API URL override (github)
    BLOBDOC_LOCAL_ROOT: Data directory (local, default: ~/.blobdoc/data)
    BLOBDOC_TOMBSTONE_NAMESPACE: Tombstone directory (default: deleted_log)
    BLOBDOC_SINGLETON_PATH: Schema/config document (default: config/app.json)
    BLOBDOC_PENDING_DELETIONS_PATH: Local pending-deletion file
    BLOBDOC_REQUEST_TIMEOUT: Seconds per HTTP request (default: 30)
    BLOBDOC_LOCK_TIMEOUT: Seconds a local write waits for the write gate (default: 30)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .blobs.base import BlobStore
from .blobs.github import GITHUB_API_URL, GitHubBlobStore
from .blobs.http import DEFAULT_REQUEST_TIMEOUT, HttpBlobStore
from .blobs.local import LocalBlobStore
from .documents.store import DEFAULT_SINGLETON_PATH, DocumentStore
from .exceptions import AuthenticationError, ValidationError
from .locking import DEFAULT_LOCK_TIMEOUT
from .sync.cache import DEFAULT_PENDING_DELETIONS_PATH
from .sync.orchestrator import SyncOrchestrator
from .tombstones import DEFAULT_TOMBSTONE_NAMESPACE, TombstoneLedger

BACKEND_GITHUB = "github"
BACKEND_HTTP = "http"
BACKEND_LOCAL = "local"
BACKENDS = (BACKEND_GITHUB, BACKEND_HTTP, BACKEND_LOCAL)

DEFAULT_LOCAL_ROOT = Path.home() / ".blobdoc" / "data"


@dataclass
class StoreConfig:
    """Configuration for the blob document store."""

    backend: str = BACKEND_GITHUB
    token: str | None = None
    endpoint: str | None = None

    # GitHub repository used as the database
    owner: str | None = None
    repo: str | None = None
    branch: str = "main"

    local_root: Path = field(default_factory=lambda: DEFAULT_LOCAL_ROOT)

    tombstone_namespace: str = DEFAULT_TOMBSTONE_NAMESPACE
    singleton_path: str = DEFAULT_SINGLETON_PATH
    pending_deletions_path: Path = field(default_factory=lambda: DEFAULT_PENDING_DELETIONS_PATH)

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT

    def validate(self) -> None:
        """Raise if the configuration cannot reach its backend."""
        if self.backend not in BACKENDS:
            raise ValidationError("backend", f"must be one of {', '.join(BACKENDS)}", self.backend)
        if self.backend in (BACKEND_GITHUB, BACKEND_HTTP) and not self.token:
            raise AuthenticationError("config", "BLOBDOC_TOKEN not set")
        if self.backend == BACKEND_GITHUB and not (self.owner and self.repo):
            raise AuthenticationError(
                "config", "BLOBDOC_GITHUB_OWNER and BLOBDOC_GITHUB_REPO required for github backend"
            )
        if self.backend == BACKEND_HTTP and not self.endpoint:
            raise AuthenticationError("config", "BLOBDOC_ENDPOINT required for http backend")

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Create config from environment variables."""
        env = os.environ
        config = cls(
            backend=env.get("BLOBDOC_BACKEND", BACKEND_GITHUB).lower(),
            token=env.get("BLOBDOC_TOKEN"),
            endpoint=env.get("BLOBDOC_ENDPOINT"),
            owner=env.get("BLOBDOC_GITHUB_OWNER"),
            repo=env.get("BLOBDOC_GITHUB_REPO"),
            branch=env.get("BLOBDOC_GITHUB_BRANCH", "main"),
            local_root=Path(env.get("BLOBDOC_LOCAL_ROOT", str(DEFAULT_LOCAL_ROOT))).expanduser(),
            tombstone_namespace=env.get("BLOBDOC_TOMBSTONE_NAMESPACE", DEFAULT_TOMBSTONE_NAMESPACE),
            singleton_path=env.get("BLOBDOC_SINGLETON_PATH", DEFAULT_SINGLETON_PATH),
            pending_deletions_path=Path(
                env.get("BLOBDOC_PENDING_DELETIONS_PATH", str(DEFAULT_PENDING_DELETIONS_PATH))
            ).expanduser(),
            request_timeout=float(env.get("BLOBDOC_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
            lock_timeout=float(env.get("BLOBDOC_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT)),
        )
        config.validate()
        return config


def create_blob_store(config: StoreConfig) -> BlobStore:
    """Build the blob store a configuration describes."""
    config.validate()

    if config.backend == BACKEND_LOCAL:
        return LocalBlobStore(config.local_root, lock_timeout=config.lock_timeout)

    if config.backend == BACKEND_HTTP:
        return HttpBlobStore(
            config.endpoint or "",
            token=config.token,
            request_timeout=config.request_timeout,
        )

    return GitHubBlobStore(
        owner=config.owner or "",
        repo=config.repo or "",
        token=config.token or "",
        branch=config.branch,
        api_url=config.endpoint or GITHUB_API_URL,
        request_timeout=config.request_timeout,
    )


def create_orchestrator(config: StoreConfig, blobs: BlobStore | None = None) -> SyncOrchestrator:
    """Wire a document store, tombstone ledger and orchestrator over one blob store."""
    blobs = blobs or create_blob_store(config)
    documents = DocumentStore(blobs, singleton_path=config.singleton_path)
    ledger = TombstoneLedger(blobs, namespace=config.tombstone_namespace)
    return SyncOrchestrator(documents, ledger)
