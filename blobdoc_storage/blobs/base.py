"""
Abstract blob store interface.

Defines the contract every backend implements: get/put/delete a single
versioned text blob, and list a directory. Version tokens are opaque
strings; a put or delete that presents a stale token must fail with
WriteConflictError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import TracebackType


@dataclass(frozen=True)
class Blob:
    """A blob's decoded text and the version token it was read at."""

    content: str
    version: str


@dataclass(frozen=True)
class BlobEntry:
    """One member of a directory listing."""

    name: str
    path: str


def join_path(*parts: str) -> str:
    """Join path segments with '/', dropping empty segments and stray slashes."""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


class BlobStore(ABC):
    """Versioned blob store.

    Implementations:
        HttpBlobStore: generic REST contract
        GitHubBlobStore: GitHub contents API
        LocalBlobStore: directory on local disk
    """

    @abstractmethod
    async def get(self, path: str) -> Blob | None:
        """Read a blob.

        Returns:
            The blob, or None if nothing exists at ``path``

        Raises:
            AuthenticationError: Credentials rejected
            RemoteError: Any other unexpected status
        """

    @abstractmethod
    async def put(
        self,
        path: str,
        content: str,
        version: str | None = None,
        message: str | None = None,
    ) -> str:
        """Create or replace a blob.

        Args:
            path: Blob path
            content: Text to store
            version: Token from the last read; CAS precondition when given
            message: Optional change description (commit message for git stores)

        Returns:
            The new version token

        Raises:
            WriteConflictError: Token is stale, or a create hit an existing blob
        """

    @abstractmethod
    async def delete(self, path: str, version: str, message: str | None = None) -> None:
        """Delete a blob. Missing blobs count as already deleted.

        Raises:
            WriteConflictError: Token is stale
        """

    @abstractmethod
    async def list(self, dir_path: str) -> list[BlobEntry]:
        """List a directory. A missing directory lists as empty."""

    @abstractmethod
    async def validate_access(self) -> None:
        """Check that the store root is reachable with our credentials.

        Raises:
            AuthenticationError: Credentials rejected
            StorageConnectionError: Store unreachable or root missing
        """

    async def close(self) -> None:
        """Release any held resources."""

    async def __aenter__(self) -> BlobStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
