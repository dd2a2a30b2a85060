"""
Directory-backed blob store.

The fallback backend for single-machine deployments and development: every
blob is a plain file under ``root``, and its version token is the sha256 of
its content. All mutations are serialized through one AdmissionLock with a
bounded wait, so concurrent writers in this process see StoreBusyError
rather than queueing forever. Reads never take the lock.

Writes are atomic (temp file + rename).
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

import aiofiles
import aiofiles.os

from ..exceptions import StorageConnectionError, StorageIOError, WriteConflictError
from ..locking import DEFAULT_LOCK_TIMEOUT, AdmissionLock
from .base import Blob, BlobEntry, BlobStore, join_path

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".tmp_"


def content_version(content: str) -> str:
    """Version token for a piece of content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class LocalBlobStore(BlobStore):
    """Blob store rooted at a local directory.

    Example:
        >>> blobs = LocalBlobStore(Path("~/.blobdoc/data").expanduser())
        >>> version = await blobs.put("patients/p1.json", "{}")
    """

    def __init__(self, root: Path | str, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self.root = Path(root)
        self.gate = AdmissionLock(lock_timeout)

    def _resolve(self, path: str) -> Path:
        relative = join_path(path)
        if not relative or any(part in ("..", ".") for part in relative.split("/")):
            raise StorageIOError("resolve", path)
        return self.root / relative

    async def _read(self, target: Path) -> str | None:
        try:
            if not await aiofiles.os.path.isfile(target):
                return None
            async with aiofiles.open(target, encoding="utf-8", newline="") as f:
                return await f.read()
        except OSError as e:
            raise StorageIOError("read", str(target), e) from e

    async def get(self, path: str) -> Blob | None:
        content = await self._read(self._resolve(path))
        if content is None:
            return None
        return Blob(content=content, version=content_version(content))

    async def put(
        self,
        path: str,
        content: str,
        version: str | None = None,
        message: str | None = None,
    ) -> str:
        target = self._resolve(path)
        async with self.gate.hold(f"put {path}"):
            current = await self._read(target)
            if current is not None and (version is None or content_version(current) != version):
                raise WriteConflictError(path, version)
            if current is None and version is not None:
                # The blob was deleted since the caller read it
                raise WriteConflictError(path, version)
            await self._write_atomic(target, content)

        logger.debug(f"Wrote {path}" + (f" ({message})" if message else ""))
        return content_version(content)

    async def delete(self, path: str, version: str, message: str | None = None) -> None:
        target = self._resolve(path)
        async with self.gate.hold(f"delete {path}"):
            current = await self._read(target)
            if current is None:
                logger.debug(f"Delete of {path}: already gone")
                return
            if content_version(current) != version:
                raise WriteConflictError(path, version)
            try:
                await aiofiles.os.remove(target)
            except FileNotFoundError:
                return
            except OSError as e:
                raise StorageIOError("delete", str(target), e) from e

    async def list(self, dir_path: str) -> list[BlobEntry]:
        relative = join_path(dir_path)
        directory = self._resolve(relative) if relative else self.root
        try:
            if not await aiofiles.os.path.isdir(directory):
                return []
            names = await aiofiles.os.listdir(directory)
        except OSError as e:
            raise StorageIOError("list", str(directory), e) from e

        entries = []
        for name in sorted(names):
            if name.startswith(TEMP_PREFIX):
                continue
            if not await aiofiles.os.path.isfile(directory / name):
                continue
            entries.append(BlobEntry(name=name, path=join_path(relative, name)))
        return entries

    async def validate_access(self) -> None:
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise StorageConnectionError(str(self.root), e) from e
        if not os.access(self.root, os.R_OK | os.W_OK):
            raise StorageConnectionError(str(self.root), "root is not readable and writable")

    async def _write_atomic(self, target: Path, content: str) -> None:
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
        except OSError as e:
            raise StorageIOError("create_directory", str(target.parent), e) from e

        fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=TEMP_PREFIX)
        try:
            os.close(fd)
            async with aiofiles.open(temp_path, "w", encoding="utf-8", newline="") as f:
                await f.write(content)
                await f.flush()
                os.fsync(f.fileno())
            await aiofiles.os.rename(temp_path, target)
        except Exception as e:
            try:
                await aiofiles.os.remove(temp_path)
            except OSError:
                pass
            raise StorageIOError("write", str(target), e) from e
