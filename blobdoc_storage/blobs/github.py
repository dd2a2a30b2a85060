"""
GitHub contents API blob store.

A GitHub repository branch is used as the document database: every blob is
a file, the version token is the file's git blob ``sha``, and every write is
a commit. GitHub rejects a PUT whose ``sha`` is missing or stale, which gives
us compare-and-swap for free.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from .. import codec
from ..exceptions import RemoteError, StorageConnectionError, WriteConflictError
from .base import Blob, BlobEntry, join_path
from .http import DEFAULT_REQUEST_TIMEOUT, NO_CACHE_HEADERS, HttpBlobStore

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# 409: sha does not match; 422: sha missing for an existing file
CONFLICT_STATUSES = (409, 422)


class GitHubBlobStore(HttpBlobStore):
    """Blob store on top of ``/repos/{owner}/{repo}/contents``.

    Example:
        >>> store = GitHubBlobStore(owner="clinic", repo="records-db", token="ghp_...")
        >>> await store.validate_access()
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        branch: str = "main",
        api_url: str = GITHUB_API_URL,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__(
            endpoint=f"{api_url.rstrip('/')}/repos/{owner}/{repo}",
            token=token,
            request_timeout=request_timeout,
            session=session,
        )
        self.owner = owner
        self.repo = repo
        self.branch = branch

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github.v3+json",
            **NO_CACHE_HEADERS,
        }

    def _url(self, path: str) -> str:
        path = join_path(path)
        if not path:
            return f"{self.endpoint}/contents"
        return f"{self.endpoint}/contents/{quote(path)}"

    async def get(self, path: str) -> Blob | None:
        status, body = await self._request("GET", self._url(path), params={"ref": self.branch})
        if status == 404:
            return None
        self._raise_for_status(status, body, path)
        if not isinstance(body, dict) or body.get("type", "file") != "file":
            logger.warning(f"{path} is not a file in {self.owner}/{self.repo}, ignoring")
            return None
        content, sha = body.get("content"), body.get("sha")
        if not isinstance(content, str) or not sha:
            raise RemoteError(status, "file response carries no content or sha", path)
        return Blob(content=codec.decode(content), version=sha)

    async def put(
        self,
        path: str,
        content: str,
        version: str | None = None,
        message: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "message": message or f"Update {path}",
            "content": codec.encode(content),
            "branch": self.branch,
        }
        if version:
            payload["sha"] = version

        status, body = await self._request("PUT", self._url(path), json_body=payload)
        if status in CONFLICT_STATUSES:
            raise WriteConflictError(path, version)
        if status == 404:
            raise RemoteError(status, f"repository or path not found ({self.owner}/{self.repo})", path)
        self._raise_for_status(status, body, path)
        try:
            return body["content"]["sha"]
        except (KeyError, TypeError):
            raise RemoteError(status, "response carries no content sha", path) from None

    async def delete(self, path: str, version: str, message: str | None = None) -> None:
        payload = {
            "message": message or f"Delete {path}",
            "sha": version,
            "branch": self.branch,
        }
        status, body = await self._request("DELETE", self._url(path), json_body=payload)
        if status == 404:
            logger.debug(f"Delete of {path}: already gone")
            return
        if status in CONFLICT_STATUSES:
            raise WriteConflictError(path, version)
        self._raise_for_status(status, body, path)

    async def list(self, dir_path: str) -> list[BlobEntry]:
        dir_path = join_path(dir_path)
        status, body = await self._request("GET", self._url(dir_path), params={"ref": self.branch})
        if status == 404:
            return []
        self._raise_for_status(status, body, dir_path)
        if not isinstance(body, list):
            return []
        return [
            BlobEntry(name=item["name"], path=item.get("path") or join_path(dir_path, item["name"]))
            for item in body
            if isinstance(item, dict) and item.get("name") and item.get("type", "file") == "file"
        ]

    async def validate_access(self) -> None:
        status, body = await self._request("GET", self.endpoint)
        if status == 404:
            raise StorageConnectionError(
                self.endpoint, f"repository {self.owner}/{self.repo} not found"
            )
        self._raise_for_status(status, body, "")
