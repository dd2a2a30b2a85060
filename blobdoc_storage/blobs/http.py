"""
HTTP blob store for the generic versioned-blob REST contract.

Contract:
    GET    {endpoint}/{collection}/{id}   -> {"content": <blob>, "version": <token>} | 404
    PUT    {endpoint}/{collection}/{id}   {"content": <blob>, "version"?: <token>}
                                          -> {"version": <token>} | 409 stale | 401
    DELETE {endpoint}/{collection}/{id}   {"version": <token>} -> 200 | 404 | 409 stale
    GET    {endpoint}/{collection}/       -> [{"name": ...}, ...] | 404 never created

Content travels codec-encoded (see blobdoc_storage.codec). Every request
carries cache-defeating parameters and headers: a stale read here would
resurrect deleted records.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any
from urllib.parse import quote

import aiohttp

from .. import codec
from ..exceptions import (
    AuthenticationError,
    RemoteError,
    StorageConnectionError,
    WriteConflictError,
)
from .base import Blob, BlobEntry, BlobStore, join_path

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}


class HttpBlobStore(BlobStore):
    """Blob store speaking the generic REST contract over aiohttp.

    Example:
        >>> async with HttpBlobStore("https://blobs.example.com/v1", token="...") as blobs:
        ...     blob = await blobs.get("patients/p1.json")
    """

    def __init__(
        self,
        endpoint: str,
        token: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            endpoint: Base URL of the blob service
            token: Bearer token sent with every request
            request_timeout: Total per-request timeout in seconds
            session: Externally owned session (not closed by this store)
        """
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.request_timeout = request_timeout
        self._session = session
        self._owns_session = session is None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", **NO_CACHE_HEADERS}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.endpoint}/{quote(path)}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> tuple[int, Any]:
        """Send one request and return (status, parsed body).

        The body is parsed as JSON when possible, otherwise returned as text.
        """
        query = dict(params or {})
        query["t"] = str(int(time.time() * 1000))

        session = self._get_session()
        try:
            async with session.request(
                method,
                url,
                params=query,
                json=json_body,
                headers=self._headers(),
            ) as response:
                text = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StorageConnectionError(self.endpoint, e) from e

        logger.debug(f"{method} {url} -> {status}")

        if not text:
            return status, None
        try:
            return status, json.loads(text)
        except ValueError:
            return status, text

    def _raise_for_status(self, status: int, body: Any, path: str) -> None:
        if 200 <= status < 300:
            return
        message = _error_message(body)
        if status in (401, 403):
            raise AuthenticationError(self.endpoint, message)
        raise RemoteError(status, message, path)

    # ------------------------------------------------------------------
    # BlobStore
    # ------------------------------------------------------------------

    async def get(self, path: str) -> Blob | None:
        status, body = await self._request("GET", self._url(path))
        if status == 404:
            return None
        self._raise_for_status(status, body, path)
        if not isinstance(body, dict) or not isinstance(body.get("content"), str):
            raise RemoteError(status, "response is not a blob", path)
        if body.get("version") in (None, ""):
            raise RemoteError(status, "response carries no version", path)
        return Blob(content=codec.decode(body["content"]), version=str(body["version"]))

    async def put(
        self,
        path: str,
        content: str,
        version: str | None = None,
        message: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {"content": codec.encode(content)}
        if version:
            payload["version"] = version

        status, body = await self._request("PUT", self._url(path), json_body=payload)
        if status == 409:
            raise WriteConflictError(path, version)
        self._raise_for_status(status, body, path)
        if not isinstance(body, dict) or "version" not in body:
            raise RemoteError(status, "response carries no version", path)
        return str(body["version"])

    async def delete(self, path: str, version: str, message: str | None = None) -> None:
        status, body = await self._request(
            "DELETE", self._url(path), json_body={"version": version}
        )
        if status == 404:
            logger.debug(f"Delete of {path}: already gone")
            return
        if status == 409:
            raise WriteConflictError(path, version)
        self._raise_for_status(status, body, path)

    async def list(self, dir_path: str) -> list[BlobEntry]:
        dir_path = join_path(dir_path)
        status, body = await self._request("GET", self._url(dir_path) + "/")
        if status == 404:
            return []
        self._raise_for_status(status, body, dir_path)
        if not isinstance(body, list):
            return []
        return [
            BlobEntry(name=item["name"], path=join_path(dir_path, item["name"]))
            for item in body
            if isinstance(item, dict) and item.get("name")
        ]

    async def validate_access(self) -> None:
        status, body = await self._request("GET", self.endpoint + "/")
        if status == 404:
            raise StorageConnectionError(self.endpoint, "store root not found")
        self._raise_for_status(status, body, "")

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    if body:
        return str(body)
    return "no response body"
