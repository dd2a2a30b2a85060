"""
Document store: JSON documents on top of a versioned blob store.

Maps collection ``patients`` and id ``p1`` to the blob ``patients/p1.json``
and turns blob version tokens into compare-and-swap document updates.
Deletion is not offered here; it is sequenced by the sync orchestrator so
that the tombstone is written before the blob is removed.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Mapping
from typing import Any

from ..blobs.base import BlobStore, join_path
from ..exceptions import WriteConflictError
from .types import Document, blob_name, create_document, is_valid_payload, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_SINGLETON_PATH = "config/app.json"


class DocumentStore:
    """CAS create/update and read for JSON documents.

    Example:
        >>> docs = DocumentStore(blobs)
        >>> doc = await docs.read_one("patients", "p1")
        >>> doc.payload["values"]["name"] = "Somchai"
        >>> doc.version = await docs.write(doc)  # WriteConflictError if someone else wrote first
    """

    def __init__(
        self,
        blobs: BlobStore,
        collection_prefix: str = "",
        singleton_path: str = DEFAULT_SINGLETON_PATH,
    ) -> None:
        """Initialize the store.

        Args:
            blobs: Backing blob store
            collection_prefix: Directory under which all collections live
            singleton_path: Path of the schema/configuration document
        """
        self.blobs = blobs
        self.collection_prefix = collection_prefix
        self.singleton_path = singleton_path

    def collection_path(self, collection: str) -> str:
        return join_path(self.collection_prefix, collection)

    def document_path(self, collection: str, doc_id: str) -> str:
        return join_path(self.collection_prefix, collection, blob_name(doc_id))

    async def read_one(self, collection: str, doc_id: str) -> Document | None:
        """Read one document.

        Returns:
            The document, or None if it does not exist or its payload is invalid
            (an interrupted write is not an error)
        """
        path = self.document_path(collection, doc_id)
        blob = await self.blobs.get(path)
        if blob is None:
            return None

        try:
            payload = json.loads(blob.content)
        except ValueError as e:
            logger.debug(f"Ignoring undecodable document {path}: {e}")
            return None

        if not is_valid_payload(payload) or payload["id"] != doc_id:
            logger.debug(f"Ignoring invalid document {path}")
            return None

        return Document(id=doc_id, collection=collection, payload=payload, version=blob.version)

    async def write(self, document: Document) -> str:
        """Create or CAS-update a document.

        A new document (no version) is written as a create; an existing one
        must carry the version from its most recent read. There is no retry
        here: on conflict the caller re-reads and decides.

        Returns:
            The new version token

        Raises:
            ValidationError: The document is malformed (nothing is sent)
            WriteConflictError: Another writer changed the document since it was read
        """
        document.validate()

        payload = {**document.payload, "id": document.id, "updatedAt": utc_now_iso()}
        payload.setdefault("createdAt", payload["updatedAt"])
        content = json.dumps(payload, ensure_ascii=False, indent=2)

        path = self.document_path(document.collection, document.id)
        action = "Create" if document.is_new else "Save"
        try:
            version = await self.blobs.put(
                path,
                content,
                version=document.version,
                message=f"{action} {document.collection} {document.id}",
            )
        except WriteConflictError as e:
            logger.info(f"Write conflict on {document.collection}/{document.id}")
            raise WriteConflictError(document.id, document.version) from e

        logger.info(f"{action}d {document.collection}/{document.id}")
        return version

    async def create(
        self,
        collection: str,
        values: Mapping[str, Any],
        model_id: str | None = None,
        doc_id: str | None = None,
    ) -> Document:
        """Create a document with a fresh id and return it with its version."""
        document = create_document(collection, values, model_id=model_id, doc_id=doc_id)
        version = await self.write(document)
        return dataclasses.replace(document, version=version)

    async def read_singleton(self, path: str | None = None) -> tuple[dict[str, Any], str] | None:
        """Read the schema/configuration document as (payload, version)."""
        path = path or self.singleton_path
        blob = await self.blobs.get(path)
        if blob is None:
            return None
        try:
            payload = json.loads(blob.content)
        except ValueError as e:
            logger.warning(f"Configuration document {path} is not valid JSON: {e}")
            return None
        if not isinstance(payload, dict):
            logger.warning(f"Configuration document {path} is not a JSON object")
            return None
        return payload, blob.version

    async def write_singleton(
        self,
        payload: Mapping[str, Any],
        version: str | None = None,
        path: str | None = None,
    ) -> str:
        """CAS-write the schema/configuration document."""
        path = path or self.singleton_path
        content = json.dumps(dict(payload), ensure_ascii=False, indent=2)
        version = await self.blobs.put(path, content, version=version, message=f"Update {path}")
        logger.info(f"Updated configuration document {path}")
        return version
