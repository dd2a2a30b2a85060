"""Tests for structured JSON logging."""

import io
import json
import logging
import sys

import pytest

from blobdoc_storage.exceptions import RemoteError
from blobdoc_storage.logging_utils import (
    StructuredJsonFormatter,
    configure_structured_logging,
    get_storage_logger,
)
from blobdoc_storage.sync.cache import PendingDeletions, ReconciliationCache

from .conftest import patient


def make_record(msg="Saved patients/p1", **context):
    record = logging.LogRecord(
        name="blobdoc_storage.documents.store",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in context.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    """One JSON object per record."""

    def test_core_fields(self):
        output = StructuredJsonFormatter().format(make_record())

        data = json.loads(output)
        assert data["level"] == "INFO"
        assert data["logger"] == "blobdoc_storage.documents.store"
        assert data["message"] == "Saved patients/p1"
        assert data["timestamp"].endswith("+00:00")
        assert "\n" not in output

    def test_document_context_fields(self):
        """collection, doc_id and path become top-level keys; other attributes do not."""
        record = make_record(collection="patients", doc_id="p1", path="patients/p1.json", blob="x")

        data = json.loads(StructuredJsonFormatter().format(record))

        assert data["collection"] == "patients"
        assert data["doc_id"] == "p1"
        assert data["path"] == "patients/p1.json"
        assert "blob" not in data
        assert "operation" not in data

    def test_unicode_is_kept(self):
        data = json.loads(StructuredJsonFormatter().format(make_record("บันทึก สมชาย")))
        assert data["message"] == "บันทึก สมชาย"

    def test_storage_error_details(self):
        """A logged StorageError contributes its type and details."""
        try:
            raise RemoteError(503, "unavailable", "patients/p1.json")
        except RemoteError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(StructuredJsonFormatter().format(record))

        assert data["error"] == {
            "type": "RemoteError",
            "status_code": 503,
            "path": "patients/p1.json",
        }
        assert "Remote error 503: unavailable" in data["exception"]


class TestStorageLoggers:
    """Context-bound loggers."""

    def test_bound_context_is_stamped(self, caplog):
        log = get_storage_logger("blobdoc_storage.test", collection="patients")

        with caplog.at_level(logging.INFO, logger="blobdoc_storage.test"):
            log.info("Loaded", extra={"doc_id": "p1"})

        record = caplog.records[-1]
        assert record.collection == "patients"
        assert record.doc_id == "p1"

    def test_bind_adds_context(self, caplog):
        log = get_storage_logger("blobdoc_storage.test", collection="patients").bind(doc_id="p2")

        with caplog.at_level(logging.INFO, logger="blobdoc_storage.test"):
            log.info("Deleted")

        assert caplog.records[-1].doc_id == "p2"
        assert caplog.records[-1].collection == "patients"

    def test_unknown_context_is_rejected(self):
        with pytest.raises(ValueError, match="patient_name"):
            get_storage_logger("blobdoc_storage.test", patient_name="Somchai")

    def test_configure_replaces_only_its_handler(self):
        """Reconfiguring swaps the JSON handler and keeps application handlers."""
        logger = logging.getLogger("blobdoc_storage.configured")
        app_handler = logging.NullHandler()
        logger.addHandler(app_handler)
        stream = io.StringIO()

        configure_structured_logging(logging.DEBUG, "blobdoc_storage.configured")
        configure_structured_logging(logging.DEBUG, "blobdoc_storage.configured", stream=stream)
        get_storage_logger("blobdoc_storage.configured", collection="patients").debug("hello")

        json_handlers = [
            h for h in logger.handlers if isinstance(h.formatter, StructuredJsonFormatter)
        ]
        assert len(json_handlers) == 1
        assert app_handler in logger.handlers
        assert json.loads(stream.getvalue())["collection"] == "patients"
        logger.handlers.clear()


class TestComponentLogging:
    """Components log with their document context."""

    @pytest.mark.asyncio
    async def test_cache_errors_carry_collection_and_id(
        self, blobs, orchestrator, tmp_path, caplog
    ):
        """Failed remote deletes name the collection and document."""
        blobs.seed("patients/p1.json", patient("p1", name="Somchai"))
        blobs.put_failures["deleted_log/p1"] = RemoteError(500, "boom")
        pending = PendingDeletions(tmp_path / "pending.json")
        await pending.load()
        cache = ReconciliationCache(orchestrator, pending, "patients")

        with caplog.at_level(logging.ERROR, logger="blobdoc_storage.sync.cache"):
            assert await cache.delete("p1") is False

        errors = [r for r in caplog.records if r.name == "blobdoc_storage.sync.cache"]
        assert errors[-1].collection == "patients"
        assert errors[-1].doc_id == "p1"

    @pytest.mark.asyncio
    async def test_skipped_members_carry_doc_id(self, blobs, orchestrator, caplog):
        blobs.seed("patients/p1.json", patient("p1", name="Somchai"))
        blobs.get_failures["patients/p1.json"] = RemoteError(500, "boom")

        with caplog.at_level(logging.WARNING, logger="blobdoc_storage.sync.orchestrator"):
            await orchestrator.fetch_collection("patients")

        record = caplog.records[-1]
        assert (record.collection, record.doc_id, record.operation) == ("patients", "p1", "fetch")

    @pytest.mark.asyncio
    async def test_tombstones_carry_marker_path(self, ledger, caplog):
        with caplog.at_level(logging.INFO, logger="blobdoc_storage.tombstones"):
            await ledger.mark_deleted("p1")

        record = caplog.records[-1]
        assert record.doc_id == "p1"
        assert record.path == "deleted_log/p1"
