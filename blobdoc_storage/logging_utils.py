"""
Structured logging for document store operations.

Every record can carry the document it is about: ``collection``, ``doc_id``
and the blob ``path``. Components bind that context once through
:func:`get_storage_logger` and the JSON formatter emits it as top-level
fields, together with the ``details`` of any StorageError being logged.

Example:
    >>> configure_structured_logging(logging.DEBUG)
    >>> log = get_storage_logger(__name__, collection="patients")
    >>> log.warning("Skipping unreadable document", extra={"doc_id": "p1"})
    {"timestamp": "...", "level": "WARNING", ..., "collection": "patients", "doc_id": "p1"}
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import IO, Any

from .exceptions import StorageError

PACKAGE_LOGGER = "blobdoc_storage"

# Record attributes promoted to top-level JSON fields, in output order
CONTEXT_FIELDS = ("collection", "doc_id", "path", "operation")


class StructuredJsonFormatter(logging.Formatter):
    """Formats records as one JSON object per line.

    Fields: timestamp (UTC, ISO 8601), level, logger, message, then any
    context fields present on the record, then ``error`` (type and details
    of a StorageError) and ``exception`` (formatted traceback).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            error = record.exc_info[1]
            if isinstance(error, StorageError):
                entry["error"] = {"type": type(error).__name__, **error.details}
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str = PACKAGE_LOGGER,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Send a logger's records to ``stream`` (default stdout) as JSON lines.

    Calling it again replaces the JSON handler instead of adding a second
    one; handlers installed by the application are left alone.
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, StructuredJsonFormatter):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class StorageLoggerAdapter(logging.LoggerAdapter):
    """Logger that stamps bound document context onto every record.

    Per-call ``extra`` wins over bound context, so a collection-scoped
    logger can still name the document a message is about.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def bind(self, **context: Any) -> StorageLoggerAdapter:
        """A new adapter with additional context."""
        return StorageLoggerAdapter(self.logger, {**self.extra, **context})


def get_storage_logger(name: str, **context: Any) -> StorageLoggerAdapter:
    """Logger for ``name`` (usually ``__name__``) with bound context.

    Context keys are the CONTEXT_FIELDS (collection, doc_id, path, operation).
    """
    unknown = set(context) - set(CONTEXT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown log context: {', '.join(sorted(unknown))}")
    return StorageLoggerAdapter(logging.getLogger(name), _clean(context))


def _clean(context: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in context.items() if value is not None}
