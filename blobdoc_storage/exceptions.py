"""
Custom exceptions for blob document storage.

All blob stores and document layers raise these exceptions
for consistent error handling across backends.

"Not found" is deliberately absent: a missing blob, document or directory
is a normal outcome and is returned as ``None`` or an empty collection.
"""


class StorageError(Exception):
    """Base exception for all blob document storage errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AuthenticationError(StorageError):
    """Raised when the remote store rejects our credentials.

    Fatal: callers must surface it and ask for reconfiguration.
    """

    def __init__(self, endpoint: str, reason: str | None = None):
        details = {"endpoint": endpoint}
        if reason:
            details["reason"] = reason
        message = f"Authentication failed for {endpoint}"
        if reason:
            message += f": {reason}"
        super().__init__(message, details)
        self.endpoint = endpoint
        self.reason = reason


class WriteConflictError(StorageError):
    """Raised when a CAS write or delete presents a stale version token.

    Recoverable: the caller re-reads the target and retries or abandons.
    """

    def __init__(self, target: str, version: str | None = None):
        details = {"target": target}
        if version:
            details["version"] = version
        super().__init__(f"Write conflict on {target}", details)
        self.target = target
        self.version = version


class RemoteError(StorageError):
    """Raised when the remote store answers with an unexpected status."""

    def __init__(self, status_code: int, message: str, path: str | None = None):
        details: dict = {"status_code": status_code}
        if path:
            details["path"] = path
        super().__init__(f"Remote error {status_code}: {message}", details)
        self.status_code = status_code
        self.path = path


class ValidationError(StorageError):
    """Raised when a document or blob fails validation."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class CodecError(ValidationError):
    """Raised when a blob cannot be decoded back into text."""

    def __init__(self, reason: str):
        super().__init__("content", reason)


class StorageConnectionError(StorageError):
    """Raised when the remote store cannot be reached.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | str | None = None):
        details = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        message = f"Connection failed to {endpoint}"
        if isinstance(cause, str):
            message += f": {cause}"
        super().__init__(message, details)
        self.endpoint = endpoint
        self.cause = cause


class StoreBusyError(StorageError):
    """Raised when the write gate of a serialized store could not be acquired in time."""

    def __init__(self, timeout: float):
        super().__init__(
            f"Store busy: write lock not acquired within {timeout:g}s",
            {"timeout": timeout},
        )
        self.timeout = timeout


class StorageIOError(StorageError):
    """Raised when a local storage I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause
