"""Object storage error types.

All errors are fail-closed: a storage operation that cannot complete safely
raises rather than returning an empty or success-shaped result. Callers can
tell a missing object (ObjectNotFoundError) apart from a backend failure
(StorageBackendError) and decide whether to retry.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        key: Object key associated with the operation (if applicable).
    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key:
            return f"{self.message} key={self.key}"
        return self.message


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an object does not exist in the store."""

    def __init__(self, message: str = "Object not found", *, key: str | None = None) -> None:
        super().__init__(message, key=key)


class InvalidObjectKeyError(ObjectStorageError):
    """Raised when an object key is not a canonical blob identifier string.

    Object keys are flat, lowercase, hyphenated UUID strings. Anything else
    (path separators, traversal sequences, braces) is rejected before it
    reaches a backend.
    """

    def __init__(
        self,
        message: str = "Invalid key: not a canonical blob identifier",
        *,
        key: str | None = None,
    ) -> None:
        super().__init__(message, key=key)


class StorageBackendError(ObjectStorageError):
    """Raised when the storage backend cannot complete an operation.

    Covers network failures, throttling, timeouts, permission problems and
    local I/O errors, as opposed to the logical "object not found" case.
    The original exception is kept in ``cause``.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, key=key)
        self.cause = cause


class BlobLockTimeoutError(ObjectStorageError):
    """Raised when a per-blob lock could not be acquired within the timeout."""

    def __init__(
        self,
        message: str = "Timed out waiting for blob lock",
        *,
        key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(message, key=key)
        self.timeout = timeout


class ObjectStoreConfigError(Exception):
    """Raised when object store configuration is missing or invalid."""

    pass
