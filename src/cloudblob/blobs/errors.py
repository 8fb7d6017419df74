"""Blob provider error types.

These specialize the object storage errors so callers can catch either the
provider-level type or the generic storage one.
"""

from __future__ import annotations

import uuid

from cloudblob.storage.errors import ObjectNotFoundError, StorageBackendError


class BlobNotFoundError(ObjectNotFoundError):
    """Raised when reading a blob whose bytes are not in the object store."""

    def __init__(self, blob_id: uuid.UUID) -> None:
        super().__init__("Blob not found", key=str(blob_id))
        self.blob_id = blob_id


class BlobStoreUnavailableError(StorageBackendError):
    """Raised when the object store fails transiently during a blob operation.

    Distinct from BlobNotFoundError: the blob may well exist, the store just
    could not answer. Safe to retry.
    """

    def __init__(self, blob_id: uuid.UUID, operation: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Object store unavailable during {operation}",
            key=str(blob_id),
            cause=cause,
        )
        self.blob_id = blob_id
        self.operation = operation


class CleanupFailedError(Exception):
    """Raised when the cleanup sweep still fails after every retry attempt.

    Attributes:
        attempts: Number of attempts made.
        last_error: Exception raised by the final attempt.
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Blob cleanup failed after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error
