"""Cloud blob storage provider.

Blob bytes live in an object store under the key str(blob_id). A relational
ledger (the Blobs table) records which blob ids have been written, so
existence checks never touch the object store. The cleanup sweep removes
blobs that no content references any more.

Writes to one blob id are serialized by a per-blob lock; writes to different
ids proceed in parallel.

Environment Variables:
    CLOUDBLOB_LOCK_TIMEOUT_SECONDS: Bounded wait for a per-blob lock
        (default: unbounded)
    CLOUDBLOB_CONTENT_MODEL_PATH: JSON template catalogue used by cleanup
        (default: unset, cleanup refuses to run)
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, BinaryIO

from sqlalchemy.exc import SQLAlchemyError

from cloudblob.blobs.cleanup import BlobCleanupSweep, CleanupPolicy, SweepReport
from cloudblob.blobs.content_model import ContentModel, ContentModelError, JsonContentModel
from cloudblob.blobs.errors import BlobNotFoundError, BlobStoreUnavailableError
from cloudblob.blobs.ids import blob_key, coerce_blob_id
from cloudblob.blobs.interface import BlobStorage
from cloudblob.blobs.locks import BlobLockSet
from cloudblob.blobs.retry import RetryPolicy, run_with_retry
from cloudblob.persistence.blob_index import BlobIndexRepository
from cloudblob.persistence.db import begin_conn, get_engine
from cloudblob.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    StorageBackendError,
)
from cloudblob.storage.factory import create_object_store_from_env

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from cloudblob.storage.object_store import ObjectData, ObjectStore

logger = logging.getLogger(__name__)

CLOUDBLOB_LOCK_TIMEOUT_ENV = "CLOUDBLOB_LOCK_TIMEOUT_SECONDS"
CLOUDBLOB_CONTENT_MODEL_PATH_ENV = "CLOUDBLOB_CONTENT_MODEL_PATH"


@dataclass(frozen=True)
class BlobWriteResult:
    """Result of a successful write.

    Attributes:
        blob_id: Blob identifier written.
        size_bytes: Bytes stored.
        created_at: Timestamp of the ledger row.
    """

    blob_id: uuid.UUID
    size_bytes: int
    created_at: datetime


class CloudBlobStorageProvider(BlobStorage):
    """Blob storage backed by an object store and a relational ledger.

    Args:
        engine: Engine for the ledger database.
        object_store: Store holding the blob bytes.
        content_model: Template definitions used to find blob references.
            Required only for cleanup.
        cleanup_policy: Grace window for the sweep.
        retry_policy: Attempts and backoff for the sweep.
        lock_timeout: Maximum seconds to wait for a per-blob lock
            (None waits indefinitely).
    """

    def __init__(
        self,
        engine: Engine,
        object_store: ObjectStore,
        *,
        content_model: ContentModel | None = None,
        cleanup_policy: CleanupPolicy | None = None,
        retry_policy: RetryPolicy | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        self._engine = engine
        self._store = object_store
        self._content_model = content_model
        self._cleanup_policy = cleanup_policy or CleanupPolicy()
        self._retry_policy = retry_policy or RetryPolicy()
        self._lock_timeout = lock_timeout
        self._locks = BlobLockSet()

    @property
    def locks(self) -> BlobLockSet:
        """Per-blob locks shared by this provider's writers and its sweep."""
        return self._locks

    def read(self, blob_id: uuid.UUID | str) -> BinaryIO:
        """Open a stream over a blob's bytes.

        The stream comes straight from the object store and is not buffered
        in memory; the caller must close it.

        Raises:
            BlobNotFoundError: If the object store has no such blob.
            BlobStoreUnavailableError: If the object store could not answer.
        """
        blob_id = coerce_blob_id(blob_id)
        try:
            return self._store.open_stream(blob_key(blob_id))
        except ObjectNotFoundError as e:
            raise BlobNotFoundError(blob_id) from e
        except StorageBackendError as e:
            raise BlobStoreUnavailableError(blob_id, "read", e) from e

    def exists(self, blob_id: uuid.UUID | str) -> bool:
        """Check the ledger for the blob. Unknown ids are simply absent."""
        blob_id = coerce_blob_id(blob_id)
        with begin_conn(self._engine) as conn:
            return BlobIndexRepository(conn).exists(blob_id)

    def write(self, data: ObjectData, blob_id: uuid.UUID | str) -> BlobWriteResult:
        """Upload a blob, then record it in the ledger.

        A ledger row is only written once the upload has succeeded, so a
        failed upload leaves no trace in the ledger.

        Raises:
            BlobStoreUnavailableError: If the upload failed.
            BlobLockTimeoutError: If the blob's lock was not acquired in time.
            SQLAlchemyError: If the ledger insert failed after a good upload.
        """
        blob_id = coerce_blob_id(blob_id)
        with self._locks.hold(blob_id, timeout=self._lock_timeout):
            try:
                metadata = self._store.put(blob_key(blob_id), data)
            except StorageBackendError as e:
                logger.error("Blob upload failed: %s: %s", blob_id, e)
                raise BlobStoreUnavailableError(blob_id, "write", e) from e

            try:
                with begin_conn(self._engine) as conn:
                    entry = BlobIndexRepository(conn).insert(blob_id)
            except SQLAlchemyError:
                logger.error(
                    "Blob uploaded but not recorded in the ledger, object is untracked: %s",
                    blob_id,
                )
                raise

        logger.debug("Wrote blob: %s size=%d", blob_id, metadata.size_bytes)
        return BlobWriteResult(
            blob_id=blob_id,
            size_bytes=metadata.size_bytes,
            created_at=entry.created_at,
        )

    def delete(self, blob_id: uuid.UUID | str) -> bool:
        """Delete a blob's object and its ledger rows.

        The object goes first; the ledger is only touched once the store has
        confirmed the object is gone.

        Returns:
            True if the object or any ledger row existed.

        Raises:
            BlobStoreUnavailableError: If the object delete failed.
        """
        blob_id = coerce_blob_id(blob_id)
        with self._locks.hold(blob_id, timeout=self._lock_timeout):
            object_existed = True
            try:
                self._store.delete(blob_key(blob_id))
            except ObjectNotFoundError:
                object_existed = False
            except StorageBackendError as e:
                raise BlobStoreUnavailableError(blob_id, "delete", e) from e

            with begin_conn(self._engine) as conn:
                rows = BlobIndexRepository(conn).delete(blob_id)

        logger.debug("Deleted blob: %s object=%s ledger_rows=%d", blob_id, object_existed, rows)
        return object_existed or rows > 0

    def cleanup(self, dry_run: bool = False) -> SweepReport:
        """Run the cleanup sweep, retrying the whole sweep on failure.

        Raises:
            ContentModelError: If no content model was configured.
            CleanupFailedError: If every attempt failed.
        """
        if self._content_model is None:
            raise ContentModelError("Cleanup requires a content model")

        sweep = BlobCleanupSweep(
            self._engine,
            self._store,
            self._content_model,
            grace_period=self._cleanup_policy.grace_period,
            locks=self._locks,
            lock_timeout=self._lock_timeout,
        )
        return run_with_retry(
            lambda: sweep.run(dry_run=dry_run),
            self._retry_policy,
            name="Blob cleanup",
        )

    def get_blob_stream(self, blob_id: uuid.UUID, context: Any = None) -> BinaryIO:
        return self.read(blob_id)

    def blob_stream_exists(self, blob_id: uuid.UUID, context: Any = None) -> bool:
        return self.exists(blob_id)

    def remove_blob_stream(self, blob_id: uuid.UUID, context: Any = None) -> bool:
        return self.delete(blob_id)

    def set_blob_stream(self, stream: ObjectData, blob_id: uuid.UUID, context: Any = None) -> bool:
        try:
            self.write(stream, blob_id)
        except ObjectStorageError as e:
            logger.error("set_blob_stream failed: %s: %s", blob_id, e)
            return False
        return True

    def cleanup_blobs(self, context: Any = None) -> None:
        self.cleanup()


def _lock_timeout_from_env() -> float | None:
    raw = os.environ.get(CLOUDBLOB_LOCK_TIMEOUT_ENV, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{CLOUDBLOB_LOCK_TIMEOUT_ENV} must be a number, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{CLOUDBLOB_LOCK_TIMEOUT_ENV} must not be negative, got {raw!r}")
    return value


def create_provider_from_env(content_model: ContentModel | None = None) -> CloudBlobStorageProvider:
    """Build a provider wired from environment configuration.

    Args:
        content_model: Overrides CLOUDBLOB_CONTENT_MODEL_PATH when given.

    Raises:
        DatabaseConfigError: If the ledger database is not configured.
        ObjectStoreConfigError: If the object store is not configured.
        ContentModelError: If the configured content model cannot be loaded.
        ValueError: If a numeric setting is malformed or negative.
    """
    if content_model is None:
        path = os.environ.get(CLOUDBLOB_CONTENT_MODEL_PATH_ENV, "").strip()
        if path:
            content_model = JsonContentModel.from_file(path)

    return CloudBlobStorageProvider(
        get_engine(),
        create_object_store_from_env(),
        content_model=content_model,
        cleanup_policy=CleanupPolicy.from_env(),
        retry_policy=RetryPolicy.from_env(),
        lock_timeout=_lock_timeout_from_env(),
    )
