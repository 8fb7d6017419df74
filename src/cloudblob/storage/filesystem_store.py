"""Filesystem object storage backend.

Local storage for development and testing. Objects live in one flat
directory, one file per blob key, written atomically through a temp file
and rename so readers never observe a partial object.

Environment Variables:
    CLOUDBLOB_OBJECT_STORE_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / cloudblob_objects)
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO

from cloudblob.storage.errors import ObjectNotFoundError, StorageBackendError
from cloudblob.storage.models import StoredObject, StoredObjectMetadata
from cloudblob.storage.object_store import ObjectData, ObjectStore, validate_key
from cloudblob.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

CLOUDBLOB_OBJECT_STORE_BASE_DIR_ENV = "CLOUDBLOB_OBJECT_STORE_BASE_DIR"

_TMP_SUFFIX = ".tmp"


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based object storage implementation.

    Layout:
        {base_dir}/{key}                 # content
        {base_dir}/{key}.{hex}.tmp       # in-flight write, renamed on success
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses
                CLOUDBLOB_OBJECT_STORE_BASE_DIR env var or OS temp directory.
        """
        if base_dir is None:
            base_dir = os.environ.get(CLOUDBLOB_OBJECT_STORE_BASE_DIR_ENV)

        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "cloudblob_objects"
        else:
            base_dir = Path(base_dir)

        self._base_dir = base_dir.resolve()
        logger.debug("FilesystemObjectStore initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def _object_path(self, key: str) -> Path:
        return self._base_dir / validate_key(key)

    def _metadata_for(self, key: str, path: Path) -> StoredObjectMetadata:
        stat = path.stat()
        return StoredObjectMetadata(
            key=key,
            size_bytes=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
        )

    @traced_storage_operation("put")
    def put(self, key: str, data: ObjectData) -> StoredObjectMetadata:
        """Store an object atomically."""
        path = self._object_path(key)
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}{_TMP_SUFFIX}")

        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            try:
                if isinstance(data, bytes | bytearray | memoryview):
                    tmp_path.write_bytes(bytes(data))
                else:
                    with tmp_path.open("wb") as out:
                        shutil.copyfileobj(data, out)
                tmp_path.replace(path)
            except BaseException:
                tmp_path.unlink(missing_ok=True)
                raise
            metadata = self._metadata_for(key, path)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to write object: {e}",
                key=key,
                cause=e,
            ) from e

        logger.debug("Stored object: key=%s size=%d", key, metadata.size_bytes)
        return metadata

    @traced_storage_operation("get")
    def get(self, key: str) -> StoredObject:
        """Retrieve an object."""
        path = self._object_path(key)
        try:
            body = path.read_bytes()
            metadata = self._metadata_for(key, path)
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read object: {e}",
                key=key,
                cause=e,
            ) from e

        return StoredObject(metadata=metadata, body=body)

    @traced_storage_operation("open_stream")
    def open_stream(self, key: str) -> BinaryIO:
        """Open the object file for reading."""
        path = self._object_path(key)
        try:
            return path.open("rb")
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to open object: {e}",
                key=key,
                cause=e,
            ) from e

    @traced_storage_operation("head")
    def head(self, key: str) -> StoredObjectMetadata:
        """Get object metadata without retrieving content."""
        path = self._object_path(key)
        try:
            return self._metadata_for(key, path)
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to stat object: {e}",
                key=key,
                cause=e,
            ) from e

    @traced_storage_operation("delete")
    def delete(self, key: str) -> None:
        """Delete an object."""
        path = self._object_path(key)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete object: {e}",
                key=key,
                cause=e,
            ) from e

        logger.debug("Deleted object: key=%s", key)
