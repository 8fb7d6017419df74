"""Object storage interface definition.

Provides the ObjectStore abstract base class that all storage backends
implement, plus key validation shared by every backend.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import BinaryIO

from cloudblob.storage.errors import InvalidObjectKeyError, ObjectNotFoundError
from cloudblob.storage.models import StoredObject, StoredObjectMetadata

ObjectData = bytes | BinaryIO

_BLOB_KEY_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


def validate_key(key: str) -> str:
    """Validate that an object key is a canonical blob identifier string.

    Args:
        key: Object key to check.

    Returns:
        The key, unchanged.

    Raises:
        InvalidObjectKeyError: If the key is not a lowercase hyphenated UUID.
    """
    if not isinstance(key, str) or not _BLOB_KEY_PATTERN.match(key):
        raise InvalidObjectKeyError(key=str(key))
    return key


class ObjectStore(ABC):
    """Abstract base class for object storage backends.

    The key namespace is flat: one object per canonical blob identifier
    string, with no prefixing or sharding. Backends never swallow errors;
    a missing key raises ObjectNotFoundError and every other failure raises
    StorageBackendError.

    Implementations:
    - S3ObjectStore: AWS S3 compatible (production)
    - FilesystemObjectStore: Local filesystem (dev/test)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability (e.g. "s3")."""
        ...

    @abstractmethod
    def put(self, key: str, data: ObjectData) -> StoredObjectMetadata:
        """Store an object, replacing any existing object under the key.

        Args:
            key: Canonical blob identifier string.
            data: Object content as bytes or a readable binary stream.

        Returns:
            Metadata for the stored object.

        Raises:
            InvalidObjectKeyError: If key is not a canonical blob identifier.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def get(self, key: str) -> StoredObject:
        """Retrieve an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            InvalidObjectKeyError: If key is not a canonical blob identifier.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    def open_stream(self, key: str) -> BinaryIO:
        """Open a readable stream over an object without buffering it.

        The caller owns the returned stream and must close it.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            InvalidObjectKeyError: If key is not a canonical blob identifier.
            StorageBackendError: If the backend cannot open the object.
        """
        ...

    @abstractmethod
    def head(self, key: str) -> StoredObjectMetadata:
        """Get object metadata without retrieving content.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            InvalidObjectKeyError: If key is not a canonical blob identifier.
            StorageBackendError: If the backend cannot complete the operation.
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            InvalidObjectKeyError: If key is not a canonical blob identifier.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    def exists(self, key: str) -> bool:
        """Check whether an object exists.

        Raises:
            InvalidObjectKeyError: If key is not a canonical blob identifier.
            StorageBackendError: If the backend cannot answer.
        """
        try:
            self.head(key)
        except ObjectNotFoundError:
            return False
        return True
