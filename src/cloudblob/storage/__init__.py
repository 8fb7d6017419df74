"""Object storage abstraction for blob bytes.

Backends:
- S3ObjectStore: AWS S3 compatible (production)
- FilesystemObjectStore: Local filesystem (dev/test)

Environment Variables:
    CLOUDBLOB_OBJECT_STORE_BACKEND: "s3" or "filesystem" (default: "s3")
    CLOUDBLOB_OBJECT_STORE_BASE_DIR: Base directory for filesystem backend
        (default: OS temp dir / cloudblob_objects)
"""

from cloudblob.storage.errors import (
    BlobLockTimeoutError,
    InvalidObjectKeyError,
    ObjectNotFoundError,
    ObjectStorageError,
    ObjectStoreConfigError,
    StorageBackendError,
)
from cloudblob.storage.factory import create_object_store_from_env
from cloudblob.storage.models import StoredObject, StoredObjectMetadata
from cloudblob.storage.object_store import ObjectStore, validate_key

__all__ = [
    "ObjectStore",
    "StoredObject",
    "StoredObjectMetadata",
    "ObjectStorageError",
    "ObjectNotFoundError",
    "InvalidObjectKeyError",
    "StorageBackendError",
    "BlobLockTimeoutError",
    "ObjectStoreConfigError",
    "create_object_store_from_env",
    "validate_key",
]
