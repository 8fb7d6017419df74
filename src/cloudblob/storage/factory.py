"""Object store backend selection from the environment."""

from __future__ import annotations

import logging
import os

from cloudblob.storage.errors import ObjectStoreConfigError
from cloudblob.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

CLOUDBLOB_OBJECT_STORE_BACKEND_ENV = "CLOUDBLOB_OBJECT_STORE_BACKEND"
DEFAULT_BACKEND = "s3"
VALID_BACKENDS = frozenset({"s3", "filesystem"})


def create_object_store_from_env() -> ObjectStore:
    """Create the configured object store backend.

    Returns:
        S3ObjectStore or FilesystemObjectStore depending on
        CLOUDBLOB_OBJECT_STORE_BACKEND.

    Raises:
        ObjectStoreConfigError: If the backend name is unknown or its
            required settings are missing.
    """
    backend = os.environ.get(CLOUDBLOB_OBJECT_STORE_BACKEND_ENV, DEFAULT_BACKEND).strip().lower()

    if backend not in VALID_BACKENDS:
        raise ObjectStoreConfigError(
            f"Unknown object store backend {backend!r}. Valid options: {sorted(VALID_BACKENDS)}"
        )

    if backend == "filesystem":
        from cloudblob.storage.filesystem_store import FilesystemObjectStore

        return FilesystemObjectStore()

    from cloudblob.storage.s3_store import S3ObjectStore

    return S3ObjectStore.from_env()
