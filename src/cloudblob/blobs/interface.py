"""Host-facing blob storage contract.

The content-management host calls these five methods. ``context`` is the
host's opaque call context; implementations accept it and do not interpret it.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any, BinaryIO

from cloudblob.storage.object_store import ObjectData


class BlobStorage(ABC):
    """Abstract blob storage provider as seen by the host."""

    @abstractmethod
    def get_blob_stream(self, blob_id: uuid.UUID, context: Any = None) -> BinaryIO:
        """Open a readable stream over a blob's bytes.

        Raises:
            BlobNotFoundError: If the blob does not exist.
            BlobStoreUnavailableError: If the store could not answer.
        """
        ...

    @abstractmethod
    def blob_stream_exists(self, blob_id: uuid.UUID, context: Any = None) -> bool:
        """Check whether a blob is tracked."""
        ...

    @abstractmethod
    def remove_blob_stream(self, blob_id: uuid.UUID, context: Any = None) -> bool:
        """Remove a blob. Returns whether anything existed."""
        ...

    @abstractmethod
    def set_blob_stream(self, stream: ObjectData, blob_id: uuid.UUID, context: Any = None) -> bool:
        """Store a blob. Returns False when the store rejected the write."""
        ...

    @abstractmethod
    def cleanup_blobs(self, context: Any = None) -> None:
        """Delete blobs no content references any more."""
        ...
