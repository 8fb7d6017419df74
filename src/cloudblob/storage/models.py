"""Object storage data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StoredObjectMetadata:
    """Metadata for a stored object.

    Nothing here is persisted next to the object itself; it is derived from
    the backend's own view of the object (file stat, S3 response headers).

    Attributes:
        key: Object key (canonical blob identifier string).
        size_bytes: Size of the object content in bytes.
        last_modified: Backend-reported modification time, if known.
    """

    key: str
    size_bytes: int
    last_modified: datetime | None = None

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert metadata to dictionary for JSON serialization."""
        return {
            "key": self.key,
            "size_bytes": self.size_bytes,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass(frozen=True)
class StoredObject:
    """A stored object with metadata and body content."""

    metadata: StoredObjectMetadata
    body: bytes
