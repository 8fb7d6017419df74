"""Blob identifier helpers."""

from __future__ import annotations

import uuid

# Length of the braced identifier form: {xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx}
REFERENCE_PREFIX_LENGTH = 38


def coerce_blob_id(value: uuid.UUID | str) -> uuid.UUID:
    """Return ``value`` as a UUID.

    Raises:
        ValueError: If a string value does not parse as a UUID.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise ValueError(f"Invalid blob identifier: {value!r}") from e


def blob_key(blob_id: uuid.UUID) -> str:
    """Object store key for a blob: the canonical lowercase hyphenated form."""
    return str(blob_id)


def parse_reference(value: str) -> uuid.UUID | None:
    """Parse a stored field value as a blob reference.

    Only the first 38 characters are considered, so trailing data after a
    braced identifier is ignored. Returns None when the prefix is not an
    identifier.
    """
    try:
        return uuid.UUID(value[:REFERENCE_PREFIX_LENGTH])
    except ValueError:
        return None
