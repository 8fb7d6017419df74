"""Blob Index repository over the Blobs ledger table.

The ledger is a fast, queryable proxy for "does this blob exist". Real bytes
never land here: every row carries an empty Data payload and partIndex 0.
The write path only appends; bulk deletion is reserved for the cleanup sweep.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, select

from cloudblob.persistence.schema import blobs_table

if TYPE_CHECKING:
    from sqlalchemy import Connection, Table

logger = logging.getLogger(__name__)

PART_INDEX = 0
EMPTY_PAYLOAD = b""


@dataclass(frozen=True)
class BlobIndexEntry:
    """One row of the Blobs ledger.

    Attributes:
        entry_id: Surrogate key of the row.
        blob_id: Blob identifier the row tracks.
        part_index: Always 0; blobs are never chunked.
        created_at: UTC time the row was written.
    """

    entry_id: uuid.UUID
    blob_id: uuid.UUID
    part_index: int
    created_at: datetime


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; everything written here is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class BlobIndexRepository:
    """Repository for Blobs ledger rows.

    Args:
        conn: SQLAlchemy connection (must be in a transaction owned by the caller).
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn

    def insert(self, blob_id: uuid.UUID, created_at: datetime | None = None) -> BlobIndexEntry:
        """Append a ledger row for a blob.

        Args:
            blob_id: Blob identifier.
            created_at: Row timestamp; defaults to now (UTC).

        Returns:
            The inserted entry.
        """
        entry_id = uuid.uuid4()
        created = created_at or datetime.now(UTC)
        self._conn.execute(
            insert(blobs_table).values(
                Id=entry_id,
                BlobId=blob_id,
                Index=PART_INDEX,
                Created=created,
                Data=EMPTY_PAYLOAD,
            )
        )
        return BlobIndexEntry(
            entry_id=entry_id,
            blob_id=blob_id,
            part_index=PART_INDEX,
            created_at=_as_utc(created),
        )

    def exists(self, blob_id: uuid.UUID) -> bool:
        """Check whether at least one ledger row exists for a blob."""
        result = self._conn.execute(
            select(blobs_table.c.Id).where(blobs_table.c.BlobId == blob_id).limit(1)
        )
        return result.first() is not None

    def get_entries(self, blob_id: uuid.UUID) -> list[BlobIndexEntry]:
        """Return every ledger row for a blob, oldest first."""
        result = self._conn.execute(
            select(
                blobs_table.c.Id,
                blobs_table.c.BlobId,
                blobs_table.c.Index,
                blobs_table.c.Created,
            )
            .where(blobs_table.c.BlobId == blob_id)
            .order_by(blobs_table.c.Created, blobs_table.c.Id)
        )
        return [self._row_to_entry(row) for row in result]

    def list_blob_ids(self) -> list[uuid.UUID]:
        """Return the distinct blob ids present in the ledger, sorted."""
        result = self._conn.execute(
            select(blobs_table.c.BlobId).distinct().order_by(blobs_table.c.BlobId)
        )
        return [row.BlobId for row in result]

    def delete(self, blob_id: uuid.UUID) -> int:
        """Delete every ledger row for one blob.

        Returns:
            Number of rows deleted.
        """
        result = self._conn.execute(delete(blobs_table).where(blobs_table.c.BlobId == blob_id))
        return result.rowcount or 0

    def find_orphans(self, blobs_in_use: Table, cutoff: datetime | None) -> list[uuid.UUID]:
        """List blob ids that are not in use and past the grace window.

        A blob is an orphan when its id is absent from ``blobs_in_use`` and its
        newest ledger row is older than ``cutoff``. With ``cutoff`` None the
        age condition is dropped.

        Args:
            blobs_in_use: Temporary table holding the Reference Set (column ID).
            cutoff: Rows created at or after this time protect their blob.

        Returns:
            Sorted list of orphaned blob ids.
        """
        stmt = (
            select(blobs_table.c.BlobId)
            .where(blobs_table.c.BlobId.not_in(select(blobs_in_use.c.ID)))
            .group_by(blobs_table.c.BlobId)
            .order_by(blobs_table.c.BlobId)
        )
        if cutoff is not None:
            stmt = stmt.having(func.max(blobs_table.c.Created) < cutoff)
        return [row.BlobId for row in self._conn.execute(stmt)]

    def delete_orphans(self, blobs_in_use: Table, cutoff: datetime | None) -> int:
        """Delete the ledger rows of every orphan, as defined by find_orphans.

        Returns:
            Number of rows deleted.
        """
        stmt = delete(blobs_table).where(
            blobs_table.c.BlobId.not_in(select(blobs_in_use.c.ID))
        )
        if cutoff is not None:
            recent = select(blobs_table.c.BlobId).where(blobs_table.c.Created >= cutoff)
            stmt = stmt.where(blobs_table.c.BlobId.not_in(recent))
        result = self._conn.execute(stmt)
        return result.rowcount or 0

    def _row_to_entry(self, row: Any) -> BlobIndexEntry:
        return BlobIndexEntry(
            entry_id=row.Id,
            blob_id=row.BlobId,
            part_index=row.Index,
            created_at=_as_utc(row.Created),
        )
