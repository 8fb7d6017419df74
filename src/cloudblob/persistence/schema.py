"""Table definitions for the blob ledger and the host field-value tables.

Blobs(Id, BlobId, Index, Created, Data) is the ledger owned by this package.
The field-value tables belong to the host content store; they are declared
here only so the reference scanner can query them portably and so dev/test
databases can be created with the same shape.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    Table,
    Text,
    Uuid,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

BLOBS_TABLE_NAME = "Blobs"
BLOBS_IN_USE_TABLE_NAME = "blobs_in_use"

FIELD_VALUE_TABLE_NAMES: tuple[str, ...] = (
    "SharedFields",
    "UnversionedFields",
    "VersionedFields",
    "ArchivedFields",
)

ledger_metadata = MetaData()

blobs_table = Table(
    BLOBS_TABLE_NAME,
    ledger_metadata,
    Column("Id", Uuid, primary_key=True, default=uuid.uuid4),
    Column("BlobId", Uuid, nullable=False),
    Column("Index", Integer, nullable=False, default=0),
    Column("Created", DateTime(timezone=True), nullable=False),
    Column("Data", LargeBinary, nullable=False),
    Index("ix_Blobs_BlobId", "BlobId"),
    Index("ix_Blobs_Created", "Created"),
)

host_metadata = MetaData()


def _field_value_table(name: str) -> Table:
    return Table(
        name,
        host_metadata,
        Column("Id", Uuid, primary_key=True, default=uuid.uuid4),
        Column("ItemId", Uuid, nullable=False),
        Column("FieldId", Uuid, nullable=False),
        Column("Value", Text, nullable=True),
    )


field_value_tables: dict[str, Table] = {
    name: _field_value_table(name) for name in FIELD_VALUE_TABLE_NAMES
}


def blobs_in_use_table() -> Table:
    """Build a fresh temporary table holding the Reference Set of one sweep.

    A new MetaData is used per call so concurrent sweeps in one process never
    share a Table object; the table itself is connection-scoped.
    """
    return Table(
        BLOBS_IN_USE_TABLE_NAME,
        MetaData(),
        Column("ID", Uuid, primary_key=True),
        prefixes=["TEMPORARY"],
    )


def create_blob_tables(engine: Engine) -> None:
    """Create the Blobs ledger table if it does not exist (dev/test)."""
    ledger_metadata.create_all(engine)


def create_host_field_tables(engine: Engine) -> None:
    """Create the host field-value tables if they do not exist (dev/test)."""
    host_metadata.create_all(engine)
