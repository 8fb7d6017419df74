"""Shared test data and helpers for populating the host field-value tables."""

from __future__ import annotations

import uuid

from sqlalchemy import Engine, insert

from cloudblob.persistence.schema import field_value_tables

BLOB_FIELD_ID = uuid.UUID("40e50ed9-ba07-4702-992e-a912738d32dc")
TITLE_FIELD_ID = uuid.UUID("75577384-3c97-45da-a847-81b00500e250")
IMAGE_TEMPLATE_ID = uuid.UUID("76036f5e-cbce-46d1-af0a-4143f9b557aa")


def add_field_value(
    engine: Engine,
    value: str | None,
    *,
    table: str = "VersionedFields",
    field_id: uuid.UUID = BLOB_FIELD_ID,
) -> None:
    """Store a field value in one of the host field-value tables."""
    with engine.begin() as conn:
        conn.execute(
            insert(field_value_tables[table]).values(
                Id=uuid.uuid4(),
                ItemId=uuid.uuid4(),
                FieldId=field_id,
                Value=value,
            )
        )


def braced(blob_id: uuid.UUID) -> str:
    """Format a blob id the way the host stores references."""
    return "{" + str(blob_id).upper() + "}"
