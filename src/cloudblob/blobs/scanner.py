"""Reference scanner: which blob ids does live content still point at?

Walks every blob-typed field of the content model and reads its distinct
values from each field-value table (shared, unversioned, versioned and
archived). Archived values count: items in the recycle bin still reference
their blobs until the bin is emptied.

Values are truncated to 38 characters and parsed as identifiers. Values that
do not parse are skipped, counted and logged, never fatal to the scan.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select

from cloudblob.blobs.content_model import ContentModel, iter_blob_fields
from cloudblob.blobs.ids import parse_reference
from cloudblob.persistence.schema import FIELD_VALUE_TABLE_NAMES, field_value_tables

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)

MAX_MALFORMED_SAMPLES = 20


@dataclass
class ScanResult:
    """Outcome of one reference scan.

    Attributes:
        blob_ids: The Reference Set.
        fields_scanned: Number of distinct blob-typed fields examined.
        values_seen: Number of distinct (table, field, value) rows read.
        malformed_count: Values that did not parse as an identifier.
        malformed_samples: Up to MAX_MALFORMED_SAMPLES offending values.
    """

    blob_ids: frozenset[uuid.UUID] = frozenset()
    fields_scanned: int = 0
    values_seen: int = 0
    malformed_count: int = 0
    malformed_samples: list[str] = field(default_factory=list)


class ReferenceScanner:
    """Scans the host field-value tables for blob references.

    Args:
        conn: Connection to the content database. The cleanup sweep passes
            the connection of its own transaction so the scan and the delete
            decision see the same snapshot.
        tables: Field-value table names to read (default: all four scopes).
    """

    def __init__(
        self,
        conn: Connection,
        tables: tuple[str, ...] = FIELD_VALUE_TABLE_NAMES,
    ) -> None:
        self._conn = conn
        self._tables = [field_value_tables[name] for name in tables]

    def scan(self, content_model: ContentModel) -> ScanResult:
        """Compute the Reference Set for a content model."""
        blob_ids: set[uuid.UUID] = set()
        result = ScanResult()

        for blob_field in iter_blob_fields(content_model):
            result.fields_scanned += 1
            for table in self._tables:
                stmt = (
                    select(table.c.Value)
                    .distinct()
                    .where(table.c.FieldId == blob_field.id)
                    .where(table.c.Value.is_not(None))
                    .where(table.c.Value != "")
                )
                for (value,) in self._conn.execute(stmt):
                    result.values_seen += 1
                    blob_id = parse_reference(value)
                    if blob_id is None:
                        result.malformed_count += 1
                        if len(result.malformed_samples) < MAX_MALFORMED_SAMPLES:
                            result.malformed_samples.append(value)
                        logger.warning(
                            "Skipping malformed blob reference: table=%s field=%s value=%r",
                            table.name,
                            blob_field.id,
                            value[:64],
                        )
                        continue
                    blob_ids.add(blob_id)

        result.blob_ids = frozenset(blob_ids)
        logger.info(
            "Reference scan complete: fields=%d values=%d referenced=%d malformed=%d",
            result.fields_scanned,
            result.values_seen,
            len(result.blob_ids),
            result.malformed_count,
        )
        return result
