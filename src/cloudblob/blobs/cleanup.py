"""Cleanup sweep: reconcile the ledger and the object store with live references.

One sweep runs in two phases.

Ledger phase, inside a single transaction:
    1. Scan the host field-value tables for the Reference Set.
    2. Load it into a temporary blobs_in_use(ID) table.
    3. Orphans are ledger blob ids not in blobs_in_use whose newest row is
       older than now - grace_period.
    4. Delete the orphans' ledger rows, drop the temporary table, commit.

Object phase, best effort and outside any transaction:
    Delete each orphan's object. With a lock set, each blob is locked and the
    ledger re-checked first; a blob written again since the commit is left
    alone. Objects that cannot be deleted are leaked storage, not lost data,
    and the next sweep does not see them again.

The grace window protects fresh writes whose reference has not been saved
by the host yet.

Environment Variables:
    CLOUDBLOB_CLEANUP_GRACE_SECONDS: Grace window in seconds (default: 3600)
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from cloudblob.blobs.content_model import ContentModel
from cloudblob.blobs.ids import blob_key
from cloudblob.blobs.scanner import ReferenceScanner
from cloudblob.observability.tracing import is_tracing_enabled
from cloudblob.persistence.blob_index import BlobIndexRepository
from cloudblob.persistence.db import begin_conn
from cloudblob.persistence.schema import blobs_in_use_table
from cloudblob.storage.errors import (
    BlobLockTimeoutError,
    ObjectNotFoundError,
    StorageBackendError,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from cloudblob.blobs.locks import BlobLockSet
    from cloudblob.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

CLOUDBLOB_CLEANUP_GRACE_SECONDS_ENV = "CLOUDBLOB_CLEANUP_GRACE_SECONDS"

DEFAULT_GRACE_SECONDS: Final[int] = 3600


@dataclass(frozen=True)
class CleanupPolicy:
    """Sweep configuration.

    Attributes:
        grace_period: Blobs with a ledger row newer than this are never swept.
    """

    grace_period: timedelta = timedelta(seconds=DEFAULT_GRACE_SECONDS)

    def __post_init__(self) -> None:
        if self.grace_period < timedelta(0):
            raise ValueError(f"grace_period must not be negative, got {self.grace_period}")

    @classmethod
    def from_env(cls) -> CleanupPolicy:
        """Load the policy from CLOUDBLOB_CLEANUP_GRACE_SECONDS."""
        raw = os.environ.get(CLOUDBLOB_CLEANUP_GRACE_SECONDS_ENV, "").strip()
        if not raw:
            return cls()
        try:
            seconds = float(raw)
        except ValueError as e:
            raise ValueError(
                f"{CLOUDBLOB_CLEANUP_GRACE_SECONDS_ENV} must be a number, got {raw!r}"
            ) from e
        return cls(grace_period=timedelta(seconds=seconds))


@dataclass
class SweepReport:
    """What one sweep found and did.

    Attributes:
        orphans: Blob ids judged unreferenced, sorted.
        referenced_count: Size of the Reference Set.
        malformed_references: Field values skipped because they did not parse.
        ledger_rows_deleted: Ledger rows removed (0 on a dry run).
        objects_deleted: Objects removed from the store.
        objects_missing: Orphans whose object was already gone.
        objects_leaked: Orphans whose object could not be deleted.
        skipped_rewritten: Orphans written again before their object was removed.
        dry_run: True when nothing was deleted.
    """

    orphans: list[uuid.UUID] = field(default_factory=list)
    referenced_count: int = 0
    malformed_references: int = 0
    ledger_rows_deleted: int = 0
    objects_deleted: int = 0
    objects_missing: int = 0
    objects_leaked: int = 0
    skipped_rewritten: int = 0
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "orphans": [str(blob_id) for blob_id in self.orphans],
            "referenced_count": self.referenced_count,
            "malformed_references": self.malformed_references,
            "ledger_rows_deleted": self.ledger_rows_deleted,
            "objects_deleted": self.objects_deleted,
            "objects_missing": self.objects_missing,
            "objects_leaked": self.objects_leaked,
            "skipped_rewritten": self.skipped_rewritten,
            "dry_run": self.dry_run,
        }


class BlobCleanupSweep:
    """Deletes blobs that no content references.

    Args:
        engine: Engine for the database holding both the ledger and the
            host field-value tables.
        object_store: Store holding the blob bytes.
        content_model: Source of blob-typed field definitions.
        grace_period: Age a blob's newest ledger row must exceed before the
            blob can be swept.
        locks: Lock set shared with the provider's writers. When given, the
            object phase re-checks each orphan under its lock.
        lock_timeout: Maximum seconds to wait for each blob lock.
    """

    def __init__(
        self,
        engine: Engine,
        object_store: ObjectStore,
        content_model: ContentModel,
        *,
        grace_period: timedelta = timedelta(seconds=DEFAULT_GRACE_SECONDS),
        locks: BlobLockSet | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        self._engine = engine
        self._store = object_store
        self._content_model = content_model
        self._grace_period = grace_period
        self._locks = locks
        self._lock_timeout = lock_timeout

    def run(self, dry_run: bool = False, now: datetime | None = None) -> SweepReport:
        """Run one sweep, traced as cloudblob.cleanup.sweep when tracing is on.

        Args:
            dry_run: Report orphans without deleting anything.
            now: Reference time for the grace window (default: current UTC).

        Returns:
            The sweep report.

        Raises:
            SQLAlchemyError: If the ledger phase fails; nothing is committed.
        """
        if not is_tracing_enabled():
            return self._run(dry_run, now)

        try:
            from opentelemetry import trace
        except ImportError:
            return self._run(dry_run, now)

        tracer = trace.get_tracer("cloudblob.cleanup")
        with tracer.start_as_current_span("cloudblob.cleanup.sweep") as span:
            span.set_attribute("cloudblob.sweep.dry_run", dry_run)
            try:
                report = self._run(dry_run, now)
            except Exception as e:
                span.set_attribute("error", True)
                span.set_attribute("error.type", type(e).__name__)
                raise
            span.set_attribute("cloudblob.sweep.orphans", len(report.orphans))
            span.set_attribute("cloudblob.sweep.objects_deleted", report.objects_deleted)
            span.set_attribute("cloudblob.sweep.objects_leaked", report.objects_leaked)
            return report

    def _run(self, dry_run: bool, now: datetime | None) -> SweepReport:
        cutoff = (now or datetime.now(UTC)) - self._grace_period
        report = SweepReport(dry_run=dry_run)

        with begin_conn(self._engine) as conn:
            scan = ReferenceScanner(conn).scan(self._content_model)
            report.referenced_count = len(scan.blob_ids)
            report.malformed_references = scan.malformed_count

            in_use = blobs_in_use_table()
            # A pooled SQLite connection can keep the table from a failed sweep.
            in_use.drop(conn, checkfirst=True)
            in_use.create(conn)
            if scan.blob_ids:
                conn.execute(insert(in_use), [{"ID": blob_id} for blob_id in scan.blob_ids])

            repo = BlobIndexRepository(conn)
            report.orphans = repo.find_orphans(in_use, cutoff)
            if not dry_run:
                report.ledger_rows_deleted = repo.delete_orphans(in_use, cutoff)
            in_use.drop(conn)

        logger.info(
            "Sweep ledger phase: referenced=%d orphans=%d rows_deleted=%d dry_run=%s",
            report.referenced_count,
            len(report.orphans),
            report.ledger_rows_deleted,
            dry_run,
        )

        if dry_run:
            return report

        for blob_id in report.orphans:
            self._delete_object(blob_id, report)

        logger.info(
            "Sweep object phase: deleted=%d missing=%d leaked=%d skipped_rewritten=%d",
            report.objects_deleted,
            report.objects_missing,
            report.objects_leaked,
            report.skipped_rewritten,
        )
        return report

    def _delete_object(self, blob_id: uuid.UUID, report: SweepReport) -> None:
        if self._locks is None:
            self._delete_unlocked(blob_id, report)
            return

        # Ledger rows for this orphan are already deleted. Failures here are
        # counted as leaks and never raised.
        try:
            with self._locks.hold(blob_id, timeout=self._lock_timeout):
                with begin_conn(self._engine) as conn:
                    rewritten = BlobIndexRepository(conn).exists(blob_id)
                if rewritten:
                    logger.info("Skipping object delete, blob was written again: %s", blob_id)
                    report.skipped_rewritten += 1
                    return
                self._delete_unlocked(blob_id, report)
        except BlobLockTimeoutError:
            logger.warning("Leaked object, lock not acquired: %s", blob_id)
            report.objects_leaked += 1
        except SQLAlchemyError as e:
            logger.warning("Leaked object, ledger re-check failed: %s: %s", blob_id, e)
            report.objects_leaked += 1

    def _delete_unlocked(self, blob_id: uuid.UUID, report: SweepReport) -> None:
        try:
            self._store.delete(blob_key(blob_id))
        except ObjectNotFoundError:
            logger.debug("Orphan object already absent: %s", blob_id)
            report.objects_missing += 1
        except StorageBackendError as e:
            logger.warning("Leaked object, delete failed: %s: %s", blob_id, e)
            report.objects_leaked += 1
        else:
            report.objects_deleted += 1
