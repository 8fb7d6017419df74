"""Tests for the Alembic migrations of the blob ledger (SQLite)."""

from __future__ import annotations

import uuid
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Engine, inspect

from cloudblob.persistence.blob_index import BlobIndexRepository
from cloudblob.persistence.db import begin_conn, create_ledger_engine
from cloudblob.persistence.migrations import (
    get_current_revision,
    get_head_revision,
    run_downgrade,
    run_upgrade,
)


@pytest.fixture
def bare_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Engine on an empty database, without any tables."""
    engine = create_ledger_engine(f"sqlite:///{tmp_path / 'migrate.db'}")
    yield engine
    engine.dispose()


class TestMigrations:
    """Upgrade and downgrade of the ledger schema."""

    def test_head_revision(self) -> None:
        assert get_head_revision() == "0001"

    def test_fresh_database_has_no_revision(self, bare_engine: Engine) -> None:
        assert get_current_revision(bare_engine) is None

    def test_upgrade_creates_blobs_table(self, bare_engine: Engine) -> None:
        run_upgrade(bare_engine)

        inspector = inspect(bare_engine)
        assert "Blobs" in inspector.get_table_names()
        columns = {c["name"] for c in inspector.get_columns("Blobs")}
        assert columns == {"Id", "BlobId", "Index", "Created", "Data"}
        indexes = {i["name"] for i in inspector.get_indexes("Blobs")}
        assert {"ix_Blobs_BlobId", "ix_Blobs_Created"} <= indexes
        assert get_current_revision(bare_engine) == "0001"

    def test_migrated_table_accepts_ledger_writes(self, bare_engine: Engine) -> None:
        run_upgrade(bare_engine)
        blob_id = uuid.uuid4()

        with begin_conn(bare_engine) as conn:
            BlobIndexRepository(conn).insert(blob_id)
        with begin_conn(bare_engine) as conn:
            assert BlobIndexRepository(conn).exists(blob_id) is True

    def test_upgrade_is_idempotent(self, bare_engine: Engine) -> None:
        run_upgrade(bare_engine)
        run_upgrade(bare_engine)

        assert get_current_revision(bare_engine) == "0001"

    def test_downgrade_drops_table(self, bare_engine: Engine) -> None:
        run_upgrade(bare_engine)
        run_downgrade(bare_engine)

        assert "Blobs" not in inspect(bare_engine).get_table_names()
        assert get_current_revision(bare_engine) is None
