"""Pytest configuration and fixtures for cloudblob tests.

Every test gets a file-backed SQLite database under tmp_path (shared by all
threads of the test) and a filesystem object store, so no network or
database server is needed.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Engine

from cloudblob.blobs.content_model import StaticContentModel, Template, TemplateField
from cloudblob.persistence.db import create_ledger_engine, reset_engines
from cloudblob.persistence.schema import create_blob_tables, create_host_field_tables
from cloudblob.storage.filesystem_store import FilesystemObjectStore
from tests.helpers import BLOB_FIELD_ID, IMAGE_TEMPLATE_ID, TITLE_FIELD_ID


@pytest.fixture(autouse=True)
def clean_cloudblob_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove CLOUDBLOB_* variables so tests never see the host environment."""
    for key in list(os.environ):
        if key.startswith("CLOUDBLOB_"):
            monkeypatch.delenv(key, raising=False)
    reset_engines()
    yield
    reset_engines()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file."""
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def engine(database_url: str) -> Generator[Engine, None, None]:
    """Engine with the Blobs ledger and host field-value tables created."""
    engine = create_ledger_engine(database_url)
    create_blob_tables(engine)
    create_host_field_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def object_store(tmp_path: Path) -> FilesystemObjectStore:
    """Filesystem object store under tmp_path."""
    return FilesystemObjectStore(base_dir=tmp_path / "objects")


@pytest.fixture
def content_model() -> StaticContentModel:
    """Content model with one blob field and one plain text field."""
    return StaticContentModel(
        [
            Template(
                id=IMAGE_TEMPLATE_ID,
                name="Unversioned Image",
                fields=(
                    TemplateField(id=BLOB_FIELD_ID, name="Blob", is_blob=True),
                    TemplateField(id=TITLE_FIELD_ID, name="Title"),
                ),
            )
        ]
    )