"""Alembic environment configuration for the blob ledger.

Runs against a connection handed over through ``config.attributes`` (see
cloudblob.persistence.migrations.run_upgrade) or, failing that, the engine
built from CLOUDBLOB_DATABASE_URL.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from alembic import context

from cloudblob.persistence.db import get_database_url, get_engine
from cloudblob.persistence.schema import ledger_metadata

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)

config = context.config
target_metadata = ledger_metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to stdout."""
    context.configure(
        url=get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode on a shared or fresh connection."""
    connection = config.attributes.get("connection")
    if connection is not None:
        _run_with_connection(connection)
        return

    with get_engine().connect() as connection:
        _run_with_connection(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
