"""Relational ledger persistence.

Provides database connectivity, the Blobs table schema, the Blob Index
repository and migration support.
"""

from cloudblob.persistence.blob_index import BlobIndexEntry, BlobIndexRepository
from cloudblob.persistence.db import (
    DatabaseConfigError,
    begin_conn,
    create_ledger_engine,
    get_database_url,
    get_engine,
    is_database_configured,
)
from cloudblob.persistence.schema import create_blob_tables

__all__ = [
    "BlobIndexEntry",
    "BlobIndexRepository",
    "DatabaseConfigError",
    "begin_conn",
    "create_blob_tables",
    "create_ledger_engine",
    "get_database_url",
    "get_engine",
    "is_database_configured",
]
