"""Blobs ledger table.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates Blobs(Id, BlobId, Index, Created, Data):
- One row per write of a blob id; the bytes live in the object store
- Data is always empty and kept only for schema compatibility
- BlobId index serves exists() and the cleanup anti-join
- Created index serves the cleanup grace-window check
"""

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the Blobs table and its indexes."""
    op.create_table(
        "Blobs",
        sa.Column("Id", sa.Uuid(), primary_key=True),
        sa.Column("BlobId", sa.Uuid(), nullable=False),
        sa.Column("Index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("Created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("Data", sa.LargeBinary(), nullable=False),
    )
    op.create_index("ix_Blobs_BlobId", "Blobs", ["BlobId"])
    op.create_index("ix_Blobs_Created", "Blobs", ["Created"])


def downgrade() -> None:
    """Drop the Blobs table."""
    op.drop_index("ix_Blobs_Created", table_name="Blobs")
    op.drop_index("ix_Blobs_BlobId", table_name="Blobs")
    op.drop_table("Blobs")
