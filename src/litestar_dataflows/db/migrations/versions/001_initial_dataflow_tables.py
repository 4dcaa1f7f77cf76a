"""Initial dataflow tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create initial dataflow tables."""
    op.create_table(
        "dataflows",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dataflows_key", "dataflows", ["key"], unique=True)

    op.create_table(
        "dataflow_steps",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("dataflow_pk", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("position_x", sa.Float(), nullable=True),
        sa.Column("position_y", sa.Float(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["dataflow_pk"], ["dataflows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_dataflow_steps_dataflow_key",
        "dataflow_steps",
        ["dataflow_pk", "key"],
        unique=True,
    )

    op.create_table(
        "dataflow_links",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("dataflow_pk", sa.Uuid(), nullable=False),
        sa.Column("source", sa.String(length=255), nullable=False),
        sa.Column("target", sa.String(length=255), nullable=False),
        sa.Column("kind", sa.String(length=50), nullable=False),
        sa.Column("source_index", sa.Integer(), nullable=False),
        sa.Column("target_index", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["dataflow_pk"], ["dataflows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dataflow_links_dataflow_pk", "dataflow_links", ["dataflow_pk"])

    op.create_table(
        "dataflow_scheduled_times",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("dataflow_id", sa.String(length=255), nullable=False),
        sa.Column("lastruntime", sa.BigInteger(), nullable=False),
        sa.Column("nextruntime", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_dataflow_scheduled_times_dataflow_id",
        "dataflow_scheduled_times",
        ["dataflow_id"],
        unique=True,
    )
    op.create_index(
        "ix_dataflow_scheduled_times_nextruntime",
        "dataflow_scheduled_times",
        ["nextruntime"],
    )


def downgrade() -> None:
    """Drop dataflow tables."""
    op.drop_table("dataflow_scheduled_times")
    op.drop_table("dataflow_links")
    op.drop_table("dataflow_steps")
    op.drop_table("dataflows")
