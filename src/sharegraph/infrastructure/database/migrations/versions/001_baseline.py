"""Baseline schema: connections, households, shared documents.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-01

Initial migration capturing the full sharegraph schema. Databases
created by ``init_database`` are stamped at head without running it.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    op.create_table(
        "connections",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("peer_id", sa.Text, nullable=False),
        sa.Column("relationship_kind", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("created_at", sa.Text, nullable=False),
        sa.Column("accepted_at", sa.Text),
        sa.UniqueConstraint("owner_id", "peer_id"),
    )
    op.create_index("ix_connections_owner_status", "connections", ["owner_id", "status"])
    op.create_index("ix_connections_peer_status", "connections", ["peer_id", "status"])

    op.create_table(
        "households",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("created_by", sa.Text, nullable=False),
        sa.Column("created_at", sa.Text, nullable=False),
    )

    op.create_table(
        "household_members",
        sa.Column(
            "household_id",
            sa.Text,
            sa.ForeignKey("households.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("role", sa.Text, nullable=False),
        sa.Column("joined_at", sa.Text, nullable=False),
        sa.UniqueConstraint("household_id", "user_id"),
    )
    op.create_index("ix_household_members_user", "household_members", ["user_id"])

    op.create_table(
        "shared_documents",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("document_id", sa.Text, nullable=False),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("recipient_id", sa.Text, nullable=False),
        sa.Column("permission", sa.Text, nullable=False),
        sa.Column("message", sa.Text),
        sa.Column("shared_at", sa.Text, nullable=False),
        sa.UniqueConstraint("document_id", "recipient_id"),
    )
    op.create_index("ix_shared_documents_owner", "shared_documents", ["owner_id"])
    op.create_index("ix_shared_documents_recipient", "shared_documents", ["recipient_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("email", sa.Text, nullable=False, unique=True),
        sa.Column("display_name", sa.Text),
    )

    op.create_table(
        "documents",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("document_type", sa.Text),
        sa.Column("category", sa.Text),
        sa.Column("expires_on", sa.Text),
    )
    op.create_index("ix_documents_owner", "documents", ["owner_id"])


def downgrade() -> None:
    op.drop_table("documents")
    op.drop_table("users")
    op.drop_table("shared_documents")
    op.drop_table("household_members")
    op.drop_table("households")
    op.drop_table("connections")
