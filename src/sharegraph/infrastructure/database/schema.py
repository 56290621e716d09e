"""SQLAlchemy Core table definitions for the sharegraph database.

Three relations belong to the core: ``connections``, ``households`` with
``household_members``, and ``shared_documents``. They reference user and
document IDs without foreign keys, since those live in external systems.
``users`` and ``documents`` are local mirrors of the directory used by
the bundled reference adapters.

Each ordered (owner, peer) pair has at most one ``connections`` row.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

connections = Table(
    "connections",
    metadata,
    Column("id", Text, primary_key=True),
    Column("owner_id", Text, nullable=False),
    Column("peer_id", Text, nullable=False),
    Column("relationship_kind", Text, nullable=False),
    Column("status", Text, nullable=False),
    Column("created_at", Text, nullable=False),
    Column("accepted_at", Text),
    UniqueConstraint("owner_id", "peer_id"),
)

households = Table(
    "households",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("created_by", Text, nullable=False),
    Column("created_at", Text, nullable=False),
)

household_members = Table(
    "household_members",
    metadata,
    Column(
        "household_id",
        Text,
        ForeignKey("households.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("user_id", Text, nullable=False),
    Column("role", Text, nullable=False),
    Column("joined_at", Text, nullable=False),
    UniqueConstraint("household_id", "user_id"),
)

shared_documents = Table(
    "shared_documents",
    metadata,
    Column("id", Text, primary_key=True),
    Column("document_id", Text, nullable=False),
    Column("owner_id", Text, nullable=False),
    Column("recipient_id", Text, nullable=False),
    Column("permission", Text, nullable=False),
    Column("message", Text),
    Column("shared_at", Text, nullable=False),
    UniqueConstraint("document_id", "recipient_id"),
)

# ---------------------------------------------------------------------------
# Directory mirrors (read by the reference adapters only)
# ---------------------------------------------------------------------------

users = Table(
    "users",
    metadata,
    Column("id", Text, primary_key=True),
    Column("email", Text, nullable=False, unique=True),
    Column("display_name", Text),
)

documents = Table(
    "documents",
    metadata,
    Column("id", Text, primary_key=True),
    Column("owner_id", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("document_type", Text),
    Column("category", Text),
    Column("expires_on", Text),
)

# ---------------------------------------------------------------------------
# Indexes for frequently filtered columns
# ---------------------------------------------------------------------------

Index("ix_connections_owner_status", connections.c.owner_id, connections.c.status)
Index("ix_connections_peer_status", connections.c.peer_id, connections.c.status)
Index("ix_household_members_user", household_members.c.user_id)
Index("ix_shared_documents_owner", shared_documents.c.owner_id)
Index("ix_shared_documents_recipient", shared_documents.c.recipient_id)
Index("ix_documents_owner", documents.c.owner_id)
