"""SQLite database engine and schema via SQLAlchemy Core."""

from sharegraph.infrastructure.database.engine import create_db_engine, init_database
from sharegraph.infrastructure.database.schema import (
    connections,
    documents,
    household_members,
    households,
    metadata,
    shared_documents,
    users,
)

__all__ = [
    "connections",
    "create_db_engine",
    "documents",
    "household_members",
    "households",
    "init_database",
    "metadata",
    "shared_documents",
    "users",
]
