"""Database engine setup for SQLite with WAL mode.

SQLite is the persistence layer: WAL mode for concurrent readers, a busy
timeout so concurrent writers queue instead of failing, and ACID
transactions for every multi-row graph mutation. The DB is stored at
``{root}/.sharegraph/sharegraph.db``.

SQLAlchemy Core (not ORM) is used: every operation is a short explicit
transaction, with no benefit from session management or identity maps.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import Connection, create_engine, event
from sqlalchemy.engine import Engine

from sharegraph.infrastructure.database.schema import metadata

DATA_DIRNAME = ".sharegraph"
DB_FILENAME = "sharegraph.db"

# Execution option selecting BEGIN IMMEDIATE for a connection.
WRITE_LOCK = "sharegraph_write_lock"


def db_path_for(root: Path) -> Path:
    """Return the database path for a data root."""
    return root / DATA_DIRNAME / DB_FILENAME


def create_db_engine(db_path: Path, *, busy_timeout_ms: int = 5000) -> Engine:
    """Create a SQLite engine with WAL mode and foreign keys enabled.

    pysqlite's own transaction handling is switched off so that SQLAlchemy
    emits BEGIN itself. Connections carrying the :data:`WRITE_LOCK`
    execution option open with ``BEGIN IMMEDIATE`` and hold the database
    write lock from their first read onward.
    """
    engine = create_engine(f"sqlite:///{db_path}", echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn: Connection) -> None:
        if conn.get_execution_options().get(WRITE_LOCK):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

    return engine


def init_database(root: Path, *, busy_timeout_ms: int = 5000) -> Engine:
    """Initialize the database at ``{root}/.sharegraph/sharegraph.db``.

    Creates the ``.sharegraph/`` directory structure and all tables from
    :data:`schema.metadata`.

    A newly created database is stamped at the Alembic head revision so
    that ``sharegraph upgrade`` only runs later migrations.

    Idempotent: safe to call on an existing data root.

    Returns the engine ready for use.
    """
    data_dir = root / DATA_DIRNAME
    data_dir.mkdir(parents=True, exist_ok=True)

    db_path = db_path_for(root)
    fresh = not db_path.exists()

    engine = create_db_engine(db_path, busy_timeout_ms=busy_timeout_ms)
    metadata.create_all(engine)
    if fresh:
        from sharegraph.infrastructure.database.migrations import stamp_head

        stamp_head(root)
    return engine
