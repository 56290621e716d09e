"""Alembic entry script: runs the sharegraph revisions.

Online runs reuse :func:`create_db_engine`, so migrations see the same
PRAGMAs and transaction handling as the application.
"""

from __future__ import annotations

from pathlib import Path

from alembic import context
from sqlalchemy.engine import make_url

from sharegraph.infrastructure.database.engine import create_db_engine
from sharegraph.infrastructure.database.schema import metadata


def _database_url() -> str:
    url = context.config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("sqlalchemy.url is not set on the Alembic config")
    return url


def _run_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=metadata,
        literal_binds=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_online() -> None:
    database = make_url(_database_url()).database
    if not database:
        raise RuntimeError("sharegraph migrations need a file-backed SQLite URL")
    engine = create_db_engine(Path(database))
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection, target_metadata=metadata, render_as_batch=True
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    _run_offline()
else:
    _run_online()
