"""Alembic wiring for the sharegraph database.

There is no ``alembic.ini``: the config is built here and points at the
``versions/`` scripts beside this module. History is linear.
"""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import Script, ScriptDirectory
from sqlalchemy import Connection

from sharegraph.infrastructure.database.engine import db_path_for


def alembic_config(root: Path) -> Config:
    """Alembic config for the database under *root*."""
    cfg = Config()
    cfg.set_main_option("script_location", str(Path(__file__).parent))
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path_for(root)}")
    return cfg


def current_revision(conn: Connection) -> str | None:
    return MigrationContext.configure(conn).get_current_revision()


def pending_revisions(cfg: Config, current: str | None) -> list[Script]:
    """Revisions newer than *current*, newest first. All of them when None."""
    pending: list[Script] = []
    for script in ScriptDirectory.from_config(cfg).walk_revisions():
        if script.revision == current:
            break
        pending.append(script)
    return pending


def head_revision(cfg: Config) -> str | None:
    return ScriptDirectory.from_config(cfg).get_current_head()


def stamp_head(root: Path) -> None:
    """Record a freshly created database as already at head."""
    command.stamp(alembic_config(root), "head")
