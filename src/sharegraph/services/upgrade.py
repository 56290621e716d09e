"""UpgradeService: schema migrations through Alembic.

``apply`` snapshots the database, migrates to head and then runs the
error-level integrity check. A database whose tables predate version
tracking is stamped instead of migrated, since ``create_all`` already
built it at the baseline.
"""

from __future__ import annotations

import logging

from alembic import command
from alembic.util import CommandError
from sqlalchemy import inspect

from sharegraph.infrastructure.database.migrations import (
    alembic_config,
    current_revision,
    head_revision,
    pending_revisions,
)
from sharegraph.services.base import BaseService, guarded
from sharegraph.services.check import BACKUP_FAILURES, CheckService, snapshot_database
from sharegraph.services.result import ErrorCode, ServiceResult

logger = logging.getLogger(__name__)

OP = "upgrade"


class UpgradeService(BaseService):
    @guarded(OP)
    def pending(self) -> ServiceResult:
        """Current and head revisions plus the migrations between them."""
        cfg = alembic_config(self._store.root)
        with self._store.engine.connect() as conn:
            current = current_revision(conn)
        revisions = pending_revisions(cfg, current)
        pending = [{"revision": r.revision, "description": r.doc or ""} for r in revisions]
        return ServiceResult(
            ok=True,
            op=OP,
            data={
                "current": current,
                "head": head_revision(cfg),
                "pending_count": len(revisions),
                "pending": pending,
            },
        )

    @guarded(OP)
    def apply(self) -> ServiceResult:
        status = self.pending()
        if not status.ok:
            return status
        current, head = status.data["current"], status.data["head"]
        count = status.data["pending_count"]
        if count == 0:
            return ServiceResult(
                ok=True,
                op=OP,
                data={
                    "applied_count": 0,
                    "current": head,
                    "message": "Database is already up to date",
                },
            )

        try:
            backup = snapshot_database(self._store)
        except BACKUP_FAILURES as exc:
            logger.error("Backup before migration failed", exc_info=True)
            return self._fail(OP, ErrorCode.UNAVAILABLE, f"Backup failed: {exc}")

        cfg = alembic_config(self._store.root)
        tables = inspect(self._store.engine).get_table_names()
        untracked = current is None and "connections" in tables
        try:
            if untracked:
                command.stamp(cfg, "head")
            else:
                command.upgrade(cfg, "head")
        except (CommandError, OSError) as exc:
            logger.error("Migration failed", exc_info=True)
            return self._fail(
                OP,
                ErrorCode.UNAVAILABLE,
                f"Migration failed: {exc}. Backup at: {backup}",
                backup_path=str(backup),
            )
        logger.info("Migrated %s -> %s (%d revisions)", current, head, count)

        warnings: list[str] = []
        errors = CheckService(self._store).check(min_severity="error")
        if not errors.ok:
            warnings.append("Integrity check after migration could not run")
        elif errors.data["count"]:
            warnings.append(f"Integrity check after migration found {errors.data['count']} errors")
        return ServiceResult(
            ok=True,
            op=OP,
            data={"applied_count": count, "current": head, "backup_path": str(backup)},
            warnings=warnings,
        )
