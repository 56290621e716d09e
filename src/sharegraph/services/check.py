"""CheckService: integrity report and repair for the relationship graph.

Findings fall into three categories: connection symmetry, household
integrity and grant validity. Each finding names a repair action when
one can be applied without guessing. ``fix`` snapshots the database and
then collects and repairs under a single write transaction, so the
repairs act on exactly the state that was inspected.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from sharegraph.domain.lifecycle import ConnectionStatus, HouseholdRole
from sharegraph.infrastructure.database.engine import DATA_DIRNAME
from sharegraph.infrastructure.database.schema import (
    connections,
    household_members,
    households,
    shared_documents,
)
from sharegraph.services._helpers import now_compact
from sharegraph.services.base import BaseService, guarded
from sharegraph.services.connections import between
from sharegraph.services.result import ErrorCode, ServiceResult
from sharegraph.services.timing import stage, traced

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from sharegraph.infrastructure.store import Store

logger = logging.getLogger(__name__)

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

CAT_CONNECTIONS = "connection_symmetry"
CAT_HOUSEHOLDS = "household_integrity"
CAT_SHARING = "grant_validity"

BACKUP_FAILURES = (OSError, sqlite3.Error)

Issue = dict[str, Any]


def _issue(
    category: str,
    severity: str,
    row_id: str,
    message: str,
    fix_action: str,
    **extra: Any,
) -> Issue:
    return {
        "category": category,
        "severity": severity,
        "id": row_id,
        "message": message,
        "fix_action": fix_action,
        **extra,
    }


def snapshot_database(store: Store) -> Path:
    """Write a consistent copy of the database and prune old copies.

    ``VACUUM INTO`` reads through SQLite itself, so the copy includes
    committed pages still sitting in the WAL file.
    """
    backup_dir = store.root / DATA_DIRNAME / "backups"
    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / f"sharegraph-{now_compact()}.db"
    target.unlink(missing_ok=True)

    raw = store.engine.raw_connection()
    try:
        cursor = raw.cursor()
        cursor.execute("VACUUM INTO ?", (str(target),))
        cursor.close()
    finally:
        raw.close()

    keep = store.settings.check.backup_max_count
    for stale in sorted(backup_dir.glob("sharegraph-*.db"))[:-keep]:
        stale.unlink(missing_ok=True)
    return target


class CheckService(BaseService):
    """Finds and repairs graph states the write path should never produce."""

    @traced
    @guarded("check")
    def check(self, *, min_severity: str = SEVERITY_WARNING) -> ServiceResult:
        """Report integrity issues without modifying anything.

        ``min_severity="error"`` hides warnings from the report.
        """
        with self._store.engine.connect() as conn:
            issues = self._collect(conn)
        if min_severity == SEVERITY_ERROR:
            issues = [i for i in issues if i["severity"] == SEVERITY_ERROR]

        warnings: list[str] = []
        self._dispatch_event(
            "post_check", {"issues_found": len(issues), "issues_fixed": 0}, warnings
        )
        return ServiceResult(
            ok=True,
            op="check",
            data={"issues": issues, "count": len(issues)},
            warnings=warnings,
        )

    @traced
    @guarded("fix")
    def fix(self) -> ServiceResult:
        """Back up the database, then apply every repair the check proposes."""
        try:
            with stage("backup"):
                backup = snapshot_database(self._store)
        except BACKUP_FAILURES as exc:
            logger.error("Backup before repair failed", exc_info=True)
            return self._fail("fix", ErrorCode.UNAVAILABLE, f"Backup failed: {exc}")

        fixes: list[str] = []
        with self._store.transaction() as txn:
            issues = self._collect(txn.conn)
            with stage("repair"):
                for issue in issues:
                    repair = _REPAIRS[issue["fix_action"]]
                    fixes.append(repair(txn.conn, issue))
        logger.info("Applied %d repairs (backup %s)", len(fixes), backup)

        warnings: list[str] = []
        self._dispatch_event(
            "post_check",
            {"issues_found": len(issues), "issues_fixed": len(fixes)},
            warnings,
        )
        return ServiceResult(
            ok=True,
            op="fix",
            data={"fixes": fixes, "count": len(fixes), "backup": str(backup)},
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Detection (read-only)
    # ------------------------------------------------------------------

    def _collect(self, conn: Connection) -> list[Issue]:
        issues: list[Issue] = []
        with stage(CAT_CONNECTIONS):
            issues += self._connection_issues(conn)
        with stage(CAT_HOUSEHOLDS):
            issues += self._household_issues(conn)
        with stage(CAT_SHARING):
            issues += self._grant_issues(conn)
        return issues

    @staticmethod
    def _connection_issues(conn: Connection) -> list[Issue]:
        rows = conn.execute(select(connections).order_by(connections.c.created_at)).fetchall()
        status_of = {(r.owner_id, r.peer_id): r.status for r in rows}

        issues: list[Issue] = []
        for r in rows:
            if r.owner_id == r.peer_id:
                issues.append(
                    _issue(
                        CAT_CONNECTIONS,
                        SEVERITY_ERROR,
                        r.id,
                        f"Connection points at its own owner: {r.owner_id}",
                        "delete_connection",
                    )
                )
            elif (
                r.status == ConnectionStatus.ACCEPTED
                and status_of.get((r.peer_id, r.owner_id)) != ConnectionStatus.ACCEPTED
            ):
                issues.append(
                    _issue(
                        CAT_CONNECTIONS,
                        SEVERITY_ERROR,
                        r.id,
                        f"Accepted connection {r.owner_id} -> {r.peer_id} has no mirror",
                        "unlink_pair",
                        owner_id=r.owner_id,
                        peer_id=r.peer_id,
                    )
                )
        return issues

    @staticmethod
    def _household_issues(conn: Connection) -> list[Issue]:
        members = func.count(household_members.c.user_id)
        admins = func.count(household_members.c.user_id).filter(
            household_members.c.role == HouseholdRole.ADMIN
        )
        rows = conn.execute(
            select(
                households.c.id,
                households.c.name,
                members.label("members"),
                admins.label("admins"),
            )
            .select_from(households.outerjoin(household_members))
            .group_by(households.c.id, households.c.name)
            .order_by(households.c.created_at)
        ).fetchall()

        issues: list[Issue] = []
        for r in rows:
            if r.members == 0:
                issues.append(
                    _issue(
                        CAT_HOUSEHOLDS,
                        SEVERITY_ERROR,
                        r.id,
                        f"Household '{r.name}' has no members",
                        "delete_household",
                    )
                )
            elif r.admins == 0:
                issues.append(
                    _issue(
                        CAT_HOUSEHOLDS,
                        SEVERITY_ERROR,
                        r.id,
                        f"Household '{r.name}' has no admin",
                        "promote_admin",
                    )
                )
        return issues

    def _grant_issues(self, conn: Connection) -> list[Issue]:
        rows = conn.execute(select(shared_documents).order_by(shared_documents.c.shared_at))
        owners: dict[str, str | None] = {}
        issues: list[Issue] = []
        for r in rows:
            if r.owner_id == r.recipient_id:
                message = f"Document {r.document_id} shared with its own owner"
            else:
                if r.document_id not in owners:
                    owners[r.document_id] = self._store.documents.owner_of(r.document_id)
                current = owners[r.document_id]
                if current == r.owner_id:
                    continue
                if current is None:
                    message = f"Grant on missing document {r.document_id}"
                else:
                    message = (
                        f"Grant on {r.document_id} issued by {r.owner_id}, "
                        f"but the document now belongs to {current}"
                    )
            issues.append(_issue(CAT_SHARING, SEVERITY_WARNING, r.id, message, "delete_grant"))
        return issues


# ---------------------------------------------------------------------------
# Repairs (run inside the fix transaction)
# ---------------------------------------------------------------------------


def _delete_connection(conn: Connection, issue: Issue) -> str:
    conn.execute(delete(connections).where(connections.c.id == issue["id"]))
    return f"Deleted self-referencing connection {issue['id']}"


def _unlink_pair(conn: Connection, issue: Issue) -> str:
    a, b = issue["owner_id"], issue["peer_id"]
    conn.execute(delete(connections).where(between(a, b)))
    return f"Removed half-mirrored connection between {a} and {b}"


def _delete_household(conn: Connection, issue: Issue) -> str:
    conn.execute(delete(households).where(households.c.id == issue["id"]))
    return f"Deleted empty household {issue['id']}"


def _promote_admin(conn: Connection, issue: Issue) -> str:
    """Promote the creator if still a member, else the longest-standing member."""
    household_id = issue["id"]
    creator = conn.execute(
        select(households.c.created_by).where(households.c.id == household_id)
    ).scalar_one()
    member_ids = conn.execute(
        select(household_members.c.user_id)
        .where(household_members.c.household_id == household_id)
        .order_by(household_members.c.joined_at, household_members.c.user_id)
    ).scalars().all()
    chosen = creator if creator in member_ids else member_ids[0]
    conn.execute(
        update(household_members)
        .where(
            household_members.c.household_id == household_id,
            household_members.c.user_id == chosen,
        )
        .values(role=HouseholdRole.ADMIN)
    )
    return f"Promoted {chosen} to admin of {household_id}"


def _delete_grant(conn: Connection, issue: Issue) -> str:
    conn.execute(delete(shared_documents).where(shared_documents.c.id == issue["id"]))
    return f"Deleted grant {issue['id']}"


_REPAIRS = {
    "delete_connection": _delete_connection,
    "unlink_pair": _unlink_pair,
    "delete_household": _delete_household,
    "promote_admin": _promote_admin,
    "delete_grant": _delete_grant,
}
