"""SharingService — grant, revoke and list shared-document capabilities.

A grant is only written after the DocumentStore confirms that the caller
owns the document, and that check precedes every other one. Grants are
keyed by ``(document_id, recipient_id)``; granting again updates
permission and message in place.

Accepted risk: ownership is read from the external DocumentStore at the
start of the write transaction, and that store is not part of it. A
transfer landing between the check and the commit leaves a stale grant,
which its grantor can still revoke and ``sharegraph check`` reports.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from sharegraph.domain.ids import generate_id
from sharegraph.domain.lifecycle import NotificationKind, Permission, parse_permission
from sharegraph.domain.models import NotificationEvent, SharedDocument, row_to_shared_document
from sharegraph.infrastructure.database.schema import household_members, shared_documents
from sharegraph.services._helpers import dedupe
from sharegraph.services.base import BaseService, guarded
from sharegraph.services.contracts import SharedDocumentListData, dump_validated
from sharegraph.services.result import ErrorCode, ServiceError, ServiceResult
from sharegraph.services.timing import stage, traced

if TYPE_CHECKING:
    from sharegraph.infrastructure.store import StoreTransaction

logger = logging.getLogger(__name__)

OWNER = "owner"


class SharingService(BaseService):
    """Owns the ``shared_documents`` relation."""

    # ------------------------------------------------------------------
    # Grant
    # ------------------------------------------------------------------

    @traced
    @guarded("grant")
    def grant(
        self,
        owner_id: str,
        document_id: str,
        recipient_id: str,
        permission: str,
        message: str | None = None,
    ) -> ServiceResult:
        """Grant *recipient_id* access to a document owned by *owner_id*."""
        op = "grant"
        result = self._grant_many(op, owner_id, document_id, [recipient_id], permission, message)
        if not result.ok:
            return result
        share = result.data["items"][0]
        return ServiceResult(
            ok=True,
            op=op,
            data={"share": share, "created": result.data["created"] == 1},
            warnings=result.warnings,
        )

    @traced
    @guarded("grant_many")
    def grant_many(
        self,
        owner_id: str,
        document_id: str,
        recipient_ids: list[str],
        permission: str,
        message: str | None = None,
    ) -> ServiceResult:
        """Share one document with several recipients in one transaction.

        Unknown recipients are skipped and reported as a partial failure.
        """
        return self._grant_many(
            "grant_many", owner_id, document_id, recipient_ids, permission, message
        )

    @traced
    @guarded("grant_household")
    def grant_to_household(
        self,
        owner_id: str,
        document_id: str,
        household_id: str,
        permission: str,
        message: str | None = None,
    ) -> ServiceResult:
        """Share a document with every other member of a household."""
        op = "grant_household"

        with self._store.engine.connect() as conn:
            member_ids = list(
                conn.execute(
                    select(household_members.c.user_id)
                    .where(household_members.c.household_id == household_id)
                    .order_by(household_members.c.joined_at, household_members.c.user_id)
                ).scalars()
            )
        if not member_ids:
            return self._fail(
                op, ErrorCode.NOT_FOUND, f"No household found with ID: {household_id}"
            )
        if owner_id not in member_ids:
            return self._fail(
                op,
                ErrorCode.FORBIDDEN,
                "Only members can share with this household",
                household_id=household_id,
            )

        recipients = [m for m in member_ids if m != owner_id]
        if not recipients:
            return self._fail(
                op,
                ErrorCode.INVALID_ARGUMENT,
                "Household has no other members to share with",
                household_id=household_id,
            )

        result = self._grant_many(op, owner_id, document_id, recipients, permission, message)
        if not result.ok:
            return result
        return result.model_copy(
            update={"data": {**result.data, "household_id": household_id}}
        )

    # ------------------------------------------------------------------
    # Revoke
    # ------------------------------------------------------------------

    @traced
    @guarded("revoke")
    def revoke(self, shared_document_id: str, acting_user_id: str) -> ServiceResult:
        """Delete a grant. Only its grantor may revoke it."""
        op = "revoke"
        warnings: list[str] = []

        with self._store.transaction() as txn:
            row = txn.conn.execute(
                select(shared_documents).where(shared_documents.c.id == shared_document_id)
            ).first()
            if row is None:
                return self._fail(
                    op,
                    ErrorCode.NOT_FOUND,
                    f"No shared document found with ID: {shared_document_id}",
                )
            if row.owner_id != acting_user_id:
                return self._fail(
                    op,
                    ErrorCode.FORBIDDEN,
                    "Only the user who shared this document can revoke access",
                )
            deleted = txn.conn.execute(
                delete(shared_documents).where(shared_documents.c.id == shared_document_id)
            )
            if deleted.rowcount == 0:
                return self._fail(
                    op,
                    ErrorCode.NOT_FOUND,
                    f"No shared document found with ID: {shared_document_id}",
                )

        self._dispatch_event(
            "post_share_revoked",
            {
                "share_id": row.id,
                "document_id": row.document_id,
                "owner_id": row.owner_id,
                "recipient_id": row.recipient_id,
            },
            warnings,
        )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": row.id,
                "document_id": row.document_id,
                "recipient_id": row.recipient_id,
            },
            warnings=warnings,
        )

    def revoke_between(self, txn: StoreTransaction, user_a: str, user_b: str) -> int:
        """Delete grants in both directions between two users.

        Runs inside the caller's transaction and returns the number of
        grants removed.
        """
        result = txn.conn.execute(
            delete(shared_documents).where(
                or_(
                    and_(
                        shared_documents.c.owner_id == user_a,
                        shared_documents.c.recipient_id == user_b,
                    ),
                    and_(
                        shared_documents.c.owner_id == user_b,
                        shared_documents.c.recipient_id == user_a,
                    ),
                )
            )
        )
        return int(result.rowcount)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @traced
    @guarded("shared_with_me")
    def list_shared_with_me(self, user_id: str) -> ServiceResult:
        """Grants received by *user_id*, newest first, with document and owner."""
        return self._list("shared_with_me", shared_documents.c.recipient_id, user_id, "owner")

    @traced
    @guarded("shared_by_me")
    def list_shared_by_me(self, user_id: str) -> ServiceResult:
        """Grants issued by *user_id*, newest first, with document and recipient."""
        return self._list("shared_by_me", shared_documents.c.owner_id, user_id, "recipient")

    @traced
    @guarded("permission")
    def permission_for(self, user_id: str, document_id: str) -> ServiceResult:
        """Effective access of *user_id* to *document_id*.

        ``data["permission"]`` is ``"owner"``, ``"edit"``, ``"view"`` or None.
        """
        op = "permission"
        owner = self._store.documents.owner_of(document_id)
        if owner is None:
            return self._fail(
                op, ErrorCode.NOT_FOUND, f"No document found with ID: {document_id}"
            )

        permission: str | None
        if owner == user_id:
            permission = OWNER
        else:
            with self._store.engine.connect() as conn:
                permission = conn.execute(
                    select(shared_documents.c.permission).where(
                        shared_documents.c.document_id == document_id,
                        shared_documents.c.recipient_id == user_id,
                    )
                ).scalar_one_or_none()

        return ServiceResult(
            ok=True,
            op=op,
            data={"document_id": document_id, "user_id": user_id, "permission": permission},
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _grant_many(
        self,
        op: str,
        owner_id: str,
        document_id: str,
        recipient_ids: list[str],
        permission: str,
        message: str | None,
    ) -> ServiceResult:
        warnings: list[str] = []
        grants: list[tuple[SharedDocument, bool]] = []

        with self._store.transaction() as txn:
            # ── AUTHORIZE ────────────────────────────────────────
            # Ownership comes before any argument checks, so a caller who
            # does not own the document learns nothing about recipients.
            with stage("ownership_check"):
                current_owner = self._store.documents.owner_of(document_id)
            if current_owner is None:
                return self._fail(
                    op, ErrorCode.NOT_FOUND, f"No document found with ID: {document_id}"
                )
            if current_owner != owner_id:
                logger.warning("Refused grant on %s by non-owner %s", document_id, owner_id)
                return self._fail(
                    op,
                    ErrorCode.FORBIDDEN,
                    "Only the document owner can share it",
                    document_id=document_id,
                )

            # ── VALIDATE ─────────────────────────────────────────
            try:
                perm = parse_permission(permission)
            except ValueError as exc:
                return self._fail(op, ErrorCode.INVALID_ARGUMENT, str(exc))

            wanted = dedupe(recipient_ids)
            if owner_id in wanted:
                if len(wanted) == 1:
                    return self._fail(
                        op, ErrorCode.INVALID_ARGUMENT, "Cannot share a document with yourself"
                    )
                wanted.remove(owner_id)
                warnings.append("Skipped sharing with yourself")
            if not wanted:
                return self._fail(
                    op, ErrorCode.INVALID_ARGUMENT, "At least one recipient is required"
                )

            known = self._store.identity.summaries(wanted)
            failed = [r for r in wanted if r not in known]
            recipients = [r for r in wanted if r in known]
            if not recipients:
                return self._fail(
                    op,
                    ErrorCode.NOT_FOUND,
                    "No such recipient" if len(failed) == 1 else "None of the recipients exist",
                    failed=failed,
                )
            clean_message = message.strip() if message and message.strip() else None

            if self._store.settings.sharing.require_connection:
                from sharegraph.services.connections import are_connected

                strangers = [r for r in recipients if not are_connected(txn.conn, owner_id, r)]
                if strangers:
                    return self._fail(
                        op,
                        ErrorCode.FORBIDDEN,
                        "Documents can only be shared with accepted connections",
                        recipients=strangers,
                    )

            # ── UPSERT ───────────────────────────────────────────
            for recipient_id in recipients:
                grants.append(
                    self._upsert(txn, owner_id, document_id, recipient_id, perm, clean_message)
                )

        # ── PUBLISH (after commit) ────────────────────────────────
        link = self._store.settings.notifications.deep_link_template.format(
            document_id=document_id
        )
        for share, created in grants:
            self._notify(
                NotificationEvent(
                    target_user_id=share.recipient_id,
                    kind=NotificationKind.DOCUMENT_SHARED,
                    payload={
                        "share_id": share.id,
                        "document_id": document_id,
                        "owner_id": owner_id,
                        "permission": str(perm),
                        "message": clean_message,
                        "link": link,
                    },
                ),
                warnings,
            )
            self._dispatch_event(
                "post_share_granted",
                {
                    "share_id": share.id,
                    "document_id": document_id,
                    "owner_id": owner_id,
                    "recipient_id": share.recipient_id,
                    "permission": str(perm),
                    "created": created,
                },
                warnings,
            )

        error = None
        if failed:
            error = ServiceError(
                code=ErrorCode.PARTIAL_FAILURE,
                message=f"Shared with {len(recipients)} of {len(wanted)}",
                detail={"failed": failed},
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "document_id": document_id,
                "count": len(grants),
                "created": sum(1 for _, created in grants if created),
                "items": [share.model_dump(mode="json") for share, _ in grants],
                "failed": failed,
            },
            warnings=warnings,
            error=error,
        )

    @staticmethod
    def _upsert(
        txn: StoreTransaction,
        owner_id: str,
        document_id: str,
        recipient_id: str,
        permission: Permission,
        message: str | None,
    ) -> tuple[SharedDocument, bool]:
        """Insert or update the grant for ``(document_id, recipient_id)``."""
        existing_id = txn.conn.execute(
            select(shared_documents.c.id).where(
                shared_documents.c.document_id == document_id,
                shared_documents.c.recipient_id == recipient_id,
            )
        ).scalar_one_or_none()

        values: dict[str, Any] = {
            "owner_id": owner_id,
            "permission": permission,
            "message": message,
            "shared_at": txn.now,
        }
        stmt = sqlite_insert(shared_documents).values(
            id=existing_id or generate_id("share"),
            document_id=document_id,
            recipient_id=recipient_id,
            **values,
        )
        txn.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[shared_documents.c.document_id, shared_documents.c.recipient_id],
                set_=values,
            )
        )
        row = txn.conn.execute(
            select(shared_documents).where(
                shared_documents.c.document_id == document_id,
                shared_documents.c.recipient_id == recipient_id,
            )
        ).one()
        return row_to_shared_document(row), existing_id is None

    def _list(self, op: str, column: Any, user_id: str, counterpart: str) -> ServiceResult:
        with self._store.engine.connect() as conn:
            rows = conn.execute(
                select(shared_documents)
                .where(column == user_id)
                .order_by(shared_documents.c.shared_at.desc(), shared_documents.c.id)
            ).fetchall()

        counterpart_col = "owner_id" if counterpart == "owner" else "recipient_id"
        docs = self._store.documents.summaries(r.document_id for r in rows)
        people = self._store.identity.summaries(getattr(r, counterpart_col) for r in rows)

        items = []
        for r in rows:
            share = row_to_shared_document(r).model_copy(
                update={
                    "document": docs.get(r.document_id),
                    counterpart: people.get(getattr(r, counterpart_col)),
                }
            )
            items.append(share.model_dump(mode="json"))
        data = dump_validated(SharedDocumentListData, {"count": len(items), "items": items})
        return ServiceResult(ok=True, op=op, data=data)
