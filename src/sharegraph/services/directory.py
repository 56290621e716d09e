"""DirectoryService — seed the local user and document mirror tables.

The core never writes users or documents. This service exists for the
bundled reference adapters: it fills the ``users`` and ``documents``
tables read by :class:`SqlIdentityLookup` and :class:`SqlDocumentStore`.
"""

from __future__ import annotations

import uuid

from sqlalchemy import insert, select, update

from sharegraph.domain.ids import normalize_identifier
from sharegraph.infrastructure.database.schema import documents, users
from sharegraph.services.base import BaseService, guarded
from sharegraph.services.result import ErrorCode, ServiceResult
from sharegraph.services.timing import traced


class DirectoryService(BaseService):
    """Writes the directory mirror tables."""

    @traced
    @guarded("add_user")
    def add_user(
        self,
        email: str,
        *,
        display_name: str | None = None,
        user_id: str | None = None,
    ) -> ServiceResult:
        op = "add_user"
        normalized = normalize_identifier(email)
        if "@" not in normalized:
            return self._fail(op, ErrorCode.INVALID_ARGUMENT, f"Not an email address: {email!r}")

        new_id = user_id or f"usr_{uuid.uuid4().hex[:12]}"
        with self._store.transaction() as txn:
            txn.conn.execute(
                insert(users).values(id=new_id, email=normalized, display_name=display_name)
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"id": new_id, "email": normalized, "display_name": display_name},
        )

    @traced
    @guarded("add_document")
    def add_document(
        self,
        owner_id: str,
        name: str,
        *,
        document_type: str | None = None,
        category: str | None = None,
        expires_on: str | None = None,
        document_id: str | None = None,
    ) -> ServiceResult:
        op = "add_document"
        if not name.strip():
            return self._fail(op, ErrorCode.INVALID_ARGUMENT, "Document name is required")

        new_id = document_id or f"doc_{uuid.uuid4().hex[:12]}"
        with self._store.transaction() as txn:
            owner = txn.conn.execute(select(users.c.id).where(users.c.id == owner_id)).first()
            if owner is None:
                return self._fail(op, ErrorCode.NOT_FOUND, f"No user found with ID: {owner_id}")
            txn.conn.execute(
                insert(documents).values(
                    id=new_id,
                    owner_id=owner_id,
                    name=name.strip(),
                    document_type=document_type,
                    category=category,
                    expires_on=expires_on,
                )
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"id": new_id, "owner_id": owner_id, "name": name.strip()},
        )

    @traced
    @guarded("transfer_document")
    def transfer_document(self, document_id: str, new_owner_id: str) -> ServiceResult:
        """Reassign a mirrored document. Existing grants are left untouched."""
        op = "transfer_document"
        with self._store.transaction() as txn:
            owner = txn.conn.execute(select(users.c.id).where(users.c.id == new_owner_id)).first()
            if owner is None:
                return self._fail(
                    op, ErrorCode.NOT_FOUND, f"No user found with ID: {new_owner_id}"
                )
            result = txn.conn.execute(
                update(documents)
                .where(documents.c.id == document_id)
                .values(owner_id=new_owner_id)
            )
            if result.rowcount == 0:
                return self._fail(
                    op, ErrorCode.NOT_FOUND, f"No document found with ID: {document_id}"
                )
        return ServiceResult(
            ok=True,
            op=op,
            data={"id": document_id, "owner_id": new_owner_id},
        )
