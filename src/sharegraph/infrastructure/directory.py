"""External collaborator seams: identity lookup and document ownership.

The core consumes users and documents through the :class:`IdentityLookup`
and :class:`DocumentStore` protocols and never writes to them. The SQL
adapters below read the ``users`` and ``documents`` mirror tables and are
the defaults wired into :class:`~sharegraph.infrastructure.store.Store`;
deployments substitute their own implementations.

Adapters signal an unreachable backend by raising
:class:`DependencyUnavailableError`. A missing user or document is not an
error at this level, it is ``None``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from sharegraph.domain.ids import normalize_identifier
from sharegraph.domain.models import DocumentSummary, UserSummary
from sharegraph.infrastructure.database.schema import documents, users

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class DependencyUnavailableError(Exception):
    """An external dependency could not be reached. Always safe to retry."""

    def __init__(self, dependency: str, reason: str) -> None:
        super().__init__(f"{dependency} unavailable: {reason}")
        self.dependency = dependency
        self.reason = reason


@runtime_checkable
class IdentityLookup(Protocol):
    """Resolves user-facing identifiers to internal user IDs."""

    def resolve(self, identifier: str) -> str | None:
        """Return the user ID for *identifier*, or None if no such user."""
        ...

    def summaries(self, user_ids: Iterable[str]) -> dict[str, UserSummary]:
        """Return profile summaries keyed by user ID (unknown IDs omitted)."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Answers ownership questions about documents."""

    def owner_of(self, document_id: str) -> str | None:
        """Return the current owner of *document_id*, or None if it does not exist."""
        ...

    def summaries(self, document_ids: Iterable[str]) -> dict[str, DocumentSummary]:
        """Return document summaries keyed by document ID (unknown IDs omitted)."""
        ...


class SqlIdentityLookup:
    """IdentityLookup backed by the local ``users`` table.

    Resolves by email (case-insensitive) first, then by exact user ID.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def resolve(self, identifier: str) -> str | None:
        normalized = normalize_identifier(identifier)
        if not normalized:
            return None
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    select(users.c.id).where(
                        or_(users.c.email == normalized, users.c.id == identifier.strip())
                    )
                ).first()
        except SQLAlchemyError as exc:
            raise DependencyUnavailableError("IdentityLookup", str(exc)) from exc
        return str(row.id) if row is not None else None

    def summaries(self, user_ids: Iterable[str]) -> dict[str, UserSummary]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(select(users).where(users.c.id.in_(ids))).fetchall()
        except SQLAlchemyError as exc:
            raise DependencyUnavailableError("IdentityLookup", str(exc)) from exc
        return {
            r.id: UserSummary(id=r.id, email=r.email, display_name=r.display_name) for r in rows
        }


class SqlDocumentStore:
    """DocumentStore backed by the local ``documents`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def owner_of(self, document_id: str) -> str | None:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    select(documents.c.owner_id).where(documents.c.id == document_id)
                ).first()
        except SQLAlchemyError as exc:
            raise DependencyUnavailableError("DocumentStore", str(exc)) from exc
        return str(row.owner_id) if row is not None else None

    def summaries(self, document_ids: Iterable[str]) -> dict[str, DocumentSummary]:
        ids = sorted(set(document_ids))
        if not ids:
            return {}
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(select(documents).where(documents.c.id.in_(ids))).fetchall()
        except SQLAlchemyError as exc:
            raise DependencyUnavailableError("DocumentStore", str(exc)) from exc
        return {
            r.id: DocumentSummary(
                id=r.id,
                name=r.name,
                document_type=r.document_type,
                category=r.category,
                expires_on=r.expires_on,
            )
            for r in rows
        }
