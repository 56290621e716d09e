"""GraphReadModel — query surface over connections, households and grants.

Reads only. Every method is safe to call repeatedly and reports nothing
but state (or ``UNAVAILABLE`` when storage cannot be reached).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import and_, func, or_, select

from sharegraph.domain.lifecycle import ConnectionStatus
from sharegraph.domain.models import row_to_connection, row_to_shared_document
from sharegraph.infrastructure.database.schema import (
    connections,
    household_members,
    shared_documents,
)
from sharegraph.services.base import BaseService, guarded
from sharegraph.services.contracts import (
    ConnectionListData,
    MemberDetailsData,
    dump_validated,
)
from sharegraph.services.households import HouseholdService
from sharegraph.services.result import ErrorCode, ServiceResult
from sharegraph.services.sharing import SharingService
from sharegraph.services.timing import stage, traced

ACTIVITY_LIMIT = 20


class GraphReadModel(BaseService):
    """Read-side composition of the connection, household and sharing data."""

    @traced
    @guarded("connections")
    def connections(self, user_id: str) -> ServiceResult:
        """Accepted connections of *user_id* with peer and shared-document count."""
        with self._store.engine.connect() as conn:
            rows = conn.execute(
                select(connections)
                .where(
                    connections.c.owner_id == user_id,
                    connections.c.status == ConnectionStatus.ACCEPTED,
                )
                .order_by(connections.c.accepted_at, connections.c.id)
            ).fetchall()
            counts = self._share_counts(conn, user_id, [r.peer_id for r in rows])

        peers = self._store.identity.summaries(r.peer_id for r in rows)
        items = [
            {
                **row_to_connection(r).model_dump(mode="json"),
                "peer": _dump(peers.get(r.peer_id)),
                "shared_documents_count": counts.get(r.peer_id, 0),
            }
            for r in rows
        ]
        data = dump_validated(ConnectionListData, {"count": len(items), "items": items})
        return ServiceResult(ok=True, op="connections", data=data)

    @traced
    @guarded("member_details")
    def member_details(self, connection_id: str, acting_user_id: str) -> ServiceResult:
        """One connection as seen by *acting_user_id*.

        Either endpoint may ask, whatever the row's status. The payload
        carries the other party's summary, every grant exchanged between
        the two (newest first, tagged ``sent`` or ``received``) and the
        most recent activity on the pair.
        """
        op = "member_details"
        with self._store.engine.connect() as conn:
            row = conn.execute(select(connections).where(connections.c.id == connection_id)).first()
            if row is None:
                return self._fail(
                    op, ErrorCode.NOT_FOUND, f"No connection found with ID: {connection_id}"
                )
            if acting_user_id not in (row.owner_id, row.peer_id):
                return self._fail(
                    op,
                    ErrorCode.FORBIDDEN,
                    "Only a party to this connection can view it",
                    connection_id=connection_id,
                )
            peer_id = row.peer_id if row.owner_id == acting_user_id else row.owner_id
            with stage("grants"):
                grants = conn.execute(
                    select(shared_documents)
                    .where(
                        or_(
                            and_(
                                shared_documents.c.owner_id == acting_user_id,
                                shared_documents.c.recipient_id == peer_id,
                            ),
                            and_(
                                shared_documents.c.owner_id == peer_id,
                                shared_documents.c.recipient_id == acting_user_id,
                            ),
                        )
                    )
                    .order_by(shared_documents.c.shared_at.desc(), shared_documents.c.id)
                ).fetchall()

        docs = self._store.documents.summaries(g.document_id for g in grants)
        peer = self._store.identity.summaries([peer_id]).get(peer_id)
        shared = [
            {
                **row_to_shared_document(g)
                .model_copy(update={"document": docs.get(g.document_id)})
                .model_dump(mode="json"),
                "direction": "sent" if g.owner_id == acting_user_id else "received",
            }
            for g in grants
        ]
        connection = {**row_to_connection(row).model_dump(mode="json"), "peer": _dump(peer)}
        data = dump_validated(
            MemberDetailsData,
            {
                "connection": connection,
                "shared_documents": shared,
                "activity": _activity(row, grants, docs),
            },
        )
        return ServiceResult(ok=True, op=op, data=data)

    @traced
    @guarded("pending_incoming")
    def pending_incoming(self, user_id: str) -> ServiceResult:
        """Pending requests addressed to *user_id*, with the requester."""
        return self._pending("pending_incoming", user_id, incoming=True)

    @traced
    @guarded("pending_outgoing")
    def pending_outgoing(self, user_id: str) -> ServiceResult:
        """Pending requests sent by *user_id*, with the invitee."""
        return self._pending("pending_outgoing", user_id, incoming=False)

    def households(self, user_id: str) -> ServiceResult:
        return HouseholdService(self._store).list_for_user(user_id)

    def shared_with_me(self, user_id: str) -> ServiceResult:
        return SharingService(self._store).list_shared_with_me(user_id)

    def shared_by_me(self, user_id: str) -> ServiceResult:
        return SharingService(self._store).list_shared_by_me(user_id)

    @traced
    @guarded("overview")
    def overview(self, user_id: str) -> ServiceResult:
        """Counts of everything the graph holds for *user_id*."""
        with self._store.engine.connect() as conn:

            def count(*where: Any, table: Any = connections) -> int:
                stmt = select(func.count()).select_from(table).where(*where)
                return int(conn.execute(stmt).scalar_one())

            data = {
                "user_id": user_id,
                "connections": count(
                    connections.c.owner_id == user_id,
                    connections.c.status == ConnectionStatus.ACCEPTED,
                ),
                "pending_incoming": count(
                    connections.c.peer_id == user_id,
                    connections.c.status == ConnectionStatus.PENDING,
                ),
                "pending_outgoing": count(
                    connections.c.owner_id == user_id,
                    connections.c.status == ConnectionStatus.PENDING,
                ),
                "households": count(
                    household_members.c.user_id == user_id, table=household_members
                ),
                "shared_with_me": count(
                    shared_documents.c.recipient_id == user_id, table=shared_documents
                ),
                "shared_by_me": count(
                    shared_documents.c.owner_id == user_id, table=shared_documents
                ),
            }
        return ServiceResult(ok=True, op="overview", data=data)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _pending(self, op: str, user_id: str, *, incoming: bool) -> ServiceResult:
        mine = connections.c.peer_id if incoming else connections.c.owner_id
        with self._store.engine.connect() as conn:
            rows = conn.execute(
                select(connections)
                .where(mine == user_id, connections.c.status == ConnectionStatus.PENDING)
                .order_by(connections.c.created_at.desc(), connections.c.id)
            ).fetchall()

        key = "requester" if incoming else "invitee"
        other = [r.owner_id if incoming else r.peer_id for r in rows]
        people = self._store.identity.summaries(other)
        items = [
            {**row_to_connection(r).model_dump(mode="json"), key: _dump(people.get(o))}
            for r, o in zip(rows, other, strict=True)
        ]
        data = dump_validated(ConnectionListData, {"count": len(items), "items": items})
        return ServiceResult(ok=True, op=op, data=data)

    @staticmethod
    def _share_counts(conn: Any, user_id: str, peer_ids: list[str]) -> dict[str, int]:
        """Grants in either direction between *user_id* and each peer."""
        if not peer_ids:
            return {}
        rows = conn.execute(
            select(shared_documents.c.owner_id, shared_documents.c.recipient_id).where(
                or_(
                    and_(
                        shared_documents.c.owner_id == user_id,
                        shared_documents.c.recipient_id.in_(peer_ids),
                    ),
                    and_(
                        shared_documents.c.recipient_id == user_id,
                        shared_documents.c.owner_id.in_(peer_ids),
                    ),
                )
            )
        ).fetchall()
        counts: dict[str, int] = {}
        for owner_id, recipient_id in rows:
            peer = recipient_id if owner_id == user_id else owner_id
            counts[peer] = counts.get(peer, 0) + 1
        return counts


def _dump(model: Any) -> dict[str, Any] | None:
    return model.model_dump(mode="json") if model is not None else None


def _activity(row: Any, grants: list[Any], docs: dict[str, Any]) -> list[dict[str, str]]:
    events = [{"kind": "connection_requested", "at": row.created_at, "description": "Request sent"}]
    if row.accepted_at is not None:
        events.append(
            {"kind": "connection_accepted", "at": row.accepted_at, "description": "Connected"}
        )
    for g in grants:
        doc = docs.get(g.document_id)
        name = doc.name if doc is not None else g.document_id
        events.append(
            {"kind": "document_shared", "at": g.shared_at, "description": f'Shared "{name}"'}
        )
    # ISO-8601 UTC timestamps sort lexically.
    events.sort(key=lambda e: e["at"], reverse=True)
    return events[:ACTIVITY_LIMIT]
