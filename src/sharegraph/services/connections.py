"""ConnectionService — request, accept, decline, cancel and remove connections.

A relationship between two users is stored as two directed rows once it
is accepted, and as a single pending row while it is an outstanding
request. Every mutation that touches both directions runs inside one
``store.transaction()`` so readers never observe a half-mirrored edge.

The pending row doubles as the concurrency token: acceptance and decline
are conditional on ``status = 'pending'`` and a zero row count means a
concurrent caller got there first.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, insert, or_, select, update

from sharegraph.domain.ids import generate_id
from sharegraph.domain.lifecycle import (
    DELETED,
    ConnectionStatus,
    NotificationKind,
    is_valid_transition,
    parse_relationship_kind,
)
from sharegraph.domain.models import Connection, NotificationEvent, row_to_connection
from sharegraph.infrastructure.database.schema import connections
from sharegraph.services.base import BaseService, guarded
from sharegraph.services.result import ErrorCode, ServiceResult
from sharegraph.services.timing import stage, traced

if TYPE_CHECKING:
    from sqlalchemy import Connection as DbConnection

    from sharegraph.infrastructure.store import StoreTransaction

logger = logging.getLogger(__name__)


def between(user_a: str, user_b: str) -> Any:
    """WHERE clause matching rows in either direction between two users."""
    return or_(
        and_(connections.c.owner_id == user_a, connections.c.peer_id == user_b),
        and_(connections.c.owner_id == user_b, connections.c.peer_id == user_a),
    )


def are_connected(conn: DbConnection, user_a: str, user_b: str) -> bool:
    """True when *user_a* holds an accepted row pointing at *user_b*."""
    row = conn.execute(
        select(connections.c.id).where(
            connections.c.owner_id == user_a,
            connections.c.peer_id == user_b,
            connections.c.status == ConnectionStatus.ACCEPTED,
        )
    ).first()
    return row is not None


class ConnectionService(BaseService):
    """Owns the ``connections`` relation and its pending/accepted lifecycle."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @traced
    @guarded("send_request")
    def send_request(
        self,
        requester_id: str,
        target_identifier: str,
        relationship_kind: str,
    ) -> ServiceResult:
        """Create a pending request from *requester_id* to the resolved target.

        A repeated request in the same direction returns the existing row.
        A request answering an outstanding reverse request accepts it when
        ``[connections] reverse_request_accepts`` is on.
        """
        op = "send_request"
        warnings: list[str] = []

        try:
            kind = parse_relationship_kind(relationship_kind)
        except ValueError as exc:
            return self._fail(op, ErrorCode.INVALID_ARGUMENT, str(exc))

        with stage("resolve_target"):
            target_id = self._store.identity.resolve(target_identifier)
        if target_id is None:
            return self._fail(
                op,
                ErrorCode.NOT_FOUND,
                f"No user found for {target_identifier!r}",
                identifier=target_identifier,
            )
        if target_id == requester_id:
            return self._fail(op, ErrorCode.INVALID_ARGUMENT, "Cannot connect to yourself")

        accepted_row: Any = None
        with self._store.transaction() as txn:
            rows = txn.conn.execute(
                select(connections).where(between(requester_id, target_id))
            ).fetchall()

            if any(r.status == ConnectionStatus.ACCEPTED for r in rows):
                return self._fail(
                    op,
                    ErrorCode.CONFLICT,
                    "Already connected",
                    peer_id=target_id,
                )

            outgoing = next((r for r in rows if r.owner_id == requester_id), None)
            incoming = next((r for r in rows if r.owner_id == target_id), None)

            if outgoing is not None:
                return ServiceResult(
                    ok=True,
                    op=op,
                    data={
                        "connection": row_to_connection(outgoing).model_dump(mode="json"),
                        "created": False,
                        "implicit_accept": False,
                    },
                    warnings=["Request already pending"],
                )

            if incoming is not None:
                if not self._store.settings.connections.reverse_request_accepts:
                    return self._fail(
                        op,
                        ErrorCode.CONFLICT,
                        "This user already sent you a request; accept it instead",
                        connection_id=incoming.id,
                    )
                accepted = self._accept_in_txn(txn, incoming)
                if accepted is None:
                    return self._fail(
                        op,
                        ErrorCode.CONFLICT,
                        "Request changed concurrently",
                        connection_id=incoming.id,
                    )
                accepted_row = incoming
                connection = self._load(txn.conn, requester_id, target_id)
            else:
                connection_id = generate_id("connection")
                txn.conn.execute(
                    insert(connections).values(
                        id=connection_id,
                        owner_id=requester_id,
                        peer_id=target_id,
                        relationship_kind=kind,
                        status=ConnectionStatus.PENDING,
                        created_at=txn.now,
                    )
                )
                connection = Connection(
                    id=connection_id,
                    owner_id=requester_id,
                    peer_id=target_id,
                    relationship_kind=kind,
                    status=ConnectionStatus.PENDING,
                    created_at=txn.now,
                )

        # ── PUBLISH (after commit) ────────────────────────────────
        implicit_accept = accepted_row is not None
        if accepted_row is not None:
            self._dispatch_accepted(accepted_row, warnings)
        else:
            self._notify(
                NotificationEvent(
                    target_user_id=target_id,
                    kind=NotificationKind.CONNECTION_REQUEST,
                    payload={
                        "connection_id": connection.id,
                        "requester_id": requester_id,
                        "relationship_kind": str(kind),
                    },
                ),
                warnings,
            )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "connection": connection.model_dump(mode="json"),
                "created": not implicit_accept,
                "implicit_accept": implicit_accept,
            },
            warnings=warnings,
        )

    @traced
    @guarded("accept")
    def accept(self, connection_id: str, acting_user_id: str) -> ServiceResult:
        """Accept a pending request. Only the invitee may accept."""
        op = "accept"
        warnings: list[str] = []

        with self._store.transaction() as txn:
            row = txn.conn.execute(
                select(connections).where(connections.c.id == connection_id)
            ).first()
            if row is None:
                return self._fail(
                    op,
                    ErrorCode.NOT_FOUND,
                    f"No connection request found with ID: {connection_id}",
                )
            if row.peer_id != acting_user_id:
                return self._fail(
                    op,
                    ErrorCode.FORBIDDEN,
                    "Only the invited user can accept this request",
                )
            if not is_valid_transition(row.status, ConnectionStatus.ACCEPTED):
                return self._fail(
                    op,
                    ErrorCode.CONFLICT,
                    f"Connection is already {row.status}",
                    status=row.status,
                )

            accepted = self._accept_in_txn(txn, row)
            if accepted is None:
                return self._fail(
                    op,
                    ErrorCode.CONFLICT,
                    "Request changed concurrently",
                    connection_id=connection_id,
                )

        self._dispatch_accepted(row, warnings)

        return ServiceResult(
            ok=True,
            op=op,
            data={"connection": accepted.model_dump(mode="json")},
            warnings=warnings,
        )

    @traced
    @guarded("decline")
    def decline(self, connection_id: str, acting_user_id: str) -> ServiceResult:
        """Delete a pending request addressed to *acting_user_id*."""
        return self._drop_pending("decline", connection_id, acting_user_id, by_invitee=True)

    @traced
    @guarded("cancel")
    def cancel(self, connection_id: str, acting_user_id: str) -> ServiceResult:
        """Withdraw a pending request sent by *acting_user_id*."""
        return self._drop_pending("cancel", connection_id, acting_user_id, by_invitee=False)

    @traced
    @guarded("remove")
    def remove(self, connection_id: str, acting_user_id: str) -> ServiceResult:
        """Delete every row between the two endpoints of *connection_id*.

        Either endpoint may remove. Both directions go in one transaction,
        together with the grants between the two users when
        ``[sharing] revoke_on_disconnect`` is on.
        """
        op = "remove"
        warnings: list[str] = []
        cfg = self._store.settings

        with self._store.transaction() as txn:
            row = txn.conn.execute(
                select(connections).where(connections.c.id == connection_id)
            ).first()
            if row is None:
                return self._fail(
                    op,
                    ErrorCode.NOT_FOUND,
                    f"No connection found with ID: {connection_id}",
                )
            if acting_user_id not in (row.owner_id, row.peer_id):
                return self._fail(
                    op,
                    ErrorCode.FORBIDDEN,
                    "Only a party to this connection can remove it",
                )

            other_id = row.peer_id if acting_user_id == row.owner_id else row.owner_id
            result = txn.conn.execute(
                delete(connections).where(between(row.owner_id, row.peer_id))
            )
            rows_removed = result.rowcount

            shares_revoked = 0
            if cfg.sharing.revoke_on_disconnect:
                from sharegraph.services.sharing import SharingService

                shares_revoked = SharingService(self._store).revoke_between(
                    txn, row.owner_id, row.peer_id
                )

        logger.info(
            "Removed connection %s <-> %s (%d rows, %d shares)",
            row.owner_id,
            row.peer_id,
            rows_removed,
            shares_revoked,
        )

        if cfg.connections.notify_on_remove and row.status == ConnectionStatus.ACCEPTED:
            self._notify(
                NotificationEvent(
                    target_user_id=other_id,
                    kind=NotificationKind.CONNECTION_REMOVED,
                    payload={"removed_by": acting_user_id},
                ),
                warnings,
            )
        self._dispatch_event(
            "post_connection_removed",
            {
                "owner_id": row.owner_id,
                "peer_id": row.peer_id,
                "shares_revoked": shares_revoked,
            },
            warnings,
        )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "owner_id": row.owner_id,
                "peer_id": row.peer_id,
                "rows_removed": rows_removed,
                "shares_revoked": shares_revoked,
            },
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _accept_in_txn(self, txn: StoreTransaction, row: Any) -> Connection | None:
        """Flip *row* to accepted and write its mirror. None on a lost race.

        A reverse pending row, if one exists, becomes the mirror rather than
        gaining a sibling.
        """
        flipped = txn.conn.execute(
            update(connections)
            .where(
                connections.c.id == row.id,
                connections.c.status == ConnectionStatus.PENDING,
            )
            .values(status=ConnectionStatus.ACCEPTED, accepted_at=txn.now)
        )
        if flipped.rowcount == 0:
            return None

        reverse = txn.conn.execute(
            update(connections)
            .where(
                connections.c.owner_id == row.peer_id,
                connections.c.peer_id == row.owner_id,
            )
            .values(status=ConnectionStatus.ACCEPTED, accepted_at=txn.now)
        )
        if reverse.rowcount == 0:
            txn.conn.execute(
                insert(connections).values(
                    id=generate_id("connection"),
                    owner_id=row.peer_id,
                    peer_id=row.owner_id,
                    relationship_kind=row.relationship_kind,
                    status=ConnectionStatus.ACCEPTED,
                    created_at=txn.now,
                    accepted_at=txn.now,
                )
            )

        return Connection(
            id=row.id,
            owner_id=row.owner_id,
            peer_id=row.peer_id,
            relationship_kind=row.relationship_kind,
            status=ConnectionStatus.ACCEPTED,
            created_at=row.created_at,
            accepted_at=txn.now,
        )

    def _drop_pending(
        self,
        op: str,
        connection_id: str,
        acting_user_id: str,
        *,
        by_invitee: bool,
    ) -> ServiceResult:
        with self._store.transaction() as txn:
            row = txn.conn.execute(
                select(connections).where(connections.c.id == connection_id)
            ).first()
            if row is None:
                return self._fail(
                    op,
                    ErrorCode.NOT_FOUND,
                    f"No connection request found with ID: {connection_id}",
                )
            allowed_user = row.peer_id if by_invitee else row.owner_id
            if acting_user_id != allowed_user:
                who = "invited user" if by_invitee else "requester"
                return self._fail(op, ErrorCode.FORBIDDEN, f"Only the {who} can {op} this request")
            if row.status != ConnectionStatus.PENDING or not is_valid_transition(
                row.status, DELETED
            ):
                return self._fail(
                    op,
                    ErrorCode.CONFLICT,
                    f"Connection is already {row.status}; use remove instead",
                    status=row.status,
                )

            result = txn.conn.execute(
                delete(connections).where(
                    connections.c.id == connection_id,
                    connections.c.status == ConnectionStatus.PENDING,
                )
            )
            if result.rowcount == 0:
                return self._fail(
                    op,
                    ErrorCode.CONFLICT,
                    "Request changed concurrently",
                    connection_id=connection_id,
                )

        return ServiceResult(
            ok=True,
            op=op,
            data={"id": connection_id, "owner_id": row.owner_id, "peer_id": row.peer_id},
        )

    @staticmethod
    def _load(conn: DbConnection, owner_id: str, peer_id: str) -> Connection:
        row = conn.execute(
            select(connections).where(
                connections.c.owner_id == owner_id,
                connections.c.peer_id == peer_id,
            )
        ).one()
        return row_to_connection(row)

    def _dispatch_accepted(self, row: Any, warnings: list[str]) -> None:
        self._dispatch_event(
            "post_connection_accepted",
            {
                "connection_id": row.id,
                "owner_id": row.owner_id,
                "peer_id": row.peer_id,
                "relationship_kind": row.relationship_kind,
            },
            warnings,
        )
