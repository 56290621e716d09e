"""Frozen record models for connections, households, and grants.

Rows read from the database are converted to these models before they
leave the service layer, and dumped back to plain dicts for
``ServiceResult.data``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sharegraph.domain.lifecycle import (
    ConnectionStatus,
    HouseholdRole,
    NotificationKind,
    Permission,
    RelationshipKind,
)


class UserSummary(BaseModel):
    """Public profile of an external user."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    display_name: str | None = None


class DocumentSummary(BaseModel):
    """Public description of an external document."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    document_type: str | None = None
    category: str | None = None
    expires_on: str | None = None


class Connection(BaseModel):
    """A directed connection edge ``owner_id -> peer_id``.

    A lone pending row is an outstanding request, never a mutual link.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    peer_id: str
    relationship_kind: RelationshipKind
    status: ConnectionStatus
    created_at: str
    accepted_at: str | None = None


class HouseholdMember(BaseModel):
    """Membership of one user in one household."""

    model_config = ConfigDict(frozen=True)

    household_id: str
    user_id: str
    role: HouseholdRole
    joined_at: str
    user: UserSummary | None = None


class Household(BaseModel):
    """A named group of users; always has at least one admin."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    created_by: str
    created_at: str
    members: list[HouseholdMember] = Field(default_factory=list)


class SharedDocument(BaseModel):
    """A capability edge granting *recipient_id* access to one document."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    owner_id: str
    recipient_id: str
    permission: Permission
    message: str | None = None
    shared_at: str
    document: DocumentSummary | None = None
    owner: UserSummary | None = None
    recipient: UserSummary | None = None


class NotificationEvent(BaseModel):
    """Fire-and-forget event produced by the write path."""

    model_config = ConfigDict(frozen=True)

    target_user_id: str
    kind: NotificationKind
    payload: dict[str, Any] = Field(default_factory=dict)


def row_to_connection(row: Any) -> Connection:
    """Build a Connection from a ``connections`` row."""
    return Connection(
        id=row.id,
        owner_id=row.owner_id,
        peer_id=row.peer_id,
        relationship_kind=RelationshipKind(row.relationship_kind),
        status=ConnectionStatus(row.status),
        created_at=row.created_at,
        accepted_at=row.accepted_at,
    )


def row_to_shared_document(row: Any) -> SharedDocument:
    """Build a SharedDocument from a ``shared_documents`` row."""
    return SharedDocument(
        id=row.id,
        document_id=row.document_id,
        owner_id=row.owner_id,
        recipient_id=row.recipient_id,
        permission=Permission(row.permission),
        message=row.message,
        shared_at=row.shared_at,
    )
