"""Relationship, permission, and role enums plus the connection state machine.

A connection row is created ``pending`` by the requester. Acceptance adds
a mirror row and flips the original to ``accepted``; decline, cancel and
removal delete rows. ``deleted`` is never persisted, it only names the
terminal state in the transition map.
"""

from __future__ import annotations

from enum import StrEnum


class RelationshipKind(StrEnum):
    """How the requester describes the peer."""

    SPOUSE = "spouse"
    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"
    FRIEND = "friend"
    OTHER = "other"


class ConnectionStatus(StrEnum):
    """Persisted connection status. There is no ``declined`` row state."""

    PENDING = "pending"
    ACCEPTED = "accepted"


class Permission(StrEnum):
    """Access level carried by a shared-document grant."""

    VIEW = "view"
    EDIT = "edit"


class HouseholdRole(StrEnum):
    """Role of a user inside a household."""

    ADMIN = "admin"
    MEMBER = "member"


class NotificationKind(StrEnum):
    """Kinds of notification events published by the write path."""

    CONNECTION_REQUEST = "connection_request"
    CONNECTION_REMOVED = "connection_removed"
    DOCUMENT_SHARED = "document_shared"


DELETED = "deleted"

CONNECTION_TRANSITIONS: dict[str, list[str]] = {
    "": ["pending"],
    "pending": ["accepted", DELETED],
    "accepted": [DELETED],
    DELETED: [],
}


def is_valid_transition(current: str, target: str) -> bool:
    """Check if a connection may move from *current* to *target*.

    Use ``""`` for a connection that does not exist yet.
    """
    return target in CONNECTION_TRANSITIONS.get(current, [])


def parse_relationship_kind(value: str) -> RelationshipKind:
    """Parse a relationship kind, raising ValueError for unknown values."""
    try:
        return RelationshipKind(value.strip().lower())
    except ValueError:
        allowed = ", ".join(k.value for k in RelationshipKind)
        msg = f"Unknown relationship kind: {value!r}. Expected one of: {allowed}"
        raise ValueError(msg) from None


def parse_permission(value: str) -> Permission:
    """Parse a permission, raising ValueError for unknown values."""
    try:
        return Permission(value.strip().lower())
    except ValueError:
        msg = f"Unknown permission: {value!r}. Expected 'view' or 'edit'"
        raise ValueError(msg) from None
