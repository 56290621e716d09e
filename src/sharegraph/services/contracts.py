"""Typed payload contracts for read-side service results.

These models validate list payload shapes before they leave the service
layer, so key regressions (for example ``items`` vs ``results``) fail
fast in tests and during development.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T", bound=BaseModel)


def dump_validated(model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="json")


class ConnectionItem(BaseModel):
    """One connection row as listed by the read model."""

    model_config = ConfigDict(extra="allow")

    id: str
    owner_id: str
    peer_id: str
    relationship_kind: str
    status: str
    created_at: str
    accepted_at: str | None = None


class ConnectionListData(BaseModel):
    """Payload contract for ``GraphReadModel.connections``."""

    count: int
    items: list[ConnectionItem]


class SharedDocumentItem(BaseModel):
    """One grant row with its embedded summaries."""

    model_config = ConfigDict(extra="allow")

    id: str
    document_id: str
    owner_id: str
    recipient_id: str
    permission: str
    message: str | None = None
    shared_at: str


class SharedDocumentListData(BaseModel):
    """Payload contract for the shared-with-me and shared-by-me listings."""

    count: int
    items: list[SharedDocumentItem]


class ActivityItem(BaseModel):
    kind: str
    at: str
    description: str


class MemberDetailsData(BaseModel):
    """Payload contract for ``GraphReadModel.member_details``."""

    connection: ConnectionItem
    shared_documents: list[SharedDocumentItem]
    activity: list[ActivityItem]
