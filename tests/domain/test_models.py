"""Tests for the frozen record models."""

from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from sharegraph.domain.lifecycle import ConnectionStatus, Permission
from sharegraph.domain.models import (
    NotificationEvent,
    row_to_connection,
    row_to_shared_document,
)


class TestRowConversion:
    def test_connection(self) -> None:
        row = SimpleNamespace(
            id="con_000000000001",
            owner_id="usr_ann",
            peer_id="usr_bob",
            relationship_kind="parent",
            status="accepted",
            created_at="2026-01-01T00:00:00+00:00",
            accepted_at="2026-01-02T00:00:00+00:00",
        )
        conn = row_to_connection(row)
        assert conn.status is ConnectionStatus.ACCEPTED
        assert conn.model_dump(mode="json")["relationship_kind"] == "parent"

    def test_shared_document(self) -> None:
        row = SimpleNamespace(
            id="shr_000000000001",
            document_id="doc_1",
            owner_id="usr_ann",
            recipient_id="usr_bob",
            permission="edit",
            message=None,
            shared_at="2026-01-01T00:00:00+00:00",
        )
        share = row_to_shared_document(row)
        assert share.permission is Permission.EDIT
        assert share.document is None

    def test_unknown_status_rejected(self) -> None:
        row = SimpleNamespace(
            id="con_1",
            owner_id="a",
            peer_id="b",
            relationship_kind="friend",
            status="declined",
            created_at="x",
            accepted_at=None,
        )
        with pytest.raises(ValueError):
            row_to_connection(row)


class TestNotificationEvent:
    def test_kind_validated(self) -> None:
        with pytest.raises(ValidationError):
            NotificationEvent(target_user_id="usr_bob", kind="birthday")

    def test_frozen(self) -> None:
        event = NotificationEvent(target_user_id="usr_bob", kind="document_shared")
        with pytest.raises(ValidationError):
            event.target_user_id = "usr_cy"  # type: ignore[misc]
