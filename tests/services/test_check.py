"""Tests for CheckService — integrity report and repair."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import delete, insert, select, update

from sharegraph.config.settings import ShareGraphSettings
from sharegraph.infrastructure.database.schema import (
    connections,
    household_members,
    households,
    shared_documents,
)
from sharegraph.infrastructure.store import Store
from sharegraph.services.check import CheckService
from sharegraph.services.directory import DirectoryService
from sharegraph.services.households import HouseholdService
from sharegraph.services.sharing import SharingService
from tests.conftest import RecordingPlugin, add_document, connect, peer_ids, send_request


def _issues(store: Store, category: str | None = None) -> list[dict]:
    result = CheckService(store).check()
    assert result.ok
    issues = result.data["issues"]
    if category is not None:
        issues = [i for i in issues if i["category"] == category]
    return issues


class TestCheckClean:
    def test_healthy_graph(self, store: Store, users: dict[str, str]) -> None:
        connect(store, users["ann"], users["bob"])
        send_request(store, users["cy"], users["ann"])
        HouseholdService(store).create(users["ann"], "Home", ["bob@example.com"])
        doc = add_document(store, users["ann"], "Will")
        SharingService(store).grant(users["ann"], doc, users["bob"], "view")

        result = CheckService(store).check()
        assert result.ok
        assert result.data == {"issues": [], "count": 0}

    def test_dispatches_post_check(
        self, store: Store, recorder: RecordingPlugin
    ) -> None:
        CheckService(store).check()
        assert ("post_check", {"issues_found": 0, "issues_fixed": 0}) in recorder.calls


class TestConnectionSymmetry:
    def test_half_mirrored_edge(self, store: Store, users: dict[str, str]) -> None:
        connect(store, users["ann"], users["bob"])
        with store.transaction() as txn:
            txn.conn.execute(delete(connections).where(connections.c.owner_id == users["bob"]))

        issues = _issues(store, "connection_symmetry")
        assert len(issues) == 1
        assert issues[0]["severity"] == "error"
        assert issues[0]["fix_action"] == "unlink_pair"

    def test_self_edge(self, store: Store, users: dict[str, str]) -> None:
        with store.transaction() as txn:
            txn.conn.execute(
                insert(connections).values(
                    id="con_000000000001",
                    owner_id=users["ann"],
                    peer_id=users["ann"],
                    relationship_kind="friend",
                    status="pending",
                    created_at=txn.now,
                )
            )
        issues = _issues(store, "connection_symmetry")
        assert [i["fix_action"] for i in issues] == ["delete_connection"]

    def test_errors_only_filter(self, store: Store, users: dict[str, str]) -> None:
        connect(store, users["ann"], users["bob"])
        doc = add_document(store, users["ann"], "Car title")
        SharingService(store).grant(users["ann"], doc, users["bob"], "view")
        DirectoryService(store).transfer_document(doc, users["cy"])
        with store.transaction() as txn:
            txn.conn.execute(delete(connections).where(connections.c.owner_id == users["bob"]))

        assert CheckService(store).check().data["count"] == 2
        result = CheckService(store).check(min_severity="error")
        assert [i["category"] for i in result.data["issues"]] == ["connection_symmetry"]


class TestHouseholdIntegrity:
    def test_empty_household(self, store: Store, users: dict[str, str]) -> None:
        created = HouseholdService(store).create(users["ann"], "Home")
        household_id = created.data["household"]["id"]
        with store.transaction() as txn:
            txn.conn.execute(
                delete(household_members).where(household_members.c.household_id == household_id)
            )
        issues = _issues(store, "household_integrity")
        assert [(i["id"], i["fix_action"]) for i in issues] == [(household_id, "delete_household")]

    def test_household_without_admin(self, store: Store, users: dict[str, str]) -> None:
        created = HouseholdService(store).create(users["ann"], "Home", ["bob@example.com"])
        household_id = created.data["household"]["id"]
        with store.transaction() as txn:
            txn.conn.execute(update(household_members).values(role="member"))
        issues = _issues(store, "household_integrity")
        assert [i["fix_action"] for i in issues] == ["promote_admin"]


class TestGrantValidity:
    def test_stale_grant_after_transfer(self, store: Store, users: dict[str, str]) -> None:
        doc = add_document(store, users["ann"], "Car title")
        SharingService(store).grant(users["ann"], doc, users["bob"], "view")
        DirectoryService(store).transfer_document(doc, users["cy"])
        issues = _issues(store, "grant_validity")
        assert len(issues) == 1
        assert "now belongs to" in issues[0]["message"]

    def test_grant_on_missing_document(self, store: Store, users: dict[str, str]) -> None:
        with store.transaction() as txn:
            txn.conn.execute(
                insert(shared_documents).values(
                    id="shr_000000000001",
                    document_id="doc_gone",
                    owner_id=users["ann"],
                    recipient_id=users["bob"],
                    permission="view",
                    shared_at=txn.now,
                )
            )
        issues = _issues(store, "grant_validity")
        assert [i["id"] for i in issues] == ["shr_000000000001"]


class TestFix:
    def test_fix_repairs_everything(self, store: Store, users: dict[str, str]) -> None:
        ann, bob, cy = users["ann"], users["bob"], users["cy"]
        connect(store, ann, bob)
        connect(store, ann, cy)
        with store.transaction() as txn:
            txn.conn.execute(delete(connections).where(connections.c.owner_id == bob))
        created = HouseholdService(store).create(ann, "Home", ["bob@example.com"])
        household_id = created.data["household"]["id"]
        with store.transaction() as txn:
            txn.conn.execute(update(household_members).values(role="member"))
        doc = add_document(store, ann, "Car title")
        SharingService(store).grant(ann, doc, bob, "view")
        DirectoryService(store).transfer_document(doc, cy)

        result = CheckService(store).fix()
        assert result.ok
        assert result.data["count"] == 3
        assert Path(result.data["backup"]).exists()

        assert _issues(store) == []
        assert peer_ids(store, ann) == [cy]
        assert peer_ids(store, bob) == []
        with store.engine.connect() as conn:
            admin = conn.execute(
                select(household_members.c.user_id).where(
                    household_members.c.household_id == household_id,
                    household_members.c.role == "admin",
                )
            ).scalar_one()
            grants = conn.execute(select(shared_documents)).fetchall()
        assert admin == ann
        assert grants == []

    def test_fix_removes_empty_household(self, store: Store, users: dict[str, str]) -> None:
        created = HouseholdService(store).create(users["ann"], "Home")
        with store.transaction() as txn:
            txn.conn.execute(delete(household_members))
        CheckService(store).fix()
        with store.engine.connect() as conn:
            rows = conn.execute(select(households.c.id)).fetchall()
        assert created.data["household"]["id"] not in [r.id for r in rows]

    def test_fix_on_healthy_graph(self, store: Store, recorder: RecordingPlugin) -> None:
        result = CheckService(store).fix()
        assert result.ok
        assert result.data["fixes"] == []
        assert ("post_check", {"issues_found": 0, "issues_fixed": 0}) in recorder.calls

    def test_backups_are_pruned(
        self, data_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        settings = ShareGraphSettings.from_cli(data_root=data_root, check={"backup_max_count": 2})
        s = Store(settings)
        stamps = iter(["20260101T000001", "20260101T000002", "20260101T000003"])
        monkeypatch.setattr("sharegraph.services.check.now_compact", lambda: next(stamps))
        try:
            svc = CheckService(s)
            for _ in range(3):
                svc.fix()
        finally:
            s.close()
        backups = sorted(p.name for p in (data_root / ".sharegraph" / "backups").iterdir())
        assert backups == ["sharegraph-20260101T000002.db", "sharegraph-20260101T000003.db"]
