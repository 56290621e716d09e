"""Tests for Store — transactions and collaborator wiring."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import Connection, func, insert, select

from sharegraph.config.settings import ShareGraphSettings
from sharegraph.infrastructure.database.schema import connections
from sharegraph.infrastructure.directory import SqlDocumentStore, SqlIdentityLookup
from sharegraph.infrastructure.store import Store
from sharegraph.plugins.sink import NullNotificationSink


def _insert_connection(conn: Connection, connection_id: str, now: str) -> None:
    conn.execute(
        insert(connections).values(
            id=connection_id,
            owner_id="usr_ann",
            peer_id="usr_bob",
            relationship_kind="friend",
            status="pending",
            created_at=now,
        )
    )


def _count(store: Store) -> int:
    with store.engine.connect() as conn:
        return int(conn.execute(select(func.count()).select_from(connections)).scalar_one())


class TestStore:
    def test_creates_data_dir(self, settings: ShareGraphSettings, data_root: Path) -> None:
        s = Store(settings)
        try:
            assert (data_root / ".sharegraph" / "sharegraph.db").is_file()
            assert s.root == data_root
            assert s.settings is settings
        finally:
            s.close()

    def test_default_collaborators(self, settings: ShareGraphSettings) -> None:
        s = Store(settings)
        try:
            assert isinstance(s.identity, SqlIdentityLookup)
            assert isinstance(s.documents, SqlDocumentStore)
            assert isinstance(s.notifications, NullNotificationSink)
            assert s.event_bus is None
        finally:
            s.close()

    def test_transaction_commits(self, store: Store) -> None:
        with store.transaction() as txn:
            _insert_connection(txn.conn, "con_000000000001", txn.now)
        assert _count(store) == 1

    def test_transaction_rolls_back_every_row(self, store: Store) -> None:
        with pytest.raises(RuntimeError), store.transaction() as txn:
            _insert_connection(txn.conn, "con_000000000001", txn.now)
            _insert_connection(txn.conn, "con_000000000002", txn.now)
            raise RuntimeError("mirror write failed")
        assert _count(store) == 0

    def test_transaction_timestamp_is_stable(self, store: Store) -> None:
        with store.transaction() as txn:
            first = txn.now
            _insert_connection(txn.conn, "con_000000000001", txn.now)
            assert txn.now == first

    def test_reopen_existing_root(self, settings: ShareGraphSettings) -> None:
        s = Store(settings)
        with s.transaction() as txn:
            _insert_connection(txn.conn, "con_000000000001", txn.now)
        s.close()

        again = Store(settings)
        try:
            assert _count(again) == 1
        finally:
            again.close()
