"""Shared pytest fixtures and test helpers for sharegraph tests."""

from __future__ import annotations

import json
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from sharegraph.config.settings import ShareGraphSettings
from sharegraph.domain.models import NotificationEvent
from sharegraph.infrastructure.database.engine import init_database
from sharegraph.infrastructure.store import Store
from sharegraph.plugins import create_plugin_manager, hookimpl
from sharegraph.services.timing import disable_timing


# ---------------------------------------------------------------------------
# Recording collaborators
# ---------------------------------------------------------------------------


class RecordingSink:
    """NotificationSink that keeps every emitted event."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[NotificationEvent]:
        return [e for e in self.events if e.kind == kind]


class RecordingPlugin:
    """Plugin that records lifecycle hook calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    @hookimpl
    def deliver_notification(
        self, target_user_id: str, kind: str, payload: dict[str, Any]
    ) -> None:
        self.calls.append(
            (
                "deliver_notification",
                {"target_user_id": target_user_id, "kind": kind, "payload": payload},
            )
        )

    @hookimpl
    def post_connection_accepted(
        self, connection_id: str, owner_id: str, peer_id: str, relationship_kind: str
    ) -> None:
        self.calls.append(
            (
                "post_connection_accepted",
                {"connection_id": connection_id, "owner_id": owner_id, "peer_id": peer_id},
            )
        )

    @hookimpl
    def post_connection_removed(self, owner_id: str, peer_id: str, shares_revoked: int) -> None:
        self.calls.append(
            (
                "post_connection_removed",
                {"owner_id": owner_id, "peer_id": peer_id, "shares_revoked": shares_revoked},
            )
        )

    @hookimpl
    def post_household_created(
        self, household_id: str, name: str, created_by: str, member_ids: list[str]
    ) -> None:
        self.calls.append(
            ("post_household_created", {"household_id": household_id, "member_ids": member_ids})
        )

    @hookimpl
    def post_share_granted(
        self,
        share_id: str,
        document_id: str,
        owner_id: str,
        recipient_id: str,
        permission: str,
        created: bool,
    ) -> None:
        self.calls.append(
            (
                "post_share_granted",
                {"share_id": share_id, "permission": permission, "created": created},
            )
        )

    @hookimpl
    def post_share_revoked(
        self, share_id: str, document_id: str, owner_id: str, recipient_id: str
    ) -> None:
        self.calls.append(("post_share_revoked", {"share_id": share_id}))

    @hookimpl
    def post_check(self, issues_found: int, issues_fixed: int) -> None:
        self.calls.append(
            ("post_check", {"issues_found": issues_found, "issues_fixed": issues_fixed})
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_timing() -> Generator[None]:
    """``-v`` and timing tests switch timing on; never let that leak."""
    yield
    disable_timing()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def data_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temporary data root with no config or env overrides in effect."""
    for var in ("SHAREGRAPH_CONFIG", "SHAREGRAPH_ACTOR", "SHAREGRAPH_DATA_ROOT"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def settings(data_root: Path) -> ShareGraphSettings:
    return ShareGraphSettings.from_cli(data_root=data_root)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def recorder() -> RecordingPlugin:
    return RecordingPlugin()


@pytest.fixture
def store(
    settings: ShareGraphSettings,
    sink: RecordingSink,
    recorder: RecordingPlugin,
) -> Generator[Store]:
    """Store with a recording notification sink and a synchronous event bus."""
    s = Store(settings, notifications=sink)
    pm = create_plugin_manager(entry_points=False)
    pm.register(recorder, name="recorder")
    s.init_event_bus(sync=True, plugin_manager=pm)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def users(store: Store) -> dict[str, str]:
    """Seed ann, bob, cy and dee; return name -> user ID."""
    from sharegraph.services.directory import DirectoryService

    svc = DirectoryService(store)
    ids: dict[str, str] = {}
    for name in ("ann", "bob", "cy", "dee"):
        result = svc.add_user(
            f"{name}@example.com", display_name=name.title(), user_id=f"usr_{name}"
        )
        assert result.ok, result.error
        ids[name] = result.data["id"]
    return ids


@pytest.fixture
def _isolated_root(data_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to a temp data root so the CLI creates an isolated store.

    Use via ``@pytest.mark.usefixtures("_isolated_root")`` on command test
    classes.
    """
    monkeypatch.chdir(data_root)


# ---------------------------------------------------------------------------
# Shared test helpers (used across service test modules)
# ---------------------------------------------------------------------------


def add_document(store: Store, owner_id: str, name: str, **kwargs: Any) -> str:
    """Register a document via DirectoryService, asserting success."""
    from sharegraph.services.directory import DirectoryService

    result = DirectoryService(store).add_document(owner_id, name, **kwargs)
    assert result.ok, result.error
    return str(result.data["id"])


def send_request(store: Store, requester_id: str, target: str, kind: str = "friend") -> str:
    """Send a connection request, asserting success. Returns the connection ID."""
    from sharegraph.services.connections import ConnectionService

    result = ConnectionService(store).send_request(requester_id, target, kind)
    assert result.ok, result.error
    return str(result.data["connection"]["id"])


def connect(store: Store, a: str, b: str, kind: str = "friend") -> str:
    """Create an accepted connection a <-> b. Returns a's row ID."""
    from sharegraph.services.connections import ConnectionService

    connection_id = send_request(store, a, b, kind)
    result = ConnectionService(store).accept(connection_id, b)
    assert result.ok, result.error
    return connection_id


def peer_ids(store: Store, user_id: str) -> list[str]:
    """IDs of everyone *user_id* is connected to."""
    from sharegraph.services.read_model import GraphReadModel

    result = GraphReadModel(store).connections(user_id)
    assert result.ok, result.error
    return sorted(item["peer_id"] for item in result.data["items"])


def invoke_json(runner: CliRunner, *args: str) -> dict[str, Any]:
    """Invoke the CLI with ``--json``, asserting success. Returns the payload."""
    from sharegraph.cli import cli

    result = runner.invoke(cli, ["--json", *args])
    assert result.exit_code == 0, result.stderr
    payload: dict[str, Any] = json.loads(result.stdout)
    return payload


def seed_cli_users(runner: CliRunner, *names: str) -> None:
    """Register ``<name>@example.com`` as ``usr_<name>`` through the CLI."""
    for name in names:
        invoke_json(
            runner,
            "directory",
            "add-user",
            f"{name}@example.com",
            "--name",
            name.title(),
            "--id",
            f"usr_{name}",
        )
