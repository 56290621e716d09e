"""Store — repository owning the database and external collaborators.

The Store is the single dependency injected into every service. It owns
the database engine, the IdentityLookup and DocumentStore adapters, and
the notification sink. The :meth:`transaction` context manager opens a
connection with ``BEGIN IMMEDIATE`` so that the reads a mutation makes
before writing already hold the write lock, and every multi-row graph
mutation commits or rolls back as one unit:

- **Commit** on normal exit of the ``with`` block, including an early
  ``return`` from inside it, so services validate before they write.
- **Rollback** on any exception raised inside the block.

Notifications and lifecycle events are published by services *after*
the transaction block exits, never inside it.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from sharegraph.infrastructure.database.engine import WRITE_LOCK, init_database
from sharegraph.infrastructure.directory import (
    DocumentStore,
    IdentityLookup,
    SqlDocumentStore,
    SqlIdentityLookup,
)
from sharegraph.plugins.sink import (
    EventBusNotificationSink,
    NotificationSink,
    NullNotificationSink,
)
from sharegraph.services._helpers import now_iso

if TYPE_CHECKING:
    from collections.abc import Iterator

    import pluggy
    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from sharegraph.config.settings import ShareGraphSettings
    from sharegraph.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class StoreTransaction:
    """Active transaction context.

    ``now`` is captured once so every row written in the same transaction
    carries the same timestamp.
    """

    conn: Connection
    now: str = field(default_factory=now_iso)


class Store:
    """Repository encapsulating database access and external collaborators.

    Constructed once per process from :class:`ShareGraphSettings`.
    Services receive the Store via their :class:`BaseService` constructor.
    The identity, document, and notification seams default to the bundled
    adapters and may be replaced by passing explicit implementations.
    """

    def __init__(
        self,
        settings: ShareGraphSettings,
        *,
        identity: IdentityLookup | None = None,
        documents: DocumentStore | None = None,
        notifications: NotificationSink | None = None,
    ) -> None:
        self._settings = settings
        self._engine: Engine = init_database(
            self.root, busy_timeout_ms=settings.database.busy_timeout_ms
        )
        self._identity: IdentityLookup = identity or SqlIdentityLookup(self._engine)
        self._documents: DocumentStore = documents or SqlDocumentStore(self._engine)
        self._notifications: NotificationSink = notifications or NullNotificationSink()
        self._custom_sink = notifications is not None
        self._event_bus: EventBus | None = None

    @property
    def root(self) -> Path:
        """The data root directory (parent of ``.sharegraph/``)."""
        return self._settings.data_root

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def settings(self) -> ShareGraphSettings:
        """The resolved settings for this store."""
        return self._settings

    @property
    def identity(self) -> IdentityLookup:
        """The IdentityLookup collaborator."""
        return self._identity

    @property
    def documents(self) -> DocumentStore:
        """The DocumentStore collaborator."""
        return self._documents

    @property
    def notifications(self) -> NotificationSink:
        """The NotificationSink collaborator."""
        return self._notifications

    @property
    def event_bus(self) -> EventBus | None:
        """The plugin event bus (None if not initialized)."""
        return self._event_bus

    def init_event_bus(
        self,
        *,
        sync: bool = False,
        plugin_manager: pluggy.PluginManager | None = None,
    ) -> EventBus:
        """Start the hook dispatcher and route notifications through it.

        Installed plugins are loaded unless *plugin_manager* is given.
        Notifications become ``deliver_notification`` hook calls when they
        are enabled and no sink was injected at construction.
        """
        from sharegraph.plugins.event_bus import EventBus
        from sharegraph.plugins.manager import create_plugin_manager

        if plugin_manager is None:
            plugin_manager = create_plugin_manager(entry_points=self._settings.plugins.entry_points)
        notif_cfg = self._settings.notifications
        self._event_bus = EventBus(plugin_manager, sync=sync, max_workers=notif_cfg.max_workers)
        if notif_cfg.enabled and not self._custom_sink:
            self._notifications = EventBusNotificationSink(self._event_bus)
        return self._event_bus

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Atomic unit of work over the core relations.

        Usage::

            with store.transaction() as txn:
                txn.conn.execute(insert(connections).values(...))
                txn.conn.execute(update(connections).where(...))
                # Both commit on success, both roll back on failure.
        """
        conn = self._engine.connect().execution_options(**{WRITE_LOCK: True})
        with conn, conn.begin():
            yield StoreTransaction(conn=conn)

    def close(self) -> None:
        """Flush in-flight events and release database connections."""
        if self._event_bus is not None:
            self._event_bus.shutdown()
        self._engine.dispose()
