"""NotificationSink seam and its event-bus implementation.

The write path hands each :class:`NotificationEvent` to a sink after its
transaction commits. Sinks are fire-and-forget: the caller logs failures
and carries on, so the outcome of a graph mutation never depends on
notification delivery.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sharegraph.domain.models import NotificationEvent
    from sharegraph.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Accepts fire-and-forget notification events."""

    def emit(self, event: NotificationEvent) -> None:
        """Publish *event*. Never awaited for correctness."""
        ...


class EventBusNotificationSink:
    """Publishes notifications as ``deliver_notification`` hook events."""

    hook_name = "deliver_notification"

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus

    def emit(self, event: NotificationEvent) -> None:
        self._bus.dispatch(
            self.hook_name,
            {
                "target_user_id": event.target_user_id,
                "kind": str(event.kind),
                "payload": event.payload,
            },
        )


class NullNotificationSink:
    """Drops notifications (used when ``[notifications] enabled = false``)."""

    def emit(self, event: NotificationEvent) -> None:
        logger.debug("Notification dropped (disabled): %s -> %s", event.kind, event.target_user_id)
