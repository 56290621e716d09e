"""Extension layer: plugin hooks via pluggy.

Plugins come from the ``sharegraph.plugins`` entry-point group.
INVARIANT: Plugin failures are warnings, never errors.
"""

from sharegraph.plugins.event_bus import EventBus
from sharegraph.plugins.hookspecs import hookimpl
from sharegraph.plugins.manager import create_plugin_manager
from sharegraph.plugins.sink import EventBusNotificationSink

__all__ = ["EventBus", "EventBusNotificationSink", "create_plugin_manager", "hookimpl"]
