"""Post-commit dispatch of sharegraph hooks.

Services publish notifications and lifecycle events only after their
write transaction has committed. The bus calls the matching pluggy hook
inline when ``sync`` is set. Otherwise it hands the call to a small
thread pool, and a failing plugin is logged there.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import pluggy

logger = logging.getLogger(__name__)


class EventBus:
    """Calls hooks on the registered plugins.

    In sync mode a plugin exception propagates to the publishing service,
    which reports it as a warning on the result.
    """

    def __init__(
        self,
        plugin_manager: pluggy.PluginManager,
        *,
        sync: bool = False,
        max_workers: int = 2,
    ) -> None:
        self._hooks = plugin_manager.hook
        self._pool: ThreadPoolExecutor | None = (
            None
            if sync
            else ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sharegraph-hook")
        )
        self._in_flight: list[Future[None]] = []

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> None:
        hook = getattr(self._hooks, hook_name, None)
        if hook is None:
            raise ValueError(f"Unknown hook: {hook_name}")
        if self._pool is None:
            hook(**payload)
            return
        self._in_flight.append(self._pool.submit(_call_logged, hook_name, hook, payload))

    def flush(self) -> None:
        """Block until every queued hook call has finished."""
        in_flight, self._in_flight = self._in_flight, []
        wait(in_flight)

    def shutdown(self) -> None:
        self.flush()
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None


def _call_logged(hook_name: str, hook: Any, payload: dict[str, Any]) -> None:
    try:
        hook(**payload)
    except Exception:
        logger.warning("Plugin hook %s failed", hook_name, exc_info=True)
