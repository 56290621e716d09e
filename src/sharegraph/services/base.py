"""BaseService — abstract foundation for all sharegraph services.

Every service receives a :class:`Store` at construction time. The Store
provides transactional access to the database and the identity, document,
and notification collaborators. Services own their transaction boundaries
via ``self._store.transaction()``.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Concatenate, ParamSpec, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sharegraph.infrastructure.directory import DependencyUnavailableError
from sharegraph.services.result import ErrorCode, ServiceError, ServiceResult

if TYPE_CHECKING:
    from sharegraph.domain.models import NotificationEvent
    from sharegraph.infrastructure.store import Store

logger = logging.getLogger(__name__)

_S = TypeVar("_S", bound="BaseService")
_P = ParamSpec("_P")


def guarded(
    op: str,
) -> Callable[
    [Callable[Concatenate[_S, _P], ServiceResult]],
    Callable[Concatenate[_S, _P], ServiceResult],
]:
    """Translate storage and collaborator failures into tagged results.

    The wrapped operation's transaction has already rolled back by the time
    the exception reaches this decorator.
    """

    def decorator(
        func: Callable[Concatenate[_S, _P], ServiceResult],
    ) -> Callable[Concatenate[_S, _P], ServiceResult]:
        @functools.wraps(func)
        def wrapper(self: _S, *args: _P.args, **kwargs: _P.kwargs) -> ServiceResult:
            try:
                return func(self, *args, **kwargs)
            except DependencyUnavailableError as exc:
                logger.warning("%s: %s unavailable", op, exc.dependency, exc_info=True)
                return self._fail(
                    op,
                    ErrorCode.UNAVAILABLE,
                    str(exc),
                    dependency=exc.dependency,
                )
            except IntegrityError as exc:
                logger.info("%s: integrity conflict", op, exc_info=True)
                return self._fail(
                    op,
                    ErrorCode.CONFLICT,
                    "Concurrent modification, retry with fresh state",
                    reason=str(exc.orig),
                )
            except SQLAlchemyError as exc:
                logger.error("%s: storage failure", op, exc_info=True)
                return self._fail(
                    op,
                    ErrorCode.UNAVAILABLE,
                    "Storage temporarily unavailable",
                    dependency="database",
                    reason=type(exc).__name__,
                )

        return wrapper

    return decorator


class BaseService:
    """Abstract base for all service-layer classes.

    Subclasses implement domain-specific operations (connections,
    households, sharing, read model, check) using the store for all
    data access.

    Usage::

        class ConnectionService(BaseService):
            def accept(self, connection_id: str, acting_user_id: str) -> ServiceResult:
                with self._store.transaction() as txn:
                    ...
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    @staticmethod
    def _fail(op: str, code: ErrorCode, message: str, **detail: Any) -> ServiceResult:
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(code=code, message=message, detail=detail),
        )

    def _dispatch_event(
        self,
        hook_name: str,
        payload: dict[str, Any],
        warnings: list[str],
    ) -> None:
        """Dispatch a lifecycle event. No-op if event bus not initialized.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        bus = self._store.event_bus
        if bus is None:
            return
        try:
            bus.dispatch(hook_name, payload)
        except Exception:
            logger.debug("Event dispatch failed for %s", hook_name, exc_info=True)
            warnings.append(f"Event dispatch failed for {hook_name}")

    def _notify(self, event: NotificationEvent, warnings: list[str]) -> None:
        """Hand *event* to the notification sink after commit.

        Delivery failures are logged and surfaced as a warning; the
        committed mutation stands.
        """
        try:
            self._store.notifications.emit(event)
        except Exception:
            logger.warning(
                "Notification %s to %s failed",
                event.kind,
                event.target_user_id,
                exc_info=True,
            )
            warnings.append(f"Notification to {event.target_user_id} not delivered")
