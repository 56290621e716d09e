"""Operation timings for ``--verbose`` output.

A ``@traced`` service call measures its own duration and the duration of
each named :func:`stage` it runs. Both land in
``ServiceResult.meta["timing"]`` and in a structlog debug event.
Stages are flat: a stage opened inside another stage is timed on its own.

When timing is off, the decorator costs one ContextVar lookup.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import ParamSpec, TypeVar

import structlog

from sharegraph.services.result import ServiceResult

_enabled: ContextVar[bool] = ContextVar("sharegraph_timing", default=False)
_stages: ContextVar[dict[str, float] | None] = ContextVar("sharegraph_stages", default=None)

_log = structlog.get_logger("sharegraph.timing")

_P = ParamSpec("_P")
_R = TypeVar("_R")


def enable_timing() -> None:
    _enabled.set(True)


def disable_timing() -> None:
    _enabled.set(False)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


@contextmanager
def stage(name: str) -> Iterator[None]:
    """Time *name* as part of the traced call in progress.

    Repeated stages with the same name accumulate. Outside a traced call
    this does nothing.
    """
    stages = _stages.get()
    if stages is None:
        yield
        return
    start = time.perf_counter()
    try:
        yield
    finally:
        stages[name] = round(stages.get(name, 0.0) + _elapsed_ms(start), 2)


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Attach ``meta["timing"]`` to the ServiceResult *func* returns.

    A traced call made from inside another one is timed as part of the
    outer call only.
    """

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _enabled.get() or _stages.get() is not None:
            return func(*args, **kwargs)

        stages: dict[str, float] = {}
        token = _stages.set(stages)
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        finally:
            _stages.reset(token)
        total = _elapsed_ms(start)

        if not isinstance(result, ServiceResult):
            return result
        _log.debug(
            "service.timing",
            op=func.__qualname__,
            ok=result.ok,
            total_ms=total,
            stages=stages,
        )
        timing = {"op": func.__qualname__, "total_ms": total, "stages": stages}
        return result.model_copy(  # type: ignore[return-value]
            update={"meta": {**(result.meta or {}), "timing": timing}}
        )

    return wrapper
