"""Detached background tasks with error-swallowing semantics.

:func:`fire_and_forget` schedules a coroutine on the running loop and
returns immediately.  The task is kept strongly referenced until it
finishes (the event loop only holds weak references), and any
exception it raises stops at this boundary: it is logged, passed to
the optional observer, and never re-raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)

ExceptionObserver = Callable[[BaseException], None]

_background_tasks: set[asyncio.Task[Any]] = set()


def fire_and_forget(
    coro: Coroutine[Any, Any, Any],
    *,
    on_exception: ExceptionObserver | None = None,
    name: str | None = None,
) -> asyncio.Task[Any]:
    """Run *coro* as a detached task.

    Must be called from within a running event loop.

    Args:
        coro: The coroutine to schedule.
        on_exception: Optional observer called with the exception
            if the task fails.  Errors raised by the observer itself
            are logged.
        name: Optional task name, for debugging.

    Returns:
        The created task.  Callers may await it but are not required to.
    """
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(lambda t: _on_done(t, on_exception))
    return task


def pending_task_count() -> int:
    """Number of detached tasks that have not finished yet."""
    return len(_background_tasks)


def _on_done(
    task: asyncio.Task[Any],
    on_exception: ExceptionObserver | None,
) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        return
    logger.debug("Background task %s failed: %r", task.get_name(), exc)
    if on_exception is not None:
        try:
            on_exception(exc)
        except Exception:
            logger.exception("Exception observer for %s failed", task.get_name())
