"""Fire-and-forget task dispatch.

Side effects that must never hold up a response (outbound email, best-effort
cache writes) are scheduled with spawn(). Failures are logged and dropped;
callers never await the result.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from shared.logging import get_logger

log = get_logger(__name__)

# Strong references so pending tasks are not garbage-collected mid-flight
_pending: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error(
            "background_task_failed",
            task=task.get_name(),
            error=str(exc),
            error_type=type(exc).__name__,
        )


def spawn(coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
    """Schedule *coro* on the running loop without awaiting it."""
    task = asyncio.create_task(coro, name=name)
    _pending.add(task)
    task.add_done_callback(_on_done)
    return task


async def drain(timeout: float = 5.0) -> None:
    """Wait (bounded) for in-flight background tasks, e.g. at shutdown."""
    if not _pending:
        return
    await asyncio.wait(list(_pending), timeout=timeout)
