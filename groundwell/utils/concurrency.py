"""Shared concurrency primitives for crawling and background ingestion.

Two patterns are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with every awaitable wrapped
   in a semaphore acquire/release.  The crawler uses it to fetch pages with
   at most ``max_concurrent`` requests in flight.

2. **BackgroundTasks** -- a registry for fire-and-forget ``asyncio`` tasks.
   The event loop only keeps weak references to tasks, so a detached
   ingestion job needs a strong reference somewhere until it finishes.
   Tasks are never cancelled; :meth:`BackgroundTasks.wait` lets shutdown
   and tests wait for them to drain.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Coroutine, TypeVar

import structlog

from groundwell.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute.
    semaphore:
        Counting semaphore bounding how many run simultaneously.
    return_exceptions:
        If ``True``, exceptions are placed in the result list instead of
        propagating (``asyncio.gather`` semantics).

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as *coros*.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    return await asyncio.gather(
        *(_wrapped(c) for c in coros),
        return_exceptions=return_exceptions,
    )


class BackgroundTasks:
    """Strong-reference holder for detached, non-cancellable tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # Pipelines catch their own failures; reaching here is a bug.
            _logger.error(
                "background_task_crashed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait(self) -> None:
        """Wait until every tracked task (including ones spawned meanwhile) finishes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
