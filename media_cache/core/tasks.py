"""
Fire-and-forget execution of background coroutines.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

log = logging.getLogger(__name__)


class TaskRunner:
    """
    Runs coroutines in the background without the caller awaiting them.

    The event loop only keeps weak references to tasks, so the runner holds a
    strong reference until each one finishes. Failures are logged, never
    re-raised.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.debug(f"Background task '{task.get_name()}' was cancelled.")
            return
        exc = task.exception()
        if exc is not None:
            log.error(f"Background task '{task.get_name()}' failed: {exc}")

    async def drain(self) -> None:
        """Waits until every submitted task, including ones submitted meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
