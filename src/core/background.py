"""
Espiritualizei — Fire-and-forget persistence tasks.

Remote writes that must not block the caller are scheduled here. Failures are
logged when the task finishes and never propagate to whoever scheduled it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Holds strong references to scheduled tasks until they complete."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    def spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> asyncio.Task:
        """Schedule coro on the running loop. Must be called from within the loop."""
        task = asyncio.get_running_loop().create_task(coro, name=label)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task '%s' was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            logger.error("Background task '%s' failed: %s", task.get_name(), exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled task, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
