"""Named asyncio background jobs (autosave and friends)."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Run at most one task per name on the current event loop."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule ``coro`` under ``name``.

        Refuses with ``ValueError`` while a task of the same name is still
        running; a finished one is simply replaced.
        """
        if self.is_running(name):
            coro.close()
            raise ValueError(f"Task {name!r} is already running.")
        task = asyncio.get_running_loop().create_task(coro, name=name)
        task.add_done_callback(self._log_failure)
        self._tasks[name] = task
        LOGGER.debug("task.started", extra={"event": "task.started", "task": name})
        return task

    @staticmethod
    def _log_failure(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.failed",
                extra={
                    "event": "task.failed",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        return self._tasks.get(name)

    def is_running(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    async def cancel(self, name: str) -> None:
        """Cancel one task and wait until it has stopped."""
        task = self._tasks.pop(name, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def cancel_all(self) -> None:
        for name in list(self._tasks):
            await self.cancel(name)
