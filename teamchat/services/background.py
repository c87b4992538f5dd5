from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any


logger = logging.getLogger(__name__)


class DetachedTasks:
    """Holds strong references to detached tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("background task cancelled: name=%s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background task crashed: name=%s",
                task.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, *, timeout_s: float | None = None) -> None:
        """Wait for running tasks; cancel whatever is left after ``timeout_s``."""
        pending = set(self._tasks)
        if not pending:
            return
        done, still_pending = await asyncio.wait(pending, timeout=timeout_s)
        _ = done
        for task in still_pending:
            _ = task.cancel()
        if still_pending:
            _ = await asyncio.gather(*still_pending, return_exceptions=True)
