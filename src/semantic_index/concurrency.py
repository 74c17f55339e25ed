"""Async coordination helpers."""

import asyncio
from collections.abc import Awaitable, Callable


class InitializationGuard:
    """Collapse concurrent initialisation calls into one in-flight attempt.

    Every caller awaiting run() observes the same success or failure. After a
    failure the guard is re-armed so a later call can try again. A caller being
    cancelled does not cancel the shared attempt.
    """

    def __init__(self) -> None:
        self._task: asyncio.Future[None] | None = None
        self.completed = False

    async def run(self, initializer: Callable[[], Awaitable[None]]) -> None:
        if self.completed:
            return

        if self._task is None:
            self._task = asyncio.ensure_future(initializer())
        task = self._task

        try:
            await asyncio.shield(task)
        finally:
            if task.done():
                if task.cancelled() or task.exception() is not None:
                    if self._task is task:
                        self._task = None
                else:
                    self.completed = True

    def reset(self) -> None:
        self._task = None
        self.completed = False
