"""Cooperative flush scheduler on the asyncio event loop.

Model writes do not notify watchers synchronously. They queue a job, and
the scheduler flushes all queued jobs in one batch on the next loop
iteration, so several writes made back to back are seen once. Validation
work spawned by those jobs is tracked so callers can wait until the form
has settled with next_tick().
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)

Job = Callable[[], None]


class Scheduler:
    """Batches reactions to model writes and tracks the tasks they spawn."""

    def __init__(self) -> None:
        self._queue: list[Job] = []
        self._scheduled = False
        self._flushing = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while jobs are queued or spawned tasks are running."""
        return bool(self._queue) or bool(self._tasks)

    def queue(self, job: Job) -> None:
        """Queue *job* for the next flush. A job already queued is not duplicated."""
        if job not in self._queue:
            self._queue.append(job)
        if self._scheduled or self._flushing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: the job runs on the first flush inside one
            return
        self._scheduled = True
        loop.call_soon(self.flush)

    def flush(self) -> None:
        """Run every queued job, including jobs queued while flushing."""
        self._scheduled = False
        self._flushing = True
        try:
            while self._queue:
                job = self._queue.pop(0)
                job()
        finally:
            self._flushing = False

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run *coro* as a task on the running loop and track it until done."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def next_tick(self) -> None:
        """Wait until queued jobs have run and the tasks they spawned settled.

        A custom validator that never completes keeps this waiting forever.
        """
        while True:
            if self._queue:
                self.flush()
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
                continue
            # Let callbacks scheduled by settled futures run
            await asyncio.sleep(0)
            if not self._queue and not self._tasks:
                return
