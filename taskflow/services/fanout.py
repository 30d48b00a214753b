"""Background runner for post-commit fan-out work.

Write endpoints commit first, respond, and hand the notification/broadcast
coroutine to ``FanoutRunner.submit``.  Each job runs as its own asyncio task
under a timeout; failures and timeouts are logged and never reach the
request that scheduled the job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 5.0


class FanoutRunner:
    """Fire-and-forget task runner with per-job timeout."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, job: Coroutine[Any, Any, Any], *, label: str = "fanout") -> asyncio.Task:
        """Schedule *job* on the running loop and return its task."""
        task = asyncio.create_task(self._run(job, label))
        # Keep a strong reference until the task finishes.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, job: Coroutine[Any, Any, Any], label: str) -> None:
        try:
            await asyncio.wait_for(job, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Fan-out job %s timed out after %.1fs", label, self.timeout)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Fan-out job %s failed", label)

    async def drain(self) -> None:
        """Wait until every submitted job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
