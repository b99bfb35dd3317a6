"""
Fire-and-forget background tasks.

Side effects that must never delay or fail the request that triggered them
(activity refresh, notification emails) are handed to a DetachedTaskRunner.
The runner keeps a strong reference to each task until it finishes and
routes any exception to the logger.

Example:
    runner = DetachedTaskRunner()
    runner.spawn(session_manager.touch(user_id, device_id), name="touch")

    # On shutdown (or at the end of a test)
    await runner.drain()
"""

import asyncio
import logging
from typing import Coroutine, Any, Optional, Set

logger = logging.getLogger(__name__)


class DetachedTaskRunner:
    """
    Schedules coroutines on the running event loop without awaiting them.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    def spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        name: Optional[str] = None,
    ) -> asyncio.Task:
        """
        Schedule a coroutine and return immediately.

        Args:
            coro: Coroutine to run
            name: Label used in logs

        Returns:
            The created task (callers normally ignore it)
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.debug(f"Detached task {task.get_name()} cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Detached task {task.get_name()} failed: {exc!r}",
                exc_info=exc,
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Wait for all pending tasks to finish.

        Tasks still running after `timeout` seconds are cancelled.
        """
        if not self._tasks:
            return

        tasks = list(self._tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} detached tasks on drain")
            await asyncio.gather(*pending, return_exceptions=True)
