"""
Detached Task Runner

Runs fire-and-forget work (market insight extraction) off the request path,
with bounded concurrency and a graceful drain at shutdown.
"""

import asyncio
from typing import Awaitable, Optional
from loguru import logger


class DetachedTaskRunner:
    """
    Supervisor for background coroutines.

    Submitted coroutines start immediately as tasks but wait on a semaphore
    before doing any work. Failures are logged and never re-raised; nothing
    is retried.

    Attributes:
        max_concurrent: Maximum number of tasks doing work at once
        shutdown_timeout: Seconds `shutdown` waits before cancelling
    """

    def __init__(self, max_concurrent: int = 5, shutdown_timeout: float = 30.0):
        self.max_concurrent = max_concurrent
        self.shutdown_timeout = shutdown_timeout
        self._tasks: set[asyncio.Task] = set()
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._accepting = True

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Awaitable[None], name: str = "detached") -> Optional[asyncio.Task]:
        """
        Schedule a coroutine without awaiting it.

        Returns:
            The task, or None if the runner is shutting down
        """
        if not self._accepting:
            logger.warning(f"Runner is shutting down, dropping task {name}")
            coro.close()
            return None

        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)

        task = asyncio.create_task(self._run(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Awaitable[None], name: str) -> None:
        async with self._semaphore:
            try:
                await coro
                logger.debug(f"Detached task {name} finished")
            except asyncio.CancelledError:
                logger.warning(f"Detached task {name} cancelled")
                raise
            except Exception:
                logger.exception(f"Detached task {name} failed")

    async def shutdown(self) -> None:
        """
        Stop accepting work and drain.

        1. Rejects new submissions
        2. Waits for in-flight tasks up to the timeout
        3. Cancels whatever is still running
        """
        self._accepting = False

        if not self._tasks:
            return

        logger.info(f"Waiting for {len(self._tasks)} detached tasks to complete...")
        tasks = list(self._tasks)
        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True),
                timeout=self.shutdown_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timeout waiting for detached tasks, cancelling {len(self._tasks)}")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
