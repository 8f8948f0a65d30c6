"""Limit on concurrently open event streams."""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Optional

from ..domain.interfaces import Logger


class StreamSlotManager:
    """Bounds open streams across jobs; extra jobs wait in FIFO order.

    Only slot accounting lives here. No job state is shared through it.
    """

    def __init__(self, max_concurrent_streams: int = 5, logger: Optional[Logger] = None):
        """Initialize slot manager."""
        if max_concurrent_streams < 1:
            raise ValueError("max_concurrent_streams must be at least 1")
        self.max_concurrent_streams = max_concurrent_streams
        self.logger = logger
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def active_count(self) -> int:
        """Streams currently holding a slot."""
        return self._active

    @property
    def queue_depth(self) -> int:
        """Jobs waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self, job_id: str) -> None:
        """Take a slot, waiting in line when all are busy."""
        if self._active < self.max_concurrent_streams and not self.queue_depth:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        if self.logger:
            self.logger.info(
                "Stream queued",
                job_id=job_id,
                active=self._active,
                queue_depth=self.queue_depth,
            )
        try:
            await waiter
        except asyncio.CancelledError:
            # A slot handed over just before cancellation goes to the next job.
            if waiter.done() and not waiter.cancelled():
                self.release(job_id)
            raise
        finally:
            try:
                self._waiters.remove(waiter)
            except ValueError:
                pass

    def release(self, job_id: str) -> None:
        """Return a slot, handing it to the longest waiting job."""
        for waiter in self._waiters:
            if not waiter.done():
                # The slot passes straight to the waiter; the active count stays.
                waiter.set_result(None)
                return
        self._active -= 1

    @asynccontextmanager
    async def slot(self, job_id: str) -> AsyncIterator[None]:
        """Hold a slot for the duration of the block."""
        await self.acquire(job_id)
        try:
            yield
        finally:
            self.release(job_id)
