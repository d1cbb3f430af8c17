"""
Upload concurrency limiter.

A FIFO gate around backend uploads. Unlike asyncio.Semaphore, the order in
which waiters get a slot is guaranteed to be arrival order, and a slot
freed by release() is handed straight to the oldest waiter.
"""
import asyncio
from collections import deque


class ConcurrencyLimiter:
    """
    Bound the number of concurrent holders.

    Args:
        capacity: Maximum simultaneous holders (default: 10)
    """

    def __init__(self, capacity: int = 10):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._active = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        if self._active < self.capacity and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.cancelled():
                # Gave up while queued: leave the line without a slot
                if waiter in self._waiters:
                    self._waiters.remove(waiter)
            else:
                # Slot was handed over just before cancellation: pass it on
                self.release()
            raise

    def release(self) -> None:
        """Hand the slot to the oldest live waiter, or free it."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot ownership moves to the waiter; active count unchanged
                waiter.set_result(None)
                return
        if self._active <= 0:
            raise RuntimeError("release() called more times than acquire()")
        self._active -= 1

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
