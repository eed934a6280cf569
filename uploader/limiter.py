"""FIFO concurrency limiter for chunk upload calls."""

import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, TypeVar

from common.exceptions import InvalidParameterError
from common.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class ConcurrencyLimiter:
    """
    Runs at most ``max_concurrency`` scheduled coroutines at a time.

    Waiting callers are admitted strictly in the order they called ``schedule``.
    A slot is released when a running call returns, raises or is cancelled.
    Running calls are never cancelled because a sibling failed.
    """

    def __init__(self, max_concurrency: int):
        if not isinstance(max_concurrency, int) or isinstance(max_concurrency, bool) or max_concurrency < 1:
            raise InvalidParameterError("Concurrency limit must be an integer of at least 1")
        self.max_concurrency = max_concurrency
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_count(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def _acquire(self) -> None:
        if self._active < self.max_concurrency and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before the cancellation landed
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand the slot over without decrementing
                waiter.set_result(None)
                return
        self._active -= 1

    async def schedule(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Wait for a free slot, then run ``fn(*args, **kwargs)``.

        Returns:
            Whatever the coroutine returns; its exception propagates unchanged
        """
        await self._acquire()
        try:
            return await fn(*args, **kwargs)
        finally:
            self._release()
