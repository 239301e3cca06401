"""Tick schedulers.

``AsyncioScheduler`` treats one event-loop iteration as a tick.
``FrameScheduler`` lets a host frame loop decide when a tick happens.
"""

from __future__ import annotations

import asyncio
import logging

from bootstage.contracts.exceptions import OperationCancelledError
from bootstage.contracts.scheduler import Scheduler
from bootstage.engine.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class AsyncioScheduler(Scheduler):
    async def next_tick(self, token: CancellationToken | None = None) -> None:
        if token is not None:
            token.raise_if_cancelled()
        await asyncio.sleep(0)
        if token is not None:
            token.raise_if_cancelled()


class FrameScheduler(Scheduler):
    """Ticks are released by :meth:`advance`, one frame at a time.

    Every coroutine waiting in :meth:`next_tick` resumes on the next
    ``advance()``; a waiter whose token is cancelled resumes immediately with
    :class:`OperationCancelledError`.
    """

    def __init__(self) -> None:
        self._waiters: list[asyncio.Future[None]] = []
        self._frame = 0

    @property
    def frame(self) -> int:
        return self._frame

    @property
    def pending(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def next_tick(self, token: CancellationToken | None = None) -> None:
        if token is not None:
            token.raise_if_cancelled()

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        registration = token.register(lambda: waiter.done() or waiter.cancel()) if token is not None else None
        try:
            await waiter
        except asyncio.CancelledError:
            if token is not None and token.cancelled:
                raise OperationCancelledError(
                    f"generation {token.generation} was cancelled while waiting for a frame",
                    generation=token.generation,
                ) from None
            raise
        finally:
            if registration is not None:
                registration.dispose()
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def advance(self) -> int:
        """Release every waiter. Returns how many were resumed."""
        self._frame += 1
        waiters, self._waiters = self._waiters, []
        released = 0
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
                released += 1
        return released

    async def drive(self, frame_rate: float) -> None:
        """Advance at *frame_rate* frames per second until cancelled."""
        if frame_rate <= 0:
            raise ValueError("frame_rate must be positive")
        interval = 1.0 / frame_rate
        logger.debug("Driving frames at %.1f fps", frame_rate)
        while True:
            self.advance()
            await asyncio.sleep(interval)
