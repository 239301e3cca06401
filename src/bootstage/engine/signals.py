"""Explicit observer lists for orchestrator broadcasts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class Subscription:
    """Handle for one subscriber; usable as a context manager."""

    __slots__ = ("_callback", "_signal")

    def __init__(self, signal: Signal, callback: Callback) -> None:
        self._signal = signal
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._signal.is_subscribed(self._callback)

    def unsubscribe(self) -> bool:
        return self._signal.unsubscribe(self._callback)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.unsubscribe()


class Signal:
    """Zero-argument broadcast backed by an ordered set of callbacks.

    With ``one_shot`` (the default) the subscriber list is cleared on every
    delivery, so each subscriber hears at most one ``fire()``. A failing
    subscriber is logged and does not stop delivery to the others.
    """

    def __init__(self, name: str, *, one_shot: bool = True) -> None:
        self._name = name
        self._one_shot = one_shot
        self._callbacks: list[Callback] = []
        self._fired = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def fire_count(self) -> int:
        return self._fired

    def __len__(self) -> int:
        return len(self._callbacks)

    def is_subscribed(self, callback: Callback) -> bool:
        return callback in self._callbacks

    def subscribe(self, callback: Callback) -> Subscription:
        if callback not in self._callbacks:
            self._callbacks.append(callback)
        return Subscription(self, callback)

    def unsubscribe(self, callback: Callback) -> bool:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._callbacks.clear()

    def fire(self) -> int:
        """Deliver to the current subscribers. Returns the number notified."""
        callbacks = list(self._callbacks)
        if self._one_shot:
            self._callbacks.clear()
        self._fired += 1
        logger.debug("Signal '%s' firing to %d subscriber(s)", self._name, len(callbacks))

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Subscriber of signal '%s' failed", self._name)
        return len(callbacks)

    async def wait(self) -> None:
        """Suspend until the next ``fire()``."""
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _resolve() -> None:
            if not waiter.done():
                waiter.set_result(None)

        subscription = self.subscribe(_resolve)
        try:
            await waiter
        finally:
            subscription.unsubscribe()

    def __repr__(self) -> str:
        return f"Signal(name={self._name!r}, subscribers={len(self._callbacks)}, fired={self._fired})"
