"""Generational cancellation scopes.

A :class:`CancellationScope` owns one :class:`CancellationToken`. The token
is observed at every suspension point of a run; the scope is the only thing
allowed to cancel it. :class:`ScopeManager` keeps at most one live scope and
swaps in a new generation on every run start.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from types import TracebackType

from bootstage.contracts.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

_NEVER_GENERATION = -1


class CancellationRegistration:
    """Handle returned by :meth:`CancellationToken.register`."""

    __slots__ = ("_callback", "_token")

    def __init__(self, token: CancellationToken | None, callback: Callable[[], None]) -> None:
        self._token = token
        self._callback = callback

    def dispose(self) -> None:
        if self._token is not None:
            self._token._unregister(self._callback)
            self._token = None


class CancellationToken:
    """Read side of a cancellation scope.

    Once cancelled, a token stays cancelled forever.
    """

    def __init__(self, generation: int = 0) -> None:
        self._generation = generation
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []
        self._waiters: list[asyncio.Future[None]] = []

    @classmethod
    def never(cls) -> CancellationToken:
        """A token no scope owns, so it is never cancelled."""
        return cls(generation=_NEVER_GENERATION)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelledError(
                f"generation {self._generation} was cancelled",
                generation=self._generation,
            )

    def register(self, callback: Callable[[], None]) -> CancellationRegistration:
        """Run *callback* on cancellation, or immediately if already cancelled."""
        if self._cancelled:
            callback()
            return CancellationRegistration(None, callback)
        self._callbacks.append(callback)
        return CancellationRegistration(self, callback)

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        if self._cancelled:
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def _unregister(self, callback: Callable[[], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def _cancel(self) -> bool:
        if self._cancelled:
            return False
        self._cancelled = True

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed (generation %d)", self._generation)

        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        return True

    def __repr__(self) -> str:
        return f"CancellationToken(generation={self._generation}, cancelled={self._cancelled})"


class ScopeState(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    DISPOSED = "disposed"


class CancellationScope:
    """Write side of a token: one run generation.

    Args:
        generation: Generation number stamped on the token.
        parent: Optional token whose cancellation cancels this scope as well.
    """

    def __init__(self, generation: int = 0, *, parent: CancellationToken | None = None) -> None:
        self._token = CancellationToken(generation)
        self._state = ScopeState.ACTIVE
        self._tasks: set[asyncio.Task[object]] = set()
        self._parent_link: CancellationRegistration | None = None
        if parent is not None:
            self._parent_link = parent.register(self.cancel)

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def generation(self) -> int:
        return self._token.generation

    @property
    def state(self) -> ScopeState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is ScopeState.ACTIVE

    def cancel(self) -> bool:
        """Cancel the token. Returns ``True`` only for the call that cancelled it."""
        if self._state is not ScopeState.ACTIVE:
            return False
        self._state = ScopeState.CANCELLED
        logger.debug("Cancelling scope generation %d", self.generation)
        self._token._cancel()
        return True

    def dispose(self) -> None:
        """Cancel (if still active) and release the parent link."""
        if self._state is ScopeState.DISPOSED:
            return
        self.cancel()
        if self._parent_link is not None:
            self._parent_link.dispose()
            self._parent_link = None
        self._state = ScopeState.DISPOSED

    def attach(self, task: asyncio.Task[object]) -> None:
        """Track *task* as work running under this scope."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def join(self) -> None:
        """Wait for every attached task to finish unwinding."""
        current = asyncio.current_task()
        pending = [task for task in self._tasks if task is not current and not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def __enter__(self) -> CancellationScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"CancellationScope(generation={self.generation}, state={self._state.value})"


class ScopeManager:
    """Holds at most one live scope and hands out increasing generations."""

    def __init__(self) -> None:
        self._current: CancellationScope | None = None
        self._generation = 0

    @property
    def current(self) -> CancellationScope | None:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    def replace(self, parent: CancellationToken | None = None) -> CancellationScope:
        """Cancel and dispose the live scope, then start a fresh generation."""
        self.cancel_and_dispose()
        self._generation += 1
        self._current = CancellationScope(self._generation, parent=parent)
        logger.debug("Started scope generation %d", self._generation)
        return self._current

    def cancel_and_dispose(self) -> CancellationScope | None:
        """Terminate the live scope. Returns it so callers can join its tasks."""
        scope = self._current
        if scope is None:
            return None
        self._current = None
        scope.dispose()
        return scope

    def is_current(self, generation: int) -> bool:
        scope = self._current
        return scope is not None and scope.active and scope.generation == generation
