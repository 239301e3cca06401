"""Reference progress controller with eased tweening and fades.

:class:`LoadProgress` keeps the numeric state (value, target, alpha,
visibility) and animates it on the running event loop. Presentation is left
to subclasses through the ``_render`` and ``_visibility_changed`` hooks;
see :class:`bootstage.cli.progress.rich.RichLoadProgress`.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from bootstage.contracts.progress import ProgressController
from bootstage.contracts.step import AsyncStep, RunContext
from bootstage.engine.cancellation import CancellationToken

Easing = Callable[[float], float]


def ease_in_out(u: float) -> float:
    """Smoothstep: zero slope at both ends."""
    return u * u * (3.0 - 2.0 * u)


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class LoadProgress(ProgressController, AsyncStep):
    """Progress state in [0, 1] with optional animation.

    Args:
        seconds_per_unit: Seconds to animate a full 0 → 1 move; scaled by the
            size of each move. ``0`` disables progress animation.
        only_increase: Never move the target backwards.
        fade_duration: Seconds for show/hide fades.
        frame_interval: Seconds between animation frames.
        easing: Curve applied to normalized animation time.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        *,
        seconds_per_unit: float = 0.35,
        only_increase: bool = True,
        fade_duration: float = 0.2,
        frame_interval: float = 1 / 60,
        easing: Easing = ease_in_out,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if seconds_per_unit < 0 or fade_duration < 0:
            raise ValueError("animation durations must be non-negative")
        if frame_interval <= 0:
            raise ValueError("frame_interval must be positive")
        self._seconds_per_unit = seconds_per_unit
        self._only_increase = only_increase
        self._fade_duration = fade_duration
        self._frame_interval = frame_interval
        self._easing = easing
        self._clock = clock

        self._value = 0.0
        self._target = 0.0
        self._alpha = 0.0
        self._visible = False
        self._closed = False
        self._progress_task: asyncio.Task[None] | None = None
        self._fade_task: asyncio.Task[None] | None = None

    @property
    def value(self) -> float:
        return self._value

    @property
    def target(self) -> float:
        return self._target

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def only_increase(self) -> bool:
        return self._only_increase

    @property
    def label(self) -> str:
        return f"{int(self._value * 100 + 0.5)}%"

    async def setup(self, token: CancellationToken, context: RunContext | None = None) -> None:
        token.raise_if_cancelled()
        self._stop_progress()
        self._apply(0.0)
        self.show(animated=True)

    def set_progress(self, value: float, animated: bool = True) -> None:
        if self._closed:
            return
        value = clamp01(value)
        if self._only_increase:
            value = max(value, self._target)
        self._target = value

        self._stop_progress()
        loop = _running_loop()
        if not animated or self._seconds_per_unit <= 0 or loop is None:
            self._apply(value)
            return
        self._progress_task = loop.create_task(self._animate_progress(self._value, value))

    def show(self, animated: bool = True) -> None:
        if self._closed:
            return
        self._set_visible(True)
        self._fade_to(1.0, animated, hide_after=False)

    def hide(self, animated: bool = True) -> None:
        if self._closed:
            return
        self._fade_to(0.0, animated, hide_after=True)

    def set_visible(self, visible: bool, animated: bool = True) -> None:
        if visible:
            self.show(animated)
        else:
            self.hide(animated)

    def close(self) -> None:
        if self._closed:
            return
        self._stop_progress()
        self._stop_fade()
        self._alpha = 0.0
        self._set_visible(False)
        self._closed = True

    # -- presentation hooks -----------------------------------------------

    def _render(self, value: float) -> None:
        """Called whenever the displayed value changes."""

    def _visibility_changed(self, visible: bool) -> None:
        """Called when the controller becomes visible or hidden."""

    # -- internals --------------------------------------------------------

    def _apply(self, value: float) -> None:
        self._value = value
        self._render(value)

    def _set_visible(self, visible: bool) -> None:
        if self._visible != visible:
            self._visible = visible
            self._visibility_changed(visible)

    def _fade_to(self, alpha: float, animated: bool, *, hide_after: bool) -> None:
        self._stop_fade()
        loop = _running_loop()
        if not animated or self._fade_duration <= 0 or loop is None:
            self._alpha = alpha
            if hide_after:
                self._set_visible(False)
            return
        self._fade_task = loop.create_task(self._animate_fade(self._alpha, alpha, hide_after))

    async def _animate_progress(self, start: float, end: float) -> None:
        duration = max(0.0001, abs(end - start) * self._seconds_per_unit)
        began = self._clock()
        while True:
            u = clamp01((self._clock() - began) / duration)
            eased = clamp01(self._easing(u))
            self._apply(start + (end - start) * eased)
            if u >= 1.0:
                break
            await asyncio.sleep(self._frame_interval)
        self._apply(end)
        if self._progress_task is asyncio.current_task():
            self._progress_task = None

    async def _animate_fade(self, start: float, end: float, hide_after: bool) -> None:
        began = self._clock()
        while True:
            u = clamp01((self._clock() - began) / self._fade_duration)
            self._alpha = start + (end - start) * clamp01(self._easing(u))
            if u >= 1.0:
                break
            await asyncio.sleep(self._frame_interval)
        self._alpha = end
        if hide_after:
            self._set_visible(False)
        if self._fade_task is asyncio.current_task():
            self._fade_task = None

    def _stop_progress(self) -> None:
        task, self._progress_task = self._progress_task, None
        if task is not None and not task.done():
            task.cancel()

    def _stop_fade(self) -> None:
        task, self._fade_task = self._fade_task, None
        if task is not None and not task.done():
            task.cancel()
