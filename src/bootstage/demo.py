"""Toy two-stage boot used by ``bootstage demo``.

The ``start`` stage shows a start screen once the stage is ready, warms up a
few assets and carries an empty slot and a failing step to show how both are
contained. Deconstructing it hands off to the ``game`` stage, which preloads
dormant enemy waves that wake up on the play signal.
"""

from __future__ import annotations

import logging

from bootstage.contracts.config import BootConfig, ProgressSettings, StageConfig
from bootstage.contracts.step import AsyncStep, RunContext
from bootstage.engine.cancellation import CancellationToken
from bootstage.engine.signals import Subscription
from bootstage.scene.scene import UnitInstance
from bootstage.scene.template import Template

logger = logging.getLogger(__name__)


class Camera:
    """Singleton infrastructure marker."""


class EventSystem:
    """Singleton infrastructure marker."""


class StartScreen(AsyncStep):
    """Stays hidden until the stage is ready.

    The readiness subscription is dropped on delivery or when the instance is
    destroyed, whichever comes first.
    """

    def __init__(self, title: str = "Press start") -> None:
        self.title = title
        self.instance: UnitInstance | None = None
        self.shown = False
        self._subscription: Subscription | None = None

    def bind(self, instance: UnitInstance) -> None:
        self.instance = instance
        instance.active = False

    async def setup(self, token: CancellationToken, context: RunContext | None = None) -> None:
        token.raise_if_cancelled()
        if context is None:
            self._show()
            return
        self._subscription = context.ready.subscribe(self._show)

    def on_destroy(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def _show(self) -> None:
        self._subscription = None
        if self.instance is not None and not self.instance.destroyed:
            self.instance.active = True
        self.shown = True
        logger.info("Start screen: %s", self.title)


class AssetWarmup(AsyncStep):
    """Pretends to load a handful of assets, one per tick."""

    def __init__(self, assets: tuple[str, ...] = ("sprites", "audio", "fonts")) -> None:
        self.assets = assets
        self.loaded: list[str] = []

    async def setup(self, token: CancellationToken, context: RunContext | None = None) -> None:
        for asset in self.assets:
            token.raise_if_cancelled()
            if asset not in self.loaded:
                self.loaded.append(asset)
                logger.debug("Warmed up %s", asset)
            if context is not None:
                await context.orchestrator.scheduler.next_tick(token)


class Enemy:
    def __init__(self) -> None:
        self.instance: UnitInstance | None = None

    def bind(self, instance: UnitInstance) -> None:
        self.instance = instance


enemy = Template.of(Enemy, name="Enemy")


class WavePreloader(AsyncStep):
    """Spawns dormant enemies under its own instance and wakes them on play.

    Yields a tick after every *batch* spawns so large waves do not stall the
    host loop.
    """

    def __init__(self, count: int = 24, batch: int = 8) -> None:
        if batch <= 0:
            raise ValueError("batch must be positive")
        self.count = count
        self.batch = batch
        self.instance: UnitInstance | None = None
        self.spawned: list[UnitInstance] = []
        self.released = False
        self._subscription: Subscription | None = None

    def bind(self, instance: UnitInstance) -> None:
        self.instance = instance

    async def setup(self, token: CancellationToken, context: RunContext | None = None) -> None:
        if context is None or self.instance is None:
            raise RuntimeError("wave preloader needs a run context and a bound instance")
        if self.spawned:
            return

        for index in range(self.count):
            token.raise_if_cancelled()
            spawned = context.scene.instantiate(enemy, parent=self.instance)
            spawned.active = False
            self.spawned.append(spawned)
            if (index + 1) % self.batch == 0:
                await context.orchestrator.scheduler.next_tick(token)

        self._subscription = context.play.subscribe(self.release)
        logger.info("Preloaded %d dormant enemies", len(self.spawned))

    def release(self) -> None:
        self._subscription = None
        for spawned in self.spawned:
            if not spawned.destroyed:
                spawned.active = True
        self.released = True

    def on_destroy(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()


class BrokenStep(AsyncStep):
    """Always fails; the stage carries on without it."""

    async def setup(self, token: CancellationToken, context: RunContext | None = None) -> None:
        raise RuntimeError("asset bundle missing")


class HudRoot:
    pass


start_screen = Template.of(StartScreen, name="StartScreen")
warmup = Template.of(AssetWarmup, name="AssetWarmup")
broken = Template.of(BrokenStep, name="Broken")
waves = Template.of(WavePreloader, name="Waves")
hud = Template(
    name="Hud",
    components=(HudRoot,),
    children=(
        Template.of(AssetWarmup, name="HudFonts", assets=("fonts",)),
        Template.of(AssetWarmup, name="HudIcons", assets=("icons", "cursors")),
    ),
)
camera = Template.of(Camera, name="Camera", tag="camera")
event_system = Template.of(EventSystem, name="EventSystem", tag="event-system")

_BOOTSTRAP = ["bootstage.demo:camera", "bootstage.demo:event_system"]

DEMO_CONFIG = BootConfig(
    stages=[
        StageConfig(
            name="start",
            steps=["bootstage.demo:start_screen", "bootstage.demo:warmup", None, "bootstage.demo:broken"],
            bootstrap=_BOOTSTRAP,
            next_stage="game",
        ),
        StageConfig(
            name="game",
            steps=["bootstage.demo:waves", "bootstage.demo:hud"],
            bootstrap=_BOOTSTRAP,
            fan_out=True,
        ),
    ],
    entry="start",
    progress=ProgressSettings(seconds_per_unit=0.1, fade_duration=0.05),
)

__all__ = [
    "DEMO_CONFIG",
    "AssetWarmup",
    "BrokenStep",
    "Camera",
    "Enemy",
    "EventSystem",
    "StartScreen",
    "WavePreloader",
]
