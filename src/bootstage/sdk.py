"""SDK composition root for bootstage."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from types import MappingProxyType, TracebackType

from bootstage.config import load_config
from bootstage.contracts.config import BootConfig, StageConfig
from bootstage.contracts.exceptions import OrchestrationError
from bootstage.contracts.progress import ProgressController
from bootstage.contracts.scheduler import Scheduler
from bootstage.engine.orchestrator import Orchestrator, ProgressFactory, RunState
from bootstage.engine.scheduler import AsyncioScheduler, FrameScheduler
from bootstage.progress import LoadProgress
from bootstage.scene.scene import Scene

logger = logging.getLogger(__name__)

StageProgressFactory = Callable[[StageConfig], ProgressController]


class Bootstage:
    """bootstage SDK public API.

    Builds one :class:`Orchestrator` per configured stage, links each stage to
    its ``next_stage`` and shares one scene and scheduler between them::

        async with Bootstage.from_path("boot.json") as boot:
            await boot.start()
            await boot.advance()
    """

    def __init__(
        self,
        config: BootConfig,
        *,
        scene: Scene | None = None,
        scheduler: Scheduler | None = None,
        progress_factory: StageProgressFactory | None = None,
    ) -> None:
        self._config = config
        self._scene = scene if scene is not None else Scene()
        if scheduler is None:
            scheduler = FrameScheduler() if config.frame_rate is not None else AsyncioScheduler()
        self._scheduler = scheduler
        self._progress_factory = progress_factory or self.default_progress
        self._stages: dict[str, Orchestrator] = {}
        self._current: Orchestrator | None = None
        self._driver: asyncio.Task[None] | None = None
        self._build()
        logger.debug("Built %d stage(s); entry is '%s'", len(self._stages), config.entry_stage.name)

    @classmethod
    def from_path(cls, path: str | Path, **kwargs: object) -> Bootstage:
        return cls(load_config(path), **kwargs)  # type: ignore[arg-type]

    @property
    def config(self) -> BootConfig:
        return self._config

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def stages(self) -> Mapping[str, Orchestrator]:
        return MappingProxyType(self._stages)

    @property
    def entry(self) -> Orchestrator:
        return self._stages[self._config.entry_stage.name]

    @property
    def current(self) -> Orchestrator | None:
        return self._current

    def stage(self, name: str) -> Orchestrator:
        return self._stages[name]

    def default_progress(self, stage: StageConfig) -> ProgressController:
        settings = self._config.progress
        return LoadProgress(
            seconds_per_unit=settings.seconds_per_unit,
            only_increase=settings.only_increase,
            fade_duration=settings.fade_duration,
        )

    # -- lifecycle --------------------------------------------------------

    def open(self) -> None:
        """Start the frame driver when the config asks for a fixed frame rate."""
        frame_rate = self._config.frame_rate
        if self._driver is None and frame_rate is not None and isinstance(self._scheduler, FrameScheduler):
            self._driver = asyncio.create_task(self._scheduler.drive(frame_rate), name="bootstage:frames")

    async def start(self) -> Orchestrator:
        """Run the entry stage and wait until it is ready."""
        self.open()
        entry = self.entry
        waiter = self._ready_future(entry)
        task = entry.begin()
        await self._await_ready(entry, task, waiter)
        self._current = entry
        return entry

    async def advance(self) -> Orchestrator:
        """Deconstruct the current stage and wait for its follow-on to be ready."""
        current = self._current
        if current is None:
            raise OrchestrationError("no stage has been started")
        follow_on = current.follow_on
        if follow_on is None:
            raise OrchestrationError(f"stage '{current.name}' has no next stage")

        waiter = self._ready_future(follow_on)
        await current.deconstruct()
        if current.state is not RunState.HANDED_OFF or follow_on.task is None:
            waiter.cancel()
            raise OrchestrationError(f"stage '{current.name}' did not hand off to '{follow_on.name}'")

        await self._await_ready(follow_on, follow_on.task, waiter)
        self._current = follow_on
        return follow_on

    async def close(self) -> None:
        """Close stages newest first, destroying what they spawned, then stop the frame driver."""
        for orchestrator in reversed(list(self._stages.values())):
            await orchestrator.close(destroy_instances=True)
        self._current = None

        driver, self._driver = self._driver, None
        if driver is not None:
            driver.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await driver

    async def __aenter__(self) -> Bootstage:
        self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- helpers ----------------------------------------------------------

    def _build(self) -> None:
        settings = self._config.progress
        for stage in self._config.stages:
            self._stages[stage.name] = Orchestrator(
                stage.name,
                declarations=stage.steps,
                bootstrap=stage.bootstrap,
                scene=self._scene,
                scheduler=self._scheduler,
                progress_factory=self._stage_progress(stage) if settings.enabled else None,
                fan_out=stage.fan_out,
                animated_progress=settings.animated,
            )
        for stage in self._config.stages:
            if stage.next_stage is not None:
                self._stages[stage.name].follow_on = self._stages[stage.next_stage]

    def _stage_progress(self, stage: StageConfig) -> ProgressFactory:
        factory = self._progress_factory

        def _create() -> ProgressController:
            return factory(stage)

        return _create

    @staticmethod
    def _ready_future(orchestrator: Orchestrator) -> asyncio.Future[None]:
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _resolve() -> None:
            if not waiter.done():
                waiter.set_result(None)

        orchestrator.ready.subscribe(_resolve)
        return waiter

    @staticmethod
    async def _await_ready(orchestrator: Orchestrator, task: asyncio.Task[None], waiter: asyncio.Future[None]) -> None:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if waiter.done():
            return
        waiter.cancel()
        if not task.cancelled() and task.exception() is not None:
            raise OrchestrationError(f"stage '{orchestrator.name}' failed") from task.exception()
        raise OrchestrationError(f"stage '{orchestrator.name}' stopped before becoming ready")
