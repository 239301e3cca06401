"""Stage orchestrator: basics → main → cleanup, plus reverse deconstruction."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from types import TracebackType
from typing import Any

from bootstage.contracts.exceptions import DeclarationError, OperationCancelledError, OrchestrationError
from bootstage.contracts.progress import ProgressController
from bootstage.contracts.scheduler import Scheduler
from bootstage.contracts.step import AsyncStep, RunContext
from bootstage.engine.cancellation import CancellationScope, CancellationToken, ScopeManager
from bootstage.engine.runner import PhaseReport, PhaseRunner, StepFailure
from bootstage.engine.scheduler import AsyncioScheduler
from bootstage.engine.signals import Signal
from bootstage.scene.declarations import Reference, UnitDeclaration, declare
from bootstage.scene.ledger import SpawnLedger
from bootstage.scene.scene import Scene

logger = logging.getLogger(__name__)

ProgressFactory = Callable[[], ProgressController]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING_BASICS = "running-basics"
    RUNNING_MAIN = "running-main"
    CLEANING_UP = "cleaning-up"
    READY = "ready"
    DECONSTRUCTING = "deconstructing"
    HANDED_OFF = "handed-off"


_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.RUNNING_BASICS, RunState.DECONSTRUCTING}),
    RunState.RUNNING_BASICS: frozenset({RunState.RUNNING_MAIN}),
    RunState.RUNNING_MAIN: frozenset({RunState.CLEANING_UP}),
    RunState.CLEANING_UP: frozenset({RunState.READY}),
    RunState.READY: frozenset({RunState.DECONSTRUCTING}),
    RunState.DECONSTRUCTING: frozenset({RunState.HANDED_OFF, RunState.IDLE}),
    RunState.HANDED_OFF: frozenset(),
}


@dataclass(frozen=True)
class PhaseError:
    phase: str
    error: Exception


@dataclass
class RunSession:
    """One execution of the orchestrator's phase sequence."""

    stage: str
    generation: int
    token: CancellationToken
    reports: dict[str, PhaseReport] = field(default_factory=dict)
    errors: list[PhaseError] = field(default_factory=list)
    completed: bool = False
    cancelled: bool = False

    @property
    def failures(self) -> list[StepFailure]:
        return [failure for report in self.reports.values() for failure in report.failures]


class Orchestrator:
    """Boots one stage and can later tear it down in reverse creation order.

    The orchestrator owns its cancellation scope, spawned-instances ledger and
    progress controller. It is passed around as an explicit handle (steps
    receive it through :class:`RunContext`); there is no global instance.

    Args:
        name: Stage name.
        declarations: Ordered unit references run by the main phase.
        bootstrap: Infrastructure templates created in the basics phase only
            when no instance with the same tag exists in the scene.
        scene: Scene to instantiate into (shared across stages).
        scheduler: Tick provider; defaults to :class:`AsyncioScheduler`.
        progress_factory: Builds a fresh progress controller for each run.
        fan_out: Run every step component of each instance.
        animated_progress: Passed to ``set_progress``.
        follow_on: Orchestrator handed control after deconstruction.
    """

    def __init__(
        self,
        name: str = "stage",
        *,
        declarations: Iterable[Reference | UnitDeclaration] = (),
        bootstrap: Iterable[Reference | UnitDeclaration] = (),
        scene: Scene | None = None,
        scheduler: Scheduler | None = None,
        progress_factory: ProgressFactory | None = None,
        fan_out: bool = False,
        animated_progress: bool = True,
        follow_on: Orchestrator | None = None,
    ) -> None:
        self.name = name
        self.follow_on = follow_on
        self.ready = Signal(f"{name}.ready")
        self.play = Signal(f"{name}.play")

        self._declarations = declare(declarations)
        self._bootstrap = declare(bootstrap)
        self._scene = scene if scene is not None else Scene()
        self._scheduler: Scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self._progress_factory = progress_factory
        self._fan_out = fan_out
        self._animated = animated_progress

        self._scopes = ScopeManager()
        self._ledger = SpawnLedger()
        self._progress: ProgressController | None = None
        self._state = RunState.IDLE
        self._session: RunSession | None = None
        self._task: asyncio.Task[None] | None = None
        self._played = False
        self._closed = False

    # -- introspection ----------------------------------------------------

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def session(self) -> RunSession | None:
        return self._session

    @property
    def ledger(self) -> SpawnLedger:
        return self._ledger

    @property
    def scene(self) -> Scene:
        return self._scene

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def progress(self) -> ProgressController | None:
        return self._progress

    @property
    def generation(self) -> int:
        return self._scopes.generation

    @property
    def token(self) -> CancellationToken | None:
        scope = self._scopes.current
        return scope.token if scope is not None else None

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def declarations(self) -> tuple[UnitDeclaration, ...]:
        return self._declarations

    def configure(self, declarations: Iterable[Reference | UnitDeclaration]) -> None:
        """Replace the declaration list; takes effect on the next run."""
        self._declarations = declare(declarations)

    # -- entry points -----------------------------------------------------

    def begin(self, token: CancellationToken | None = None) -> asyncio.Task[None]:
        """Start (or restart) the boot run.

        Any run in flight is cancelled by replacing the scope. When *token* is
        given, the new scope is cancelled together with it.
        """
        self._ensure_open()
        if self._state not in (RunState.IDLE, RunState.READY, RunState.HANDED_OFF):
            logger.info("Stage '%s' restarting while %s", self.name, self._state.value)

        scope = self._scopes.replace(parent=token)
        self._reset(RunState.IDLE)
        task = asyncio.create_task(self._run(scope), name=f"bootstage:{self.name}:run:{scope.generation}")
        scope.attach(task)
        self._task = task
        return task

    async def run(self, token: CancellationToken | None = None) -> None:
        """Start a run and wait until it is ready, cancelled or superseded."""
        await self.begin(token)

    def begin_deconstruction(self) -> asyncio.Task[None]:
        """Destroy spawned instances newest first, then hand off to ``follow_on``."""
        self._ensure_open()
        if self._state not in (RunState.IDLE, RunState.READY):
            logger.warning("Stage '%s' deconstruction requested while %s; cancelling it", self.name, self._state.value)

        scope = self._scopes.replace()
        self._reset(RunState.IDLE)
        task = asyncio.create_task(
            self._deconstruct(scope),
            name=f"bootstage:{self.name}:deconstruct:{scope.generation}",
        )
        scope.attach(task)
        self._task = task
        return task

    async def deconstruct(self) -> None:
        await self.begin_deconstruction()

    def begin_play(self) -> bool:
        """Fire the play signal; only the first call in the orchestrator's lifetime does."""
        if self._played:
            return False
        self._played = True
        self.play.fire()
        return True

    async def wait_ready(self) -> None:
        await self.ready.wait()

    async def close(self, *, destroy_instances: bool = False) -> None:
        """Cancel and dispose the scope, wait for its work to unwind, release progress.

        With *destroy_instances*, everything still in the ledger is destroyed
        newest first without yielding.
        """
        if self._closed:
            return
        self._closed = True
        scope = self._scopes.cancel_and_dispose()
        if scope is not None:
            await scope.join()
        self._release_progress()
        if destroy_instances:
            for instance in self._ledger.newest_first():
                if not instance.destroyed:
                    self._scene.destroy(instance)
            self._ledger.clear()
        self.ready.clear()
        self.play.clear()
        self._reset(RunState.IDLE)
        logger.debug("Stage '%s' closed", self.name)

    async def __aenter__(self) -> Orchestrator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -- run --------------------------------------------------------------

    async def _run(self, scope: CancellationScope) -> None:
        token = scope.token
        session = RunSession(stage=self.name, generation=scope.generation, token=token)
        self._session = session
        context = RunContext(orchestrator=self, generation=scope.generation, token=token, scene=self._scene)

        try:
            # Let anything scheduled alongside the start settle first.
            await self._scheduler.next_tick(token)

            await self._phase(session, RunState.RUNNING_BASICS, "basics", self._run_basics, session, context)
            await self._phase(session, RunState.RUNNING_MAIN, "main", self._run_main, session, context)
            await self._phase(session, RunState.CLEANING_UP, "cleanup", self._run_cleanup, session)

            self._advance(session.generation, RunState.READY)
            session.completed = True
            logger.info("Stage '%s' ready (generation %d)", self.name, session.generation)
            self.ready.fire()
        except asyncio.CancelledError:
            session.cancelled = True
            if self._scopes.current is scope:
                self._release_progress()
                self._reset(RunState.IDLE)
            if token.cancelled:
                logger.debug("Stage '%s' run generation %d cancelled", self.name, session.generation)
                return
            raise

    async def _phase(
        self,
        session: RunSession,
        state: RunState,
        name: str,
        action: Callable[..., Any],
        *args: Any,
    ) -> None:
        session.token.raise_if_cancelled()
        self._advance(session.generation, state)
        try:
            await action(*args)
        except Exception as exc:
            logger.exception("Stage '%s' phase '%s' failed; continuing", self.name, name)
            session.errors.append(PhaseError(phase=name, error=exc))

    async def _run_basics(self, session: RunSession, context: RunContext) -> None:
        report = PhaseReport(name="basics")
        session.reports["basics"] = report
        token = session.token

        self._release_progress()
        if self._progress_factory is None:
            message = f"Stage '{self.name}' has no progress controller configured"
            logger.warning(message)
            report.skipped.append(message)
        else:
            await self._open_progress(self._progress_factory, token, context, report)

        report.total = len(self._bootstrap)
        for index, declaration in enumerate(self._bootstrap):
            self._ensure_singleton(index, declaration, report)
            report.completed += 1

        await self._scheduler.next_tick(token)

    async def _open_progress(
        self,
        factory: ProgressFactory,
        token: CancellationToken,
        context: RunContext,
        report: PhaseReport,
    ) -> None:
        try:
            progress = factory()
        except Exception as exc:
            logger.exception("Stage '%s' could not create its progress controller; continuing without", self.name)
            report.failures.append(StepFailure(index=0, unit="progress", error=exc, during="progress"))
            return

        self._progress = progress
        try:
            if isinstance(progress, AsyncStep):
                await progress.setup(token, context)
            else:
                progress.show()
        except Exception as exc:
            logger.exception("Stage '%s' progress controller setup failed; continuing without", self.name)
            report.failures.append(StepFailure(index=0, unit="progress", error=exc, during="progress"))
            self._release_progress()

    def _ensure_singleton(self, index: int, declaration: UnitDeclaration, report: PhaseReport) -> None:
        try:
            template = declaration.resolve()
        except DeclarationError as exc:
            message = f"Bootstrap {index} '{declaration.label}' is unresolvable: {exc}"
            logger.warning(message)
            report.skipped.append(message)
            return
        if template is None:
            message = f"Bootstrap {index} declaration is empty; skipping"
            logger.warning(message)
            report.skipped.append(message)
            return

        if self._scene.find_by_tag(template.key) is not None:
            logger.debug("Stage '%s' bootstrap '%s' already present", self.name, template.key)
            return
        try:
            self._scene.instantiate(template)
        except Exception as exc:
            logger.exception(
                "Stage '%s' bootstrap %d '%s' failed to spawn; continuing", self.name, index, template.name
            )
            report.failures.append(StepFailure(index=index, unit=template.name, error=exc, during="spawn"))

    async def _run_main(self, session: RunSession, context: RunContext) -> None:
        runner = PhaseRunner(
            self._scene,
            self._scheduler,
            self._ledger,
            progress=self._progress,
            fan_out=self._fan_out,
            animated=self._animated,
            name=self.name,
        )
        session.reports["main"] = await runner.run(self._declarations, session.token, context)

    async def _run_cleanup(self, session: RunSession) -> None:
        self._release_progress()
        await self._scheduler.next_tick(session.token)

    # -- deconstruction ---------------------------------------------------

    async def _deconstruct(self, scope: CancellationScope) -> None:
        token = scope.token
        generation = scope.generation
        try:
            await self._scheduler.next_tick(token)
            self._advance(generation, RunState.DECONSTRUCTING)
            self._release_progress()

            for instance in self._ledger.newest_first():
                if instance.destroyed:
                    logger.warning("Stage '%s' instance '%s' already destroyed; skipping", self.name, instance.name)
                    continue
                self._scene.destroy(instance)
                await self._scheduler.next_tick(token)

            self._ledger.clear()
            await self._scheduler.next_tick(token)

            if self.follow_on is None:
                logger.warning("Stage '%s' has no follow-on stage to hand off to", self.name)
                self._advance(generation, RunState.IDLE)
                return

            self._advance(generation, RunState.HANDED_OFF)
            logger.info("Stage '%s' handing off to '%s'", self.name, self.follow_on.name)
            self.follow_on.begin(token)
        except asyncio.CancelledError:
            if self._scopes.current is scope:
                self._reset(RunState.IDLE)
            if token.cancelled:
                logger.debug("Stage '%s' deconstruction generation %d cancelled", self.name, generation)
                return
            raise

    # -- helpers ----------------------------------------------------------

    def _advance(self, generation: int, state: RunState) -> None:
        scope = self._scopes.current
        if scope is None or scope.generation != generation:
            raise OperationCancelledError(
                f"stage '{self.name}' generation {generation} was superseded",
                generation=generation,
            )
        self._transition(state)

    def _transition(self, state: RunState) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise OrchestrationError(f"stage '{self.name}' cannot move from {self._state.value} to {state.value}")
        logger.debug("Stage '%s': %s -> %s", self.name, self._state.value, state.value)
        self._state = state

    def _reset(self, state: RunState) -> None:
        self._state = state

    def _release_progress(self) -> None:
        progress, self._progress = self._progress, None
        if progress is not None:
            progress.hide()
            progress.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise OrchestrationError(f"stage '{self.name}' is closed")

    def __repr__(self) -> str:
        return f"Orchestrator(name={self.name!r}, state={self._state.value}, generation={self.generation})"
