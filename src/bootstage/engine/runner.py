"""Phase runner: executes one ordered list of unit declarations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from bootstage.contracts.exceptions import DeclarationError
from bootstage.contracts.progress import ProgressController
from bootstage.contracts.scheduler import Scheduler
from bootstage.contracts.step import AsyncStep, RunContext
from bootstage.engine.cancellation import CancellationToken
from bootstage.scene.declarations import Reference, UnitDeclaration, declare
from bootstage.scene.ledger import SpawnLedger
from bootstage.scene.scene import Scene, UnitInstance
from bootstage.scene.template import Template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepFailure:
    index: int
    unit: str
    error: Exception
    during: str = "setup"


@dataclass
class PhaseReport:
    """What happened to each slot of a phase.

    Attributes:
        name: Phase name.
        total: Number of progress slots.
        completed: Slots finished, whatever their outcome.
        executed: ``setup`` invocations that returned or failed.
        skipped: Warnings for empty, unresolvable or step-less slots.
        failures: Contained failures, raised while spawning a unit or inside its
            ``setup``.
    """

    name: str
    total: int = 0
    completed: int = 0
    executed: int = 0
    skipped: list[str] = field(default_factory=list)
    failures: list[StepFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.executed - sum(1 for failure in self.failures if failure.during == "setup")


class PhaseRunner:
    """Runs declarations in order, publishing progress and containing failures.

    In root mode each instance contributes the first :class:`AsyncStep` on its
    root. In fan-out mode every step component of the instance tree runs, and
    a counting pass over the resolved templates sizes the progress fractions.

    Args:
        scene: Scene the units are instantiated into.
        scheduler: Tick provider used after every executed step.
        ledger: Records every instance created, in creation order.
        progress: Optional progress controller.
        fan_out: Enable fan-out mode.
        animated: Passed through to ``set_progress``.
        name: Phase name used in logs and the report.
    """

    def __init__(
        self,
        scene: Scene,
        scheduler: Scheduler,
        ledger: SpawnLedger,
        *,
        progress: ProgressController | None = None,
        fan_out: bool = False,
        animated: bool = True,
        name: str = "main",
    ) -> None:
        self._scene = scene
        self._scheduler = scheduler
        self._ledger = ledger
        self._progress = progress
        self._fan_out = fan_out
        self._animated = animated
        self._name = name

    async def run(
        self,
        declarations: Iterable[Reference | UnitDeclaration],
        token: CancellationToken,
        context: RunContext | None = None,
    ) -> PhaseReport:
        snapshot = declare(declarations)
        report = PhaseReport(name=self._name)
        if self._fan_out:
            await self._run_fan_out(snapshot, token, context, report)
        else:
            await self._run_roots(snapshot, token, context, report)
        return report

    async def _run_roots(
        self,
        declarations: tuple[UnitDeclaration, ...],
        token: CancellationToken,
        context: RunContext | None,
        report: PhaseReport,
    ) -> None:
        count = len(declarations)
        report.total = count
        if count == 0:
            self._publish(1.0)
            return

        for index, declaration in enumerate(declarations):
            token.raise_if_cancelled()
            self._publish(index / count)

            template = self._resolve(index, declaration, report)
            if template is None:
                report.completed += 1
                continue

            instance = self._spawn(index, template, report)
            if instance is None:
                report.completed += 1
                continue

            step = instance.get_component(AsyncStep)
            if step is None:
                self._skip(report, f"Spawned unit '{instance.name}' has no AsyncStep component")
                report.completed += 1
                continue

            await self._execute(step, index, instance, token, context, report)
            report.completed += 1
            await self._scheduler.next_tick(token)

        self._publish(1.0)
        await self._scheduler.next_tick(token)

    async def _run_fan_out(
        self,
        declarations: tuple[UnitDeclaration, ...],
        token: CancellationToken,
        context: RunContext | None,
        report: PhaseReport,
    ) -> None:
        templates = [self._resolve(index, declaration, report) for index, declaration in enumerate(declarations)]
        total = sum(1 if template is None else max(1, template.count_steps()) for template in templates)
        report.total = total
        if total == 0:
            self._publish(1.0)
            return

        done = 0
        for index, template in enumerate(templates):
            token.raise_if_cancelled()
            self._publish(min(done / total, 1.0))

            if template is None:
                done += 1
                report.completed += 1
                continue

            instance = self._spawn(index, template, report)
            if instance is None:
                units = max(1, template.count_steps())
                done += units
                report.completed += units
                continue

            steps = instance.get_components_in_children(AsyncStep)
            if not steps:
                self._skip(report, f"Spawned unit '{instance.name}' has no AsyncStep components")
                done += 1
                report.completed += 1
                continue

            for position, step in enumerate(steps):
                if position:
                    token.raise_if_cancelled()
                    self._publish(min(done / total, 1.0))
                await self._execute(step, index, instance, token, context, report)
                done += 1
                report.completed += 1
                await self._scheduler.next_tick(token)

        self._publish(1.0)
        await self._scheduler.next_tick(token)

    def _resolve(self, index: int, declaration: UnitDeclaration, report: PhaseReport) -> Template | None:
        if declaration.reference is None:
            self._skip(report, f"Step {index} declaration is empty; skipping")
            return None
        try:
            return declaration.resolve()
        except DeclarationError as exc:
            self._skip(report, f"Step {index} declaration '{declaration.label}' is unresolvable: {exc}")
            return None

    def _spawn(self, index: int, template: Template, report: PhaseReport) -> UnitInstance | None:
        try:
            instance = self._scene.instantiate(template)
        except Exception as exc:
            logger.exception("[%s] step %d: spawning '%s' failed; continuing", self._name, index, template.name)
            report.failures.append(StepFailure(index=index, unit=template.name, error=exc, during="spawn"))
            return None
        self._ledger.record(instance)
        return instance

    async def _execute(
        self,
        step: AsyncStep,
        index: int,
        instance: UnitInstance,
        token: CancellationToken,
        context: RunContext | None,
        report: PhaseReport,
    ) -> None:
        unit = f"{instance.name}.{type(step).__name__}"
        logger.debug("[%s] step %d: %s setting up", self._name, index, unit)
        try:
            await step.setup(token, context)
        except Exception as exc:
            logger.exception("[%s] step %d (%s) failed; continuing", self._name, index, unit)
            report.failures.append(StepFailure(index=index, unit=unit, error=exc))
        report.executed += 1

    def _skip(self, report: PhaseReport, message: str) -> None:
        logger.warning("[%s] %s", self._name, message)
        report.skipped.append(message)

    def _publish(self, value: float) -> None:
        if self._progress is not None:
            self._progress.set_progress(value, animated=self._animated)
