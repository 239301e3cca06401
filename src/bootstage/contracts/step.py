"""Unit-of-work contract implemented by every boot step."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bootstage.engine.cancellation import CancellationToken
    from bootstage.engine.orchestrator import Orchestrator
    from bootstage.engine.signals import Signal
    from bootstage.scene.scene import Scene


@dataclass(frozen=True)
class RunContext:
    """Identity of the orchestrating run, handed to every step.

    Attributes:
        orchestrator: Handle of the orchestrator executing the run.
        generation: Cancellation generation of the run.
        token: Cancellation token of the run.
        scene: Scene the run instantiates units into.
    """

    orchestrator: Orchestrator
    generation: int
    token: CancellationToken
    scene: Scene

    @property
    def stage(self) -> str:
        return self.orchestrator.name

    @property
    def ready(self) -> Signal:
        return self.orchestrator.ready

    @property
    def play(self) -> Signal:
        return self.orchestrator.play


class AsyncStep(ABC):
    """A unit of work that must be set up asynchronously before use.

    Implementations must be safe to call more than once and must honor
    cancellation: when *token* fires while the setup is suspended, the
    operation unwinds with :class:`~bootstage.contracts.exceptions.OperationCancelledError`.
    """

    @abstractmethod
    async def setup(self, token: CancellationToken, context: RunContext | None = None) -> None:
        """Perform the step's setup work."""
        ...  # pragma: no cover
