"""Progress reporting contract for the boot pipeline.

The orchestrator pushes normalized progress into a ``ProgressController``;
concrete controllers (e.g. the CLI's Rich bar) decide how to present it.
Steps never talk to the controller directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ProgressController(ABC):
    """Push interface driven by the orchestrator."""

    @property
    @abstractmethod
    def value(self) -> float:
        """Currently displayed progress in [0, 1]."""
        ...  # pragma: no cover

    @property
    @abstractmethod
    def target(self) -> float:
        """Last requested progress in [0, 1]."""
        ...  # pragma: no cover

    @abstractmethod
    def set_progress(self, value: float, animated: bool = True) -> None:
        """Request a new progress value. Values are clamped to [0, 1]."""
        ...  # pragma: no cover

    @abstractmethod
    def show(self, animated: bool = True) -> None: ...

    @abstractmethod
    def hide(self, animated: bool = True) -> None: ...

    def close(self) -> None:
        """Release the controller. Called once the orchestrator is done with it."""
