"""Host scheduling contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bootstage.engine.cancellation import CancellationToken


class Scheduler(ABC):
    """Provides the engine's only suspension primitive: yield one tick."""

    @abstractmethod
    async def next_tick(self, token: CancellationToken | None = None) -> None:
        """Suspend until the next host tick.

        Raises ``OperationCancelledError`` if *token* is cancelled before or
        while waiting.
        """
        ...  # pragma: no cover
