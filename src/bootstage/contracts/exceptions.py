"""Exception hierarchy for bootstage."""

from __future__ import annotations

import asyncio


class BootstageError(Exception):
    """Base exception for all bootstage errors."""


class ConfigError(BootstageError):
    """Configuration loading or validation failure."""


class DeclarationError(ConfigError):
    """A unit declaration reference could not be resolved to a template."""

    def __init__(self, message: str, *, reference: str | None = None) -> None:
        super().__init__(message)
        self.reference = reference


class OrchestrationError(BootstageError):
    """Illegal orchestrator state transition or use after close."""


class OperationCancelledError(asyncio.CancelledError):
    """Cooperative cancellation observed through a cancellation token.

    Subclasses :class:`asyncio.CancelledError` so generic ``except Exception``
    failure handling never swallows it.
    """

    def __init__(self, message: str = "operation cancelled", *, generation: int | None = None) -> None:
        super().__init__(message)
        self.generation = generation
