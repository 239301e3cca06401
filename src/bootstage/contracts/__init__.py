"""Public contracts for bootstage."""

from bootstage.contracts.config import BootConfig, ProgressSettings, StageConfig
from bootstage.contracts.exceptions import (
    BootstageError,
    ConfigError,
    DeclarationError,
    OperationCancelledError,
    OrchestrationError,
)
from bootstage.contracts.progress import ProgressController
from bootstage.contracts.scheduler import Scheduler
from bootstage.contracts.step import AsyncStep, RunContext

__all__ = [
    "AsyncStep",
    "BootConfig",
    "BootstageError",
    "ConfigError",
    "DeclarationError",
    "OperationCancelledError",
    "OrchestrationError",
    "ProgressController",
    "ProgressSettings",
    "RunContext",
    "Scheduler",
    "StageConfig",
]
