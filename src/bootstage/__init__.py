"""Public API surface for bootstage."""

__version__ = "0.1.0"

from bootstage.config import SlotCheck, load_config, validate_stages
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
from bootstage.engine.cancellation import CancellationScope, CancellationToken, ScopeManager
from bootstage.engine.orchestrator import Orchestrator, RunSession, RunState
from bootstage.engine.runner import PhaseReport, PhaseRunner, StepFailure
from bootstage.engine.scheduler import AsyncioScheduler, FrameScheduler
from bootstage.engine.signals import Signal, Subscription
from bootstage.progress import LoadProgress
from bootstage.scene import Component, Scene, SpawnLedger, Template, UnitDeclaration, UnitInstance
from bootstage.sdk import Bootstage

__all__ = [
    "AsyncStep",
    "AsyncioScheduler",
    "BootConfig",
    "Bootstage",
    "BootstageError",
    "CancellationScope",
    "CancellationToken",
    "Component",
    "ConfigError",
    "DeclarationError",
    "FrameScheduler",
    "LoadProgress",
    "OperationCancelledError",
    "OrchestrationError",
    "Orchestrator",
    "PhaseReport",
    "PhaseRunner",
    "ProgressController",
    "ProgressSettings",
    "RunContext",
    "RunSession",
    "RunState",
    "Scene",
    "Scheduler",
    "ScopeManager",
    "Signal",
    "SlotCheck",
    "SpawnLedger",
    "StageConfig",
    "StepFailure",
    "Subscription",
    "Template",
    "UnitDeclaration",
    "UnitInstance",
    "__version__",
    "load_config",
    "validate_stages",
]
