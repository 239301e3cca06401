"""Engine module exports."""

from bootstage.engine.cancellation import (
    CancellationRegistration,
    CancellationScope,
    CancellationToken,
    ScopeManager,
    ScopeState,
)
from bootstage.engine.orchestrator import Orchestrator, PhaseError, RunSession, RunState
from bootstage.engine.runner import PhaseReport, PhaseRunner, StepFailure
from bootstage.engine.scheduler import AsyncioScheduler, FrameScheduler
from bootstage.engine.signals import Signal, Subscription

__all__ = [
    "AsyncioScheduler",
    "CancellationRegistration",
    "CancellationScope",
    "CancellationToken",
    "FrameScheduler",
    "Orchestrator",
    "PhaseError",
    "PhaseReport",
    "PhaseRunner",
    "RunSession",
    "RunState",
    "ScopeManager",
    "ScopeState",
    "Signal",
    "StepFailure",
    "Subscription",
]
