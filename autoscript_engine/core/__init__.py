"""Core models, errors and the execution orchestrator."""

from .errors import AutoscriptError, SessionLaunchError, StepValidationError
from .models import ActionType, AutomationStep, Execution, ExecutionResult, Script, StepResult

__all__ = [
    "ActionType",
    "AutomationStep",
    "AutoscriptError",
    "Execution",
    "ExecutionOrchestrator",
    "ExecutionResult",
    "Script",
    "SessionLaunchError",
    "StepResult",
    "StepValidationError",
    "build_orchestrator",
]


def __getattr__(name: str):
    if name in {"ExecutionOrchestrator", "build_orchestrator"}:
        from . import orchestrator  # local import to avoid circular dependency

        return getattr(orchestrator, name)
    raise AttributeError(name)
