"""Custom exception hierarchy for the engine."""

from __future__ import annotations


class AutoscriptError(RuntimeError):
    """Base exception for engine-specific failures."""


class StepValidationError(AutoscriptError):
    """Raised when a step lacks a field its action requires."""


class SessionLaunchError(AutoscriptError):
    """Raised when the browser session cannot be acquired."""


class ScreenshotPersistenceError(AutoscriptError):
    """Raised by a screenshot sink that could not store the capture."""


class ExecutionStateError(AutoscriptError):
    """Raised when an execution is moved out of a terminal state."""


class ScriptNotFoundError(AutoscriptError, LookupError):
    """Raised when a script id is unknown to the data store."""


class ExecutionNotFoundError(AutoscriptError, LookupError):
    """Raised when an execution id is unknown to the data store."""


class ScreenshotNotFoundError(AutoscriptError, LookupError):
    """Raised when a screenshot id is unknown to the data store."""
