"""Exception hierarchy shared by all Lifeline modules."""
from __future__ import annotations
from typing import Any, Optional


class LifelineError(Exception):
    """Base class for every error raised by the engine."""
    pass


class ConfigError(LifelineError):
    """Invalid engine configuration."""
    pass


class ConditionError(LifelineError):
    """A condition could not be evaluated."""
    pass


class ComparisonTypeError(ConditionError):
    """Operands of a comparison have incompatible kinds (e.g. number vs string)."""
    pass


class OutcomeError(LifelineError):
    """An outcome could not be resolved or applied."""
    pass


class ChainError(LifelineError):
    """Invalid operation on an event chain."""
    pass


class EventDefinitionError(LifelineError):
    """Malformed event definition or event library."""

    def __init__(self, message: str, event_id: Optional[str] = None):
        super().__init__(message)
        self.event_id = event_id


class SnapshotError(LifelineError):
    """Exception raised while serializing or restoring snapshots."""
    pass


class EngineFault(LifelineError):
    """Unrecoverable failure propagated to the caller.

    Carries the structured error record produced by the error handler.
    """

    def __init__(self, message: str, error: Any = None):
        super().__init__(message)
        self.error = error
