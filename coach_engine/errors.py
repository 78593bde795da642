"""Error taxonomy shared by the metrics, lifecycle and propagation services.

Non-fatal consistency notices (for example preserved logged sets) are not
exceptions; they are returned as warning strings inside result objects.
"""

from __future__ import annotations


class CoachEngineError(Exception):
    """Base class for all errors raised by coach_engine."""


class ValidationError(CoachEngineError, ValueError):
    """Malformed input to a pure function or an operation."""


class NotFoundError(CoachEngineError, LookupError):
    """A referenced set, workout, exercise or mesocycle does not exist."""


class InvalidStateError(CoachEngineError):
    """The entity's current status forbids the requested operation."""


class MalformedResponseError(CoachEngineError):
    """The recommendation engine returned a payload that does not decode."""


class ActivitySourceError(CoachEngineError):
    """The activity source answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code
