"""Work request error taxonomy.

Every failure is raised to the caller as a typed exception. None of them are
retried automatically and no partial state is stored when one is raised.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for work request failures."""
    pass


class ValidationError(WorkflowError):
    """Raised when a request payload is malformed or missing required fields."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = list(missing or [])


class NotFoundError(WorkflowError):
    """Raised for an unknown request, organization, enterprise or item id."""
    pass


class NotAuthorizedError(WorkflowError):
    """Raised when the actor's role does not hold the current approval step."""
    pass


class AlreadyTerminalError(WorkflowError):
    """Raised when mutating a request that is APPROVED, REJECTED or CANCELLED."""
    pass


class AlreadyAdvancedError(WorkflowError):
    """Raised when another caller committed a change first (stale version)."""

    def __init__(self, message: str, expected_version: int | None = None, actual_version: int | None = None):
        super().__init__(message)
        self.expected_version = expected_version
        self.actual_version = actual_version


class RoutingError(WorkflowError):
    """Raised when an approval chain cannot be resolved."""
    pass
