"""Exception hierarchy for vendorflow."""

from __future__ import annotations


class VendorflowError(Exception):
    """Base exception for all vendorflow errors."""


class ValidationError(VendorflowError):
    """Raised when a submission or action is missing required fields."""


class NotFoundError(VendorflowError):
    """Raised when an action references an unknown workflow."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


class InvalidTransitionError(VendorflowError):
    """Raised when an action requires a RUNNING workflow but it is terminal."""


class TriggerError(VendorflowError):
    """Base class for failures of the external trigger mechanism."""


class TriggerTimeoutError(TriggerError, TimeoutError):
    """Raised when a trigger sequence exceeds its timeout ceiling."""


class TriggerExecutionError(TriggerError):
    """Raised when a step in a trigger sequence fails."""

    def __init__(self, message: str, step: str | None = None) -> None:
        super().__init__(message)
        self.step = step


class CorrelationMiss(VendorflowError):
    """Raised when a callback cannot be mapped to any tracked workflow."""

    def __init__(self, payload: dict) -> None:
        super().__init__("No tracked workflow matches callback payload")
        self.payload = payload
