"""Runtime failures; every one aborts the remainder of a plan run."""

from __future__ import annotations


class PlanExecutionError(RuntimeError):
    """Base error for plan execution failures."""

    def __init__(self, message: str, *, step_id: str | None = None) -> None:
        self.step_id = step_id
        if step_id is not None:
            message = f"[{step_id}] {message}"
        super().__init__(message)


class InvalidPlanError(PlanExecutionError):
    """Raised when the supplied plan does not decode."""


class UnknownTargetError(PlanExecutionError):
    """Raised when the plan's target is missing from the runtime registry."""


class PolicyViolationError(PlanExecutionError):
    """Raised when an op fails the runtime re-check of write or command policy."""

    def __init__(self, message: str, *, code: str, step_id: str | None = None) -> None:
        self.code = code
        super().__init__(message, step_id=step_id)


class OperationFailedError(PlanExecutionError):
    """Raised when a write or command op fails."""


class CheckFailedError(PlanExecutionError):
    """Raised when a proof-obligation check fails."""


__all__ = [
    "CheckFailedError",
    "InvalidPlanError",
    "OperationFailedError",
    "PlanExecutionError",
    "PolicyViolationError",
    "UnknownTargetError",
]
