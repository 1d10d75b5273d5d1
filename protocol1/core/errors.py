"""
Exception taxonomy for Protocol-1 enforcement.

Only GovernanceViolationException is meant to reach callers during normal
operation; the other types are raised and handled inside the core.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from protocol1.core.models.validation_result import ValidationResult


class Protocol1Error(Exception):
    """Base class for all Protocol-1 errors."""


class GovernanceViolationException(Protocol1Error):
    """
    Raised by the Validator when an action must be blocked.

    Carries the complete ValidationResult so the boundary can build a
    structured rejection.
    """

    def __init__(self, message: str, result: "ValidationResult"):
        self.result = result
        super().__init__(message)

    @property
    def block_reason(self) -> str:
        return self.result.block_reason or str(self)


class AdapterEvaluationError(Protocol1Error):
    """Raised when a sub-guard adapter fails or refuses during rule evaluation."""

    def __init__(self, rule_id: str, guard_name: str, message: str):
        self.rule_id = rule_id
        self.guard_name = guard_name
        self.message = message
        super().__init__(f"[{rule_id}] {guard_name}: {message}")


class MonitorPersistenceError(Protocol1Error):
    """Raised inside the Monitor when the violation log, alerts or counters cannot be written."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Monitor failed to {operation}: {cause}")


class UnexpectedInternalError(Protocol1Error):
    """Raised for failures during rule selection or aggregation that are not violations."""


class ConfigurationError(Protocol1Error):
    """Raised when Protocol-1 settings are missing or invalid."""
