"""
Violation model: one detected breach of one rule during one validation pass.
"""

from typing import Any

from pydantic import BaseModel, Field

from .rule import Severity


class Violation(BaseModel):
    """
    A single rule violation (ephemeral until the Monitor persists it).

    Attributes:
        rule_id: Violated rule
        rule_name: Human-readable rule name
        severity: Severity copied from the rule (or CRITICAL for buy blockers)
        message: Human-readable explanation
        details: Family-specific structured detail (blocking_state,
                 missing_field, attempted_action, guard, ...)
    """

    rule_id: str
    rule_name: str
    severity: Severity
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "rule_id": "RULE_4_2_ADMIN_REASON_REQUIRED",
                "rule_name": "Admin Action Reason Required",
                "severity": "HIGH",
                "message": "Attribution violation: Required field 'reason' missing for action 'suspend_company'",
                "details": {"missing_field": "reason", "actor_type": "admin_judgment"},
            }
        }

    def to_response(self) -> dict[str, str]:
        """User-facing form: no internal detail leaves the boundary."""
        return {
            "rule_name": self.rule_name,
            "message": self.message,
            "severity": self.severity.value,
        }
