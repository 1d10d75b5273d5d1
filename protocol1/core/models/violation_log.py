"""
ViolationLogEntry model: one persisted, append-only audit row per violation.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .rule import Severity
from .validation_context import ValidationContext
from .validation_result import EnforcementMode
from .violation import Violation


class ViolationLogEntry(BaseModel):
    """
    Audit trail entry for a recorded violation.

    Entries are written once and never updated or deleted.

    Attributes:
        log_id: Auto-increment primary key (None until persisted)
        protocol_version: Catalog version the violation was detected under
        rule_id: Violated rule
        rule_name: Human-readable rule name
        severity: Violation severity
        message: Violation message
        actor_type: Actor type of the attempted action
        action: Attempted action
        company_id: Company the action targeted
        actor_id: Acting user
        target_model: Target record type
        target_id: Target record id
        violation_details: Structured detail of the violation
        context_data: Request metadata snapshot (ip, user agent, url, method)
        was_blocked: Whether the action was blocked
        enforcement_mode: Mode in force when the violation was detected
        created_at: When the violation was recorded
    """

    log_id: int | None = None
    protocol_version: str
    rule_id: str
    rule_name: str
    severity: Severity
    message: str
    actor_type: str
    action: str
    company_id: str | None = None
    actor_id: str | None = None
    target_model: str | None = None
    target_id: str | None = None
    violation_details: dict[str, Any] = Field(default_factory=dict)
    context_data: dict[str, Any] = Field(default_factory=dict)
    was_blocked: bool = False
    enforcement_mode: EnforcementMode
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "log_id": 1,
                "protocol_version": "1.0.0",
                "rule_id": "RULE_2_3_APPROVED_DISCLOSURES",
                "rule_name": "Approved Disclosure Lock",
                "severity": "HIGH",
                "message": "Immutability violation: Cannot perform 'edit_disclosure' "
                           "on locked/immutable record",
                "actor_type": "issuer",
                "action": "edit_disclosure",
                "company_id": "42",
                "actor_id": "7",
                "target_model": "disclosure",
                "target_id": "1001",
                "violation_details": {"target_model": "disclosure", "target_id": "1001"},
                "context_data": {"ip_address": "10.0.0.8", "method": "PUT"},
                "was_blocked": True,
                "enforcement_mode": "strict",
            }
        }

    @classmethod
    def from_violation(
        cls,
        violation: Violation,
        context: ValidationContext,
        protocol_version: str,
        was_blocked: bool,
        enforcement_mode: EnforcementMode,
        created_at: datetime | None = None,
    ) -> "ViolationLogEntry":
        """Build the audit row for a violation detected in this context."""
        refs = context.resource_refs
        return cls(
            protocol_version=protocol_version,
            rule_id=violation.rule_id,
            rule_name=violation.rule_name,
            severity=violation.severity,
            message=violation.message,
            actor_type=context.actor_type.value,
            action=context.action,
            company_id=refs.company_id,
            actor_id=context.actor_id,
            target_model=refs.target_model,
            target_id=refs.target_id,
            violation_details={"rule_id": violation.rule_id, **violation.details},
            context_data=context.request_metadata.model_dump(),
            was_blocked=was_blocked,
            enforcement_mode=enforcement_mode,
            created_at=created_at or datetime.now(timezone.utc),
        )
