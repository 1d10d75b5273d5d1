"""
ValidationResult model representing the outcome of one validation pass (ephemeral).
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from .rule import Severity
from .violation import Violation


class EnforcementMode(str, Enum):
    """
    Global enforcement policy.

    - strict: block CRITICAL and HIGH violations
    - lenient: block CRITICAL violations only
    - monitor: never block, record only
    """

    STRICT = "strict"
    LENIENT = "lenient"
    MONITOR = "monitor"


class ViolationBuckets(BaseModel):
    """Violations partitioned by severity."""

    critical: list[Violation] = Field(default_factory=list)
    high: list[Violation] = Field(default_factory=list)
    medium: list[Violation] = Field(default_factory=list)
    low: list[Violation] = Field(default_factory=list)

    class Config:
        frozen = True

    @classmethod
    def partition(cls, violations: list[Violation]) -> "ViolationBuckets":
        """Split a flat violation list into the four severity buckets."""
        buckets: dict[Severity, list[Violation]] = {severity: [] for severity in Severity}
        for violation in violations:
            buckets[violation.severity].append(violation)
        return cls(
            critical=buckets[Severity.CRITICAL],
            high=buckets[Severity.HIGH],
            medium=buckets[Severity.MEDIUM],
            low=buckets[Severity.LOW],
        )

    @property
    def total(self) -> int:
        return len(self.critical) + len(self.high) + len(self.medium) + len(self.low)

    def all(self) -> list[Violation]:
        return [*self.critical, *self.high, *self.medium, *self.low]


class ValidationResult(BaseModel):
    """
    Outcome of validating one action against Protocol-1.

    Attributes:
        protocol_version: Catalog version used for the pass
        passed: No CRITICAL or HIGH violation was found
        should_block: Blocking decision for the enforcement mode
        block_reason: Why the action is blocked (None when allowed)
        violations: Violations by severity
        enforcement_mode: Mode the decision was made under
        validation_duration_ms: Time spent selecting, evaluating and deciding
        timestamp: When the pass completed
    """

    protocol_version: str
    passed: bool
    should_block: bool
    block_reason: str | None = None
    violations: ViolationBuckets = Field(default_factory=ViolationBuckets)
    enforcement_mode: EnforcementMode
    validation_duration_ms: float = Field(0.0, ge=0.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "protocol_version": "1.0.0",
                "passed": False,
                "should_block": True,
                "block_reason": "CRITICAL Protocol-1 violation detected",
                "violations": {
                    "critical": [
                        {
                            "rule_id": "RULE_3_1_ISSUER_BOUNDARIES",
                            "rule_name": "Issuer Action Boundaries",
                            "severity": "CRITICAL",
                            "message": "Actor separation violation: 'issuer' action "
                                       "'edit_platform_context' not in allowed list",
                        }
                    ],
                    "high": [],
                    "medium": [],
                    "low": [],
                },
                "enforcement_mode": "strict",
                "validation_duration_ms": 1.37,
            }
        }

    def all_violations(self) -> list[Violation]:
        return self.violations.all()

    @property
    def total_violations(self) -> int:
        return self.violations.total
