"""
Reporting models: daily governance metrics and the compliance score.
"""

from pydantic import BaseModel, Field


class RuleViolationCount(BaseModel):
    """Number of violations of one rule on one day."""

    rule_id: str
    rule_name: str
    violation_count: int = Field(..., ge=0)


class GovernanceMetrics(BaseModel):
    """
    Violation metrics for a single day.

    Attributes:
        date: ISO date of the bucket
        total_violations: All violations recorded that day
        by_severity: Counts for CRITICAL, HIGH, MEDIUM and LOW
        top_violated_rules: Ten most violated rules, most violated first
        by_actor_type: Violation counts per actor type
    """

    date: str
    total_violations: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    top_violated_rules: list[RuleViolationCount] = Field(default_factory=list)
    by_actor_type: dict[str, int] = Field(default_factory=dict)


class ComplianceScore(BaseModel):
    """
    Daily compliance score: 100 minus the violation rate in percent.

    Attributes:
        score: 0-100, rounded to 2 decimals
        grade: Letter grade (A+ .. F)
        total_actions: Platform actions attempted that day
        total_violations: Violations recorded that day
        date: ISO date of the bucket
    """

    score: float = Field(..., ge=0.0, le=100.0)
    grade: str
    total_actions: int = 0
    total_violations: int = 0
    date: str

    class Config:
        json_schema_extra = {
            "example": {
                "score": 95.0,
                "grade": "A+",
                "total_actions": 100,
                "total_violations": 5,
                "date": "2026-01-16",
            }
        }
