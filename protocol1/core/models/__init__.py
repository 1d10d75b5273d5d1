"""
Core data models for the Protocol-1 governance core.

All models use Pydantic for runtime validation and type safety.
"""

from .alert import Alert
from .compliance import ComplianceScore, GovernanceMetrics, RuleViolationCount
from .rule import ALL_ACTORS, Enforcement, Rule, RuleFamily, Severity
from .validation_context import ActorType, RequestMetadata, ResourceRefs, ValidationContext
from .validation_result import EnforcementMode, ValidationResult, ViolationBuckets
from .violation import Violation
from .violation_log import ViolationLogEntry

__all__ = [
    "ALL_ACTORS",
    "ActorType",
    "Alert",
    "ComplianceScore",
    "Enforcement",
    "EnforcementMode",
    "GovernanceMetrics",
    "RequestMetadata",
    "ResourceRefs",
    "Rule",
    "RuleFamily",
    "RuleViolationCount",
    "Severity",
    "ValidationContext",
    "ValidationResult",
    "Violation",
    "ViolationBuckets",
    "ViolationLogEntry",
]
