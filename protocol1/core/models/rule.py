"""
Rule model representing one immutable entry of the governance catalog.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class Severity(str, Enum):
    """Violation severity, ordered from most to least serious."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Enforcement(str, Enum):
    """How a rule is meant to be enforced when it is violated."""

    BLOCK = "BLOCK"
    ENFORCE = "ENFORCE"
    WARN = "WARN"


class RuleFamily(str, Enum):
    """The six rule sets; each family has its own evaluator."""

    PLATFORM_SUPREMACY = "platform_supremacy"
    IMMUTABILITY = "immutability"
    ACTOR_SEPARATION = "actor_separation"
    ATTRIBUTION = "attribution"
    BUY_ELIGIBILITY = "buy_eligibility"
    CROSS_PHASE = "cross_phase"


ALL_ACTORS = "all"


class Rule(BaseModel):
    """
    A governance rule from the static catalog.

    Only the fields relevant to the rule's family are populated; the rest
    stay empty. A rule never changes after the catalog is built.

    Attributes:
        rule_id: Globally unique, stable identifier ("RULE_2_3_APPROVED_DISCLOSURES")
        name: Human-readable rule name
        description: What the rule protects
        family: Rule set the rule belongs to; selects the evaluator
        severity: Severity of a violation of this rule
        enforcement: BLOCK, ENFORCE or WARN
        applies_to: Actor types or actor families, or "all"
        blocked_actions: Blacklisted actions (supremacy, immutability, separation)
        allowed_actions: Whitelisted actions (separation)
        blocked_resources: Resource tables that may not be written (separation)
        blocking_states: Platform states attributed to this rule (supremacy)
        resource_type: Target model guarded by the rule (immutability)
        required_fields: Payload fields that must be present and non-empty (attribution)
        valid_actor_types: Accepted actor types (attribution)
        scoped_actions: Actions the required-field check is limited to (attribution)
        required_conditions: Conditions the buy-eligibility guards enforce
        guard_names: Buy-eligibility guard names (fnmatch patterns) owned by the rule
        guarded_actions: Actions checked by the cross-phase guard
        exceptions: Named override conditions
    """

    rule_id: str = Field(..., min_length=1)
    name: str
    description: str
    family: RuleFamily
    severity: Severity
    enforcement: Enforcement = Enforcement.BLOCK
    applies_to: frozenset[str] = Field(..., min_length=1)

    blocked_actions: frozenset[str] = frozenset()
    allowed_actions: frozenset[str] | None = None
    blocked_resources: frozenset[str] = frozenset()
    blocking_states: frozenset[str] = frozenset()
    resource_type: str | None = None
    required_fields: tuple[str, ...] = ()
    valid_actor_types: frozenset[str] | None = None
    scoped_actions: frozenset[str] | None = None
    required_conditions: tuple[str, ...] = ()
    guard_names: tuple[str, ...] = ()
    guarded_actions: frozenset[str] = frozenset()
    exceptions: tuple[str, ...] = ()

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "rule_id": "RULE_2_3_APPROVED_DISCLOSURES",
                "name": "Approved Disclosure Lock",
                "description": "Approved disclosures cannot be edited by issuers",
                "family": "immutability",
                "severity": "HIGH",
                "enforcement": "BLOCK",
                "applies_to": ["issuer"],
                "blocked_actions": ["edit_disclosure", "delete_disclosure"],
                "resource_type": "disclosure",
                "exceptions": ["admin_reopen_for_correction"],
            }
        }

    def applies_to_actor(self, actor_type: str, actor_family: str | None = None) -> bool:
        """Check whether the rule's actor scope covers this actor type."""
        if ALL_ACTORS in self.applies_to or actor_type in self.applies_to:
            return True
        return actor_family is not None and actor_family in self.applies_to

    @model_validator(mode="after")
    def check_single_separation_mode(self) -> "Rule":
        """Actor-separation rules use exactly one of whitelist, blacklist or blocked resources."""
        if self.family == RuleFamily.ACTOR_SEPARATION:
            modes = [
                self.allowed_actions is not None,
                bool(self.blocked_actions),
                bool(self.blocked_resources),
            ]
            if sum(modes) != 1:
                raise ValueError(
                    f"Actor separation rule {self.rule_id} must define exactly one of "
                    "allowed_actions, blocked_actions or blocked_resources"
                )
        return self
