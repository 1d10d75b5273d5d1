"""
Protocol-1 rule catalog.

The catalog is compiled-in data: six rule sets built once at import time
and never mutated. Lookups are pure filters over that data, so a single
catalog instance can be shared by any number of concurrent validations.

Versioning follows MAJOR.MINOR.PATCH: breaking changes bump MAJOR, new
rules bump MINOR, corrections bump PATCH. Rule ids never change.
"""

from types import MappingProxyType
from typing import Iterable, Mapping

from protocol1.core.models import ActorType, Enforcement, Rule, RuleFamily, Severity

PROTOCOL_VERSION = "1.0.0"
PROTOCOL_VERSION_DATE = "2026-01-16"


def _rule(rule_id: str, family: RuleFamily, **fields) -> Rule:
    for key in ("applies_to", "blocked_actions", "allowed_actions", "blocked_resources",
                "blocking_states", "valid_actor_types", "scoped_actions", "guarded_actions"):
        if key in fields and fields[key] is not None:
            fields[key] = frozenset(fields[key])
    return Rule(rule_id=rule_id, family=family, **fields)


# Rule set 1: platform state overrides issuer and investor authority
PLATFORM_SUPREMACY_RULES = (
    _rule(
        "RULE_1_1_SUSPENSION",
        RuleFamily.PLATFORM_SUPREMACY,
        name="Company Suspension Enforcement",
        description="Suspended companies cannot perform any issuer actions or accept new investments",
        severity=Severity.CRITICAL,
        applies_to=["issuer", "investor"],
        blocked_actions=["edit_disclosure", "submit_disclosure", "answer_clarification", "create_investment"],
        blocking_states=["suspended"],
    ),
    _rule(
        "RULE_1_2_FREEZE",
        RuleFamily.PLATFORM_SUPREMACY,
        name="Disclosure Freeze Enforcement",
        description="Frozen disclosures cannot be edited or submitted",
        severity=Severity.CRITICAL,
        applies_to=["issuer"],
        blocked_actions=["edit_disclosure", "submit_disclosure"],
        blocking_states=["frozen"],
        exceptions=("admin_override_with_reason",),
    ),
    _rule(
        "RULE_1_3_BUYING_DISABLED",
        RuleFamily.PLATFORM_SUPREMACY,
        name="Buying Controls Enforcement",
        description="Companies with buying disabled cannot accept new investments",
        severity=Severity.CRITICAL,
        applies_to=["investor"],
        blocked_actions=["create_investment", "allocate_wallet"],
        blocking_states=["buying_paused", "buying_disabled"],
    ),
    _rule(
        "RULE_1_4_INVESTIGATION",
        RuleFamily.PLATFORM_SUPREMACY,
        name="Investigation Mode Enforcement",
        description="Companies under investigation have limited issuer access",
        severity=Severity.HIGH,
        applies_to=["issuer"],
        blocked_actions=["submit_disclosure", "delete_disclosure"],
        blocking_states=["under_investigation"],
        exceptions=("platform_review_complete",),
    ),
)

# Rule set 2: locked records cannot be mutated
IMMUTABILITY_RULES = (
    _rule(
        "RULE_2_1_INVESTMENT_SNAPSHOTS",
        RuleFamily.IMMUTABILITY,
        name="Investment Snapshot Immutability",
        description="Investment disclosure snapshots are permanently frozen after creation",
        severity=Severity.CRITICAL,
        applies_to=["system", "admin", "issuer"],
        blocked_actions=["update_snapshot", "delete_snapshot", "recalculate_snapshot"],
        resource_type="investment_snapshot",
    ),
    _rule(
        "RULE_2_2_PLATFORM_CONTEXT_SNAPSHOTS",
        RuleFamily.IMMUTABILITY,
        name="Platform Context Snapshot Immutability",
        description="Platform context snapshots are permanently locked after creation",
        severity=Severity.CRITICAL,
        applies_to=["system", "admin", "issuer"],
        blocked_actions=["update_snapshot", "delete_snapshot", "modify_locked_snapshot"],
        resource_type="platform_context_snapshot",
    ),
    _rule(
        "RULE_2_3_APPROVED_DISCLOSURES",
        RuleFamily.IMMUTABILITY,
        name="Approved Disclosure Lock",
        description="Approved disclosures cannot be edited by issuers",
        severity=Severity.HIGH,
        applies_to=["issuer"],
        blocked_actions=["edit_disclosure", "delete_disclosure"],
        resource_type="disclosure",
        exceptions=("admin_reopen_for_correction",),
    ),
    _rule(
        "RULE_2_4_ACKNOWLEDGEMENT_IMMUTABILITY",
        RuleFamily.IMMUTABILITY,
        name="Risk Acknowledgement Immutability",
        description="Risk acknowledgements cannot be deleted or modified after creation",
        severity=Severity.CRITICAL,
        applies_to=["system", "admin", "investor"],
        blocked_actions=["delete_acknowledgement", "modify_acknowledgement", "backdate_acknowledgement"],
        resource_type="acknowledgement",
    ),
)

# Rule set 3: each actor has bounded permissions
ACTOR_SEPARATION_RULES = (
    _rule(
        "RULE_3_1_ISSUER_BOUNDARIES",
        RuleFamily.ACTOR_SEPARATION,
        name="Issuer Action Boundaries",
        description="Issuers can only perform issuer-scoped actions on their own company",
        severity=Severity.CRITICAL,
        applies_to=["issuer"],
        allowed_actions=[
            "edit_own_disclosure_draft",
            "submit_own_disclosure",
            "answer_own_clarification",
            "view_own_company_data",
            "edit_disclosure",
            "submit_disclosure",
            "answer_clarification",
            "delete_disclosure",
            "read",
        ],
    ),
    _rule(
        "RULE_3_2_INVESTOR_BOUNDARIES",
        RuleFamily.ACTOR_SEPARATION,
        name="Investor Action Boundaries",
        description="Investors can only view approved data and manage their own investments",
        severity=Severity.CRITICAL,
        applies_to=["investor"],
        allowed_actions=[
            "view_approved_disclosures",
            "view_platform_context",
            "create_own_investment",
            "create_investment",
            "manage_own_wallet",
            "allocate_wallet",
            "acknowledge_risks",
            "read",
        ],
    ),
    _rule(
        "RULE_3_3_PLATFORM_CONTEXT_SEPARATION",
        RuleFamily.ACTOR_SEPARATION,
        name="Platform Context Write Restrictions",
        description="Only platform/admin can write to platform context tables",
        severity=Severity.CRITICAL,
        applies_to=["issuer", "investor"],
        blocked_resources=[
            "platform_context_snapshots",
            "platform_governance_log",
            "platform_risk_flags",
            "platform_company_metrics",
        ],
    ),
)

# Rule set 4: every action carries explicit attribution
ATTRIBUTION_RULES = (
    _rule(
        "RULE_4_1_EXPLICIT_ACTOR_TYPE",
        RuleFamily.ATTRIBUTION,
        name="Explicit Actor Type Required",
        description="All platform actions must declare actor_type explicitly",
        severity=Severity.HIGH,
        applies_to=["all"],
        required_fields=("actor_type",),
        valid_actor_types=[
            ActorType.ISSUER.value,
            ActorType.INVESTOR.value,
            ActorType.ADMIN_JUDGMENT.value,
            ActorType.ADMIN_OVERRIDE.value,
            ActorType.SYSTEM_ENFORCEMENT.value,
            ActorType.AUTOMATED_PLATFORM.value,
        ],
    ),
    _rule(
        "RULE_4_2_ADMIN_REASON_REQUIRED",
        RuleFamily.ATTRIBUTION,
        name="Admin Action Reason Required",
        description="Admin actions must include explicit reason for audit trail",
        severity=Severity.HIGH,
        applies_to=["admin"],
        required_fields=("reason", "admin_user_id"),
        scoped_actions=[
            "suspend_company",
            "freeze_disclosures",
            "change_visibility",
            "override_platform_decision",
            "approve_tier",
        ],
    ),
)

# Rule set 5: layered buy-eligibility guards
BUY_ELIGIBILITY_RULES = (
    _rule(
        "RULE_5_1_COMPANY_GUARDS",
        RuleFamily.BUY_ELIGIBILITY,
        name="Company Buy Eligibility Guards",
        description="Company must meet all requirements for investment",
        severity=Severity.CRITICAL,
        applies_to=["investor"],
        required_conditions=(
            "tier_2_approved",
            "buying_enabled",
            "not_suspended",
            "not_frozen",
            "investable_lifecycle_state",
        ),
        guard_names=(
            "tier_2_required",
            "buying_disabled",
            "company_*",
            "lifecycle_state_not_investable",
            "platform_investment_freeze",
            "active_disputes",
        ),
    ),
    _rule(
        "RULE_5_2_INVESTOR_GUARDS",
        RuleFamily.BUY_ELIGIBILITY,
        name="Investor Buy Eligibility Guards",
        description="Investor must meet all requirements for investment",
        severity=Severity.CRITICAL,
        applies_to=["investor"],
        required_conditions=("kyc_approved", "account_active", "terms_accepted"),
        guard_names=(
            "kyc_*",
            "account_inactive",
            "terms_not_accepted",
            "user_not_found",
            "accreditation_required",
            "investment_limit_exceeded",
            "geographic_restriction",
        ),
    ),
    _rule(
        "RULE_5_3_ACKNOWLEDGEMENT_GUARDS",
        RuleFamily.BUY_ELIGIBILITY,
        name="Risk Acknowledgement Guards",
        description="All required risks must be acknowledged before investment",
        severity=Severity.CRITICAL,
        applies_to=["investor"],
        required_conditions=("illiquidity", "no_guarantee", "platform_non_advisory"),
        guard_names=("acknowledgement_*", "material_changes_not_acknowledged", "stale_acknowledgement"),
    ),
)

# Rule set 6: phases respect each other's invariants
CROSS_PHASE_ENFORCEMENT_RULES = (
    _rule(
        "RULE_6_1_SNAPSHOT_BINDING",
        RuleFamily.CROSS_PHASE,
        name="Investment Snapshot Binding",
        description="All investments must be bound to immutable snapshots",
        severity=Severity.CRITICAL,
        applies_to=["system"],
        required_conditions=("disclosure_snapshot_locked", "platform_context_snapshot_locked"),
        guarded_actions=["update_snapshot", "delete_snapshot"],
    ),
    _rule(
        "RULE_6_2_MATERIAL_CHANGE_IMPACT",
        RuleFamily.CROSS_PHASE,
        name="Material Change Buy Impact",
        description="Material changes must trigger buy impact rules",
        severity=Severity.HIGH,
        enforcement=Enforcement.ENFORCE,
        applies_to=["system"],
        required_conditions=(
            "pause_buying_if_critical_or_high_severity",
            "require_acknowledgement_for_all_material_changes",
        ),
    ),
    _rule(
        "RULE_6_3_MUTATION_GUARDS",
        RuleFamily.CROSS_PHASE,
        name="Platform Context Mutation Guards",
        description="Platform context recalculation must respect mutation rules",
        severity=Severity.HIGH,
        applies_to=["system"],
        required_conditions=("no_active_dispute", "not_suspended", "no_admin_freeze"),
        guarded_actions=["recalculate_platform_context"],
    ),
)

RULE_SETS: Mapping[RuleFamily, tuple[Rule, ...]] = MappingProxyType({
    RuleFamily.PLATFORM_SUPREMACY: PLATFORM_SUPREMACY_RULES,
    RuleFamily.IMMUTABILITY: IMMUTABILITY_RULES,
    RuleFamily.ACTOR_SEPARATION: ACTOR_SEPARATION_RULES,
    RuleFamily.ATTRIBUTION: ATTRIBUTION_RULES,
    RuleFamily.BUY_ELIGIBILITY: BUY_ELIGIBILITY_RULES,
    RuleFamily.CROSS_PHASE: CROSS_PHASE_ENFORCEMENT_RULES,
})


class RuleCatalog:
    """
    Read-only registry of governance rules.

    Built from the compiled-in rule sets, optionally restricted to a subset
    of families (for gradual rollout), or from an explicit rule list (tests).
    """

    def __init__(
        self,
        rules: Iterable[Rule] | None = None,
        enabled_families: Iterable[RuleFamily] | None = None,
        version: str = PROTOCOL_VERSION,
    ):
        """
        Initialize the catalog.

        Args:
            rules: Explicit rules; defaults to all compiled-in rule sets
            enabled_families: Families to keep (default: all)
            version: Protocol version reported with every result

        Raises:
            ValueError: If two rules share an id
        """
        if rules is None:
            rules = [rule for rule_set in RULE_SETS.values() for rule in rule_set]

        families = set(enabled_families) if enabled_families is not None else set(RuleFamily)

        indexed: dict[str, Rule] = {}
        for rule in rules:
            if rule.family not in families:
                continue
            if rule.rule_id in indexed:
                raise ValueError(f"Duplicate rule id in catalog: {rule.rule_id}")
            indexed[rule.rule_id] = rule

        self.version = version
        self._rules: Mapping[str, Rule] = MappingProxyType(indexed)

    def get_all_rules(self) -> Mapping[str, Rule]:
        """Return every rule indexed by id, in catalog order."""
        return self._rules

    def get_rule(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    def get_rules_by_severity(self, severity: Severity | str) -> list[Rule]:
        severity = Severity(severity)
        return [rule for rule in self._rules.values() if rule.severity == severity]

    def get_rules_by_family(self, family: RuleFamily | str) -> list[Rule]:
        family = RuleFamily(family)
        return [rule for rule in self._rules.values() if rule.family == family]

    def get_rules_for_actor(self, actor_type: ActorType | str) -> list[Rule]:
        """
        Coarse prefilter: rules whose actor scope covers this actor type.

        A rule matches on the exact actor type, the actor's family tag
        ("admin" for admin_judgment/admin_override, "system" for
        system_enforcement/automated_platform) or the "all" wildcard.
        Evaluators apply the finer action checks afterwards.

        Args:
            actor_type: Actor type value or enum member

        Returns:
            Matching rules in catalog order
        """
        try:
            actor_family = ActorType(actor_type).family
        except ValueError:
            actor_family = None

        actor_value = actor_type.value if isinstance(actor_type, ActorType) else actor_type
        return [
            rule for rule in self._rules.values()
            if rule.applies_to_actor(actor_value, actor_family)
        ]

    def rule_summary(self) -> dict[str, object]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts by family and severity
        """
        by_family: dict[str, int] = {}
        by_severity: dict[str, int] = {}
        for rule in self._rules.values():
            by_family[rule.family.value] = by_family.get(rule.family.value, 0) + 1
            by_severity[rule.severity.value] = by_severity.get(rule.severity.value, 0) + 1

        return {
            "protocol_version": self.version,
            "total_rules": len(self._rules),
            "rules_by_family": by_family,
            "rules_by_severity": by_severity,
        }

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


DEFAULT_CATALOG = RuleCatalog()
