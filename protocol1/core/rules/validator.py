"""
Protocol-1 validator.

Selects the rules that apply to the acting actor, evaluates each through
its family evaluator, and turns the violations into a block decision for
the configured enforcement mode.
"""

import time
from typing import TYPE_CHECKING, Iterable

from protocol1.core.errors import GovernanceViolationException, UnexpectedInternalError
from protocol1.core.evaluators import (
    ActorSeparationEvaluator,
    AttributionEvaluator,
    BaseEvaluator,
    BuyEligibilityEvaluator,
    CrossPhaseEvaluator,
    EvaluationPass,
    GuardSet,
    ImmutabilityEvaluator,
    PlatformSupremacyEvaluator,
)
from protocol1.core.models import (
    EnforcementMode,
    Rule,
    RuleFamily,
    ValidationContext,
    ValidationResult,
    Violation,
    ViolationBuckets,
)
from protocol1.guards import BuyEligibilityGuard, CrossPhaseGuard, ImmutabilityLookup, PlatformStateGuard
from protocol1.observability.logger import get_logger
from protocol1.observability.metrics import record_validation, record_violation

from .catalog import DEFAULT_CATALOG, RuleCatalog

if TYPE_CHECKING:
    from protocol1.config import Protocol1Settings
    from protocol1.observability.monitor import Monitor

logger = get_logger(__name__)

CRITICAL_BLOCK_REASON = "CRITICAL Protocol-1 violation detected"
HIGH_BLOCK_REASON = "HIGH severity Protocol-1 violation detected"


def decide_block(
    violations: ViolationBuckets | Iterable[Violation],
    enforcement_mode: EnforcementMode | str,
) -> tuple[bool, str | None]:
    """
    Apply the enforcement policy to a set of violations.

    - strict: block on CRITICAL or HIGH
    - lenient: block on CRITICAL only
    - monitor: never block

    Args:
        violations: Violations, flat or already partitioned
        enforcement_mode: Mode to decide under

    Returns:
        (should_block, block_reason)
    """
    buckets = violations if isinstance(violations, ViolationBuckets) else ViolationBuckets.partition(list(violations))
    mode = EnforcementMode(enforcement_mode)

    if mode == EnforcementMode.MONITOR:
        return False, None

    if buckets.critical:
        return True, CRITICAL_BLOCK_REASON

    if mode == EnforcementMode.STRICT and buckets.high:
        return True, HIGH_BLOCK_REASON

    return False, None


class Validator:
    """
    Validates actions against the Protocol-1 rule catalog.

    The enforcement mode is fixed at construction. validate() holds no
    state between calls, so one instance can serve concurrent requests.
    """

    EVALUATOR_REGISTRY: dict[RuleFamily, type[BaseEvaluator]] = {
        RuleFamily.PLATFORM_SUPREMACY: PlatformSupremacyEvaluator,
        RuleFamily.IMMUTABILITY: ImmutabilityEvaluator,
        RuleFamily.ACTOR_SEPARATION: ActorSeparationEvaluator,
        RuleFamily.ATTRIBUTION: AttributionEvaluator,
        RuleFamily.BUY_ELIGIBILITY: BuyEligibilityEvaluator,
        RuleFamily.CROSS_PHASE: CrossPhaseEvaluator,
    }

    def __init__(
        self,
        catalog: RuleCatalog | None = None,
        enforcement_mode: EnforcementMode | str = EnforcementMode.STRICT,
        monitor: "Monitor | None" = None,
        platform_guard: PlatformStateGuard | None = None,
        buy_guard: BuyEligibilityGuard | None = None,
        cross_phase_guard: CrossPhaseGuard | None = None,
        immutability_lookup: ImmutabilityLookup | None = None,
        max_validation_duration_ms: float = 500.0,
    ):
        """
        Initialize the validator.

        Args:
            catalog: Rule catalog (default: full compiled-in catalog)
            enforcement_mode: strict, lenient or monitor
            monitor: Receives every violation; None disables recording
            platform_guard: Platform-state sub-guard
            buy_guard: Buy-eligibility sub-guard
            cross_phase_guard: Cross-phase mutation sub-guard
            immutability_lookup: Resource lock-state lookup
            max_validation_duration_ms: Passes slower than this are logged
        """
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG
        self.enforcement_mode = EnforcementMode(enforcement_mode)
        self.monitor = monitor
        self.max_validation_duration_ms = max_validation_duration_ms

        guards = GuardSet(
            platform_guard=platform_guard,
            buy_guard=buy_guard,
            cross_phase_guard=cross_phase_guard,
            immutability_lookup=immutability_lookup,
        )
        self.evaluators: dict[RuleFamily, BaseEvaluator] = {
            family: evaluator_class(guards)
            for family, evaluator_class in self.EVALUATOR_REGISTRY.items()
        }

    @classmethod
    def from_settings(
        cls,
        settings: "Protocol1Settings",
        monitor: "Monitor | None" = None,
        **guards,
    ) -> "Validator":
        """
        Build a validator from loaded settings.

        Args:
            settings: Protocol-1 settings
            monitor: Violation monitor
            **guards: Sub-guard adapters, by constructor argument name

        Returns:
            Configured Validator
        """
        catalog = RuleCatalog(enabled_families=settings.enabled_families())
        return cls(
            catalog=catalog,
            enforcement_mode=settings.enforcement_mode,
            monitor=monitor,
            max_validation_duration_ms=settings.performance.max_validation_duration_ms,
            **guards,
        )

    def validate(self, context: ValidationContext) -> ValidationResult:
        """
        Validate an action.

        Args:
            context: Action to validate

        Returns:
            ValidationResult for an allowed action

        Raises:
            GovernanceViolationException: If the action must be blocked
            UnexpectedInternalError: If rule selection or aggregation fails
        """
        start_time = time.perf_counter()

        try:
            rules = self.catalog.get_rules_for_actor(context.actor_type)
            violations = self.evaluate_rules(context, rules)
            buckets = ViolationBuckets.partition(violations)
            should_block, block_reason = decide_block(buckets, self.enforcement_mode)
        except Exception as e:
            logger.error(
                f"Protocol-1 validation failed unexpectedly: {e}",
                extra={"actor_type": context.actor_type.value, "action": context.action},
                exc_info=True,
            )
            raise UnexpectedInternalError(f"Protocol-1 validation failed: {e}") from e

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        result = ValidationResult(
            protocol_version=self.catalog.version,
            passed=not buckets.critical and not buckets.high,
            should_block=should_block,
            block_reason=block_reason,
            violations=buckets,
            enforcement_mode=self.enforcement_mode,
            validation_duration_ms=duration_ms,
        )

        self._report(context, result)

        if result.total_violations and self.monitor is not None:
            self.monitor.record_violations(
                result.all_violations(),
                context,
                was_blocked=should_block,
                enforcement_mode=self.enforcement_mode,
            )

        if should_block:
            raise GovernanceViolationException(block_reason, result)

        return result

    def evaluate_rules(self, context: ValidationContext, rules: list[Rule]) -> list[Violation]:
        """
        Run every rule through its family evaluator.

        Args:
            context: Action being validated
            rules: Applicable rules in catalog order

        Returns:
            All violations, in rule order
        """
        state = EvaluationPass(context, rules)
        violations: list[Violation] = []

        for rule in rules:
            evaluator = self.evaluators.get(rule.family)
            if evaluator is None:
                raise ValueError(f"No evaluator registered for rule family: {rule.family}")
            violations.extend(evaluator.run(rule, state))

        return violations

    def _report(self, context: ValidationContext, result: ValidationResult) -> None:
        if result.should_block:
            outcome = "blocked"
        elif result.total_violations:
            outcome = "warned"
        else:
            outcome = "passed"

        record_validation(outcome, self.enforcement_mode.value, result.validation_duration_ms)
        for violation in result.all_violations():
            record_violation(violation.severity.value, violation.rule_id)

        extra = {
            "actor_type": context.actor_type.value,
            "action": context.action,
            "company_id": context.company_id,
            "enforcement_mode": self.enforcement_mode.value,
            "outcome": outcome,
            "duration_ms": result.validation_duration_ms,
        }

        if result.total_violations:
            logger.warning(
                f"Protocol-1 violations detected: {result.total_violations} "
                f"({len(result.violations.critical)} critical, {len(result.violations.high)} high)",
                extra={**extra, "rule_ids": [v.rule_id for v in result.all_violations()]},
            )
        else:
            logger.debug("Protocol-1 validation passed", extra=extra)

        if result.validation_duration_ms > self.max_validation_duration_ms:
            logger.warning(
                f"Protocol-1 validation exceeded {self.max_validation_duration_ms}ms",
                extra=extra,
            )

    def __repr__(self) -> str:
        return f"Validator(rules={len(self.catalog)}, enforcement_mode={self.enforcement_mode.value})"
