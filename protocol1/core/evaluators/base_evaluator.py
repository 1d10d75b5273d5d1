"""
Base evaluator interface for the six rule families.

All evaluators inherit from BaseEvaluator and implement evaluate(). The
run() template handles the shared concerns: skipping rules that do not
engage for the context, skipping families whose sub-guard is not
configured, and turning sub-guard failures into violations so one failing
guard never aborts a validation pass.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Hashable, TypeVar

from pydantic import BaseModel

from protocol1.core.errors import AdapterEvaluationError
from protocol1.core.models import Rule, RuleFamily, Severity, ValidationContext, Violation
from protocol1.guards import BuyEligibilityGuard, CrossPhaseGuard, ImmutabilityLookup, PlatformStateGuard
from protocol1.observability.logger import get_logger

logger = get_logger(__name__)


VerdictT = TypeVar("VerdictT", bound=BaseModel)


def coerce_verdict(model: type[VerdictT], value: Any) -> VerdictT:
    """
    Normalize a sub-guard verdict to its model.

    Accepts the model itself or a plain dict of its fields.

    Raises:
        TypeError: If the guard returned anything else
        ValidationError: If a dict verdict does not fit the model
    """
    if isinstance(value, model):
        return value
    if isinstance(value, dict):
        return model.model_validate(value)
    raise TypeError(f"guard returned {type(value).__name__}, expected {model.__name__}")


@dataclass(frozen=True)
class GuardSet:
    """The sub-guard adapters available to the evaluators (any may be None)."""

    platform_guard: PlatformStateGuard | None = None
    buy_guard: BuyEligibilityGuard | None = None
    cross_phase_guard: CrossPhaseGuard | None = None
    immutability_lookup: ImmutabilityLookup | None = None


class EvaluationPass:
    """
    State of one validation pass, shared by the evaluators.

    Holds the context, the applicable rules in catalog order, and a memo of
    sub-guard verdicts so each guard is consulted at most once per pass
    with the same arguments.
    """

    def __init__(self, context: ValidationContext, rules: list[Rule]):
        self.context = context
        self.rules = rules
        self._memo: dict[Hashable, tuple[Any, AdapterEvaluationError | None]] = {}

    def rules_in_family(self, family: RuleFamily) -> list[Rule]:
        return [rule for rule in self.rules if rule.family == family]

    def memoize(self, key: Hashable, factory: Callable[[], Any]) -> Any:
        """
        Compute a guard verdict once per pass.

        Adapter failures are memoized as well and re-raised on every lookup.
        """
        if key not in self._memo:
            try:
                self._memo[key] = (factory(), None)
            except AdapterEvaluationError as e:
                self._memo[key] = (None, e)

        value, error = self._memo[key]
        if error is not None:
            raise error
        return value


class BaseEvaluator(ABC):
    """
    Abstract base class for rule-family evaluators.

    Subclasses declare the family they handle, the GuardSet attribute they
    need (if any) and the prefix used for adapter-failure messages.
    """

    required_guard: str | None = None
    violation_prefix: str = "Protocol-1 violation"

    def __init__(self, guards: GuardSet | None = None):
        """
        Initialize evaluator.

        Args:
            guards: Sub-guard adapters (default: none configured)
        """
        self.guards = guards or GuardSet()

    @property
    @abstractmethod
    def family(self) -> RuleFamily:
        """Return the rule family this evaluator handles."""

    def engages(self, rule: Rule, context: ValidationContext) -> bool:
        """Whether the rule is relevant to this context at all."""
        return True

    @abstractmethod
    def evaluate(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        """
        Evaluate a single engaged rule.

        Args:
            rule: Rule to evaluate
            state: Current validation pass

        Returns:
            Zero or more violations

        Raises:
            AdapterEvaluationError: If a sub-guard fails or refuses
        """

    def run(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        """Evaluate a rule, converting sub-guard failures into a violation."""
        if self.required_guard and getattr(self.guards, self.required_guard) is None:
            logger.debug(f"Skipping {rule.rule_id}: no {self.required_guard} configured")
            return []

        if not self.engages(rule, state.context):
            return []

        try:
            return self.evaluate(rule, state)
        except AdapterEvaluationError as e:
            # A shared guard verdict is reported once, under the family's lead rule
            if not self.is_lead(rule, state):
                return []

            logger.warning(
                f"Sub-guard failure converted to violation: {e}",
                extra={"rule_id": rule.rule_id, "guard": e.guard_name},
            )
            return [
                self.violation(
                    rule,
                    f"{self.violation_prefix}: {e.message}",
                    guard=e.guard_name,
                    adapter_error=True,
                )
            ]

    def engaged_rules(self, state: EvaluationPass) -> list[Rule]:
        """Rules of this family that engage for the pass's context."""
        return [
            rule for rule in state.rules_in_family(self.family)
            if self.engages(rule, state.context)
        ]

    def is_lead(self, rule: Rule, state: EvaluationPass) -> bool:
        engaged = self.engaged_rules(state)
        return bool(engaged) and engaged[0].rule_id == rule.rule_id

    def consult(self, rule: Rule, guard_name: str, call: Callable[..., Any], *args: Any) -> Any:
        """
        Call a sub-guard, wrapping any exception it raises.

        Raises:
            AdapterEvaluationError: If the guard raises for any reason
        """
        try:
            return call(*args)
        except Exception as e:
            raise AdapterEvaluationError(rule.rule_id, guard_name, str(e)) from e

    @staticmethod
    def violation(
        rule: Rule,
        message: str,
        severity: Severity | None = None,
        **details: Any,
    ) -> Violation:
        return Violation(
            rule_id=rule.rule_id,
            rule_name=rule.name,
            severity=severity or rule.severity,
            message=message,
            details=details,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(family={self.family.value})"
