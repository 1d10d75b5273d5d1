"""
ImmutabilityEvaluator - locked records cannot be mutated.
"""

from protocol1.core.models import Rule, RuleFamily, ValidationContext, Violation
from protocol1.observability.logger import get_logger

from .base_evaluator import BaseEvaluator, EvaluationPass

logger = get_logger(__name__)

# Acknowledgements are immutable from the moment they exist
ALWAYS_IMMUTABLE = frozenset({"acknowledgement"})


class ImmutabilityEvaluator(BaseEvaluator):
    """
    Flags blocked mutations of locked records.

    A violation needs both conditions:
    - the action is in the rule's blocked_actions
    - the target record is immutable according to the immutability lookup
      (investment snapshot is_immutable, platform context snapshot
      is_locked, disclosure approved, acknowledgement always)
    """

    violation_prefix = "Immutability violation"

    @property
    def family(self) -> RuleFamily:
        return RuleFamily.IMMUTABILITY

    def engages(self, rule: Rule, context: ValidationContext) -> bool:
        target_model = context.resource_refs.target_model
        if context.action not in rule.blocked_actions or not target_model:
            return False
        return rule.resource_type is None or rule.resource_type == target_model

    def evaluate(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        context = state.context
        target_model = context.resource_refs.target_model
        target_id = context.resource_refs.target_id

        is_immutable = state.memoize(
            ("immutability", target_model, target_id),
            lambda: self._is_immutable(rule, target_model, target_id),
        )
        if not is_immutable:
            return []

        return [
            self.violation(
                rule,
                f"{self.violation_prefix}: Cannot perform '{context.action}' on locked/immutable record",
                target_model=target_model,
                target_id=target_id,
                attempted_action=context.action,
            )
        ]

    def _is_immutable(self, rule: Rule, target_model: str, target_id: str | None) -> bool:
        if target_model in ALWAYS_IMMUTABLE:
            return True

        lookup = self.guards.immutability_lookup
        if lookup is None:
            logger.debug(f"No immutability lookup configured; treating {target_model} as mutable")
            return False

        return bool(self.consult(rule, "immutability_lookup", lookup.is_immutable, target_model, target_id))
