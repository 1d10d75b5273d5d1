"""
AttributionEvaluator - every action carries explicit, complete attribution.
"""

from typing import Any

from protocol1.core.models import Rule, RuleFamily, Violation

from .base_evaluator import BaseEvaluator, EvaluationPass


def is_missing(value: Any) -> bool:
    """A field is missing when absent, None, blank, or an empty collection."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


class AttributionEvaluator(BaseEvaluator):
    """
    Checks required payload fields and the declared actor type.

    Emits one violation per missing required field (limited to the rule's
    scoped_actions when it has them), plus one violation when the declared
    actor type (payload actor_type, else the context's) is not in
    valid_actor_types.
    """

    @property
    def family(self) -> RuleFamily:
        return RuleFamily.ATTRIBUTION

    def evaluate(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        context = state.context
        actor_type = context.actor_type.value
        violations = []

        if rule.scoped_actions is None or context.action in rule.scoped_actions:
            for field in rule.required_fields:
                if is_missing(context.payload.get(field)):
                    violations.append(
                        self.violation(
                            rule,
                            f"Attribution violation: Required field '{field}' missing "
                            f"for action '{context.action}'",
                            missing_field=field,
                            actor_type=actor_type,
                        )
                    )

        # The declared type in the payload wins; it is what the caller claimed to be
        declared = context.payload.get("actor_type") or actor_type
        declared = getattr(declared, "value", declared)
        if rule.valid_actor_types is not None and not self._is_valid_actor_type(declared, rule):
            shown = declared if isinstance(declared, str) else repr(declared)
            violations.append(
                self.violation(
                    rule,
                    f"Attribution violation: Invalid actor_type '{shown}'",
                    provided_actor_type=shown,
                    valid_actor_types=sorted(rule.valid_actor_types),
                )
            )

        return violations

    @staticmethod
    def _is_valid_actor_type(declared: Any, rule: Rule) -> bool:
        # Request input: anything but a string is an invalid declaration
        return isinstance(declared, str) and declared in rule.valid_actor_types
