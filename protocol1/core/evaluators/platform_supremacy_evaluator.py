"""
PlatformSupremacyEvaluator - platform state overrides issuer and investor authority.
"""

from protocol1.core.models import Rule, RuleFamily, ValidationContext, Violation
from protocol1.guards import PlatformCheck

from .base_evaluator import BaseEvaluator, EvaluationPass, coerce_verdict


class PlatformSupremacyEvaluator(BaseEvaluator):
    """
    Delegates to the platform-state guard for the targeted company.

    Every applicable rule engages whenever the context names a company; the
    guard alone decides whether the action is permitted in the company's
    current state. A rule's blocked_actions describe what its state usually
    restricts and do not narrow the check. A refusal is attributed to the
    rule that lists the blocking state; a state no rule lists goes to the
    first engaged rule, so every refusal yields exactly one violation.
    """

    required_guard = "platform_guard"
    violation_prefix = "Platform supremacy violation"

    @property
    def family(self) -> RuleFamily:
        return RuleFamily.PLATFORM_SUPREMACY

    def engages(self, rule: Rule, context: ValidationContext) -> bool:
        return bool(context.company_id)

    def evaluate(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        context = state.context
        check = state.memoize(("platform_state", context.company_id, context.action), lambda: self._check(rule, context))

        if check.allowed or not self._claims(rule, check, state):
            return []

        return [
            self.violation(
                rule,
                f"{self.violation_prefix}: {check.reason or 'action blocked by platform state'}",
                blocking_state=check.blocking_state,
                platform_state=check.platform_state,
                attempted_action=context.action,
            )
        ]

    def _check(self, rule: Rule, context: ValidationContext) -> PlatformCheck:
        guard = self.guards.platform_guard
        return self.consult(
            rule,
            "platform_state_guard",
            lambda: coerce_verdict(PlatformCheck, guard.can_perform_action(context.company_id, context.action, context.actor_id)),
        )

    def _claims(self, rule: Rule, check: PlatformCheck, state: EvaluationPass) -> bool:
        if check.blocking_state and check.blocking_state in rule.blocking_states:
            return True

        claimed_elsewhere = any(
            check.blocking_state in other.blocking_states
            for other in self.engaged_rules(state)
        )
        return not claimed_elsewhere and self.is_lead(rule, state)
