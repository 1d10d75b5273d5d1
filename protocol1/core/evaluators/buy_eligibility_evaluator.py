"""
BuyEligibilityEvaluator - investments pass the layered buy guards.
"""

from fnmatch import fnmatchcase

from protocol1.core.models import Rule, RuleFamily, Severity, ValidationContext, Violation
from protocol1.guards import BuyBlocker, BuyCheck

from .base_evaluator import BaseEvaluator, EvaluationPass, coerce_verdict

INVESTMENT_ACTION = "create_investment"


class BuyEligibilityEvaluator(BaseEvaluator):
    """
    Turns every critical buy blocker into one CRITICAL violation.

    The guard runs once per pass. Each blocker is attributed to the first
    engaged rule whose guard_names patterns match the blocker's guard name,
    or to the first engaged rule when no pattern matches.
    """

    required_guard = "buy_guard"
    violation_prefix = "Buy eligibility violation"

    @property
    def family(self) -> RuleFamily:
        return RuleFamily.BUY_ELIGIBILITY

    def engages(self, rule: Rule, context: ValidationContext) -> bool:
        return context.action == INVESTMENT_ACTION and bool(context.company_id) and bool(context.actor_id)

    def evaluate(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        context = state.context
        check = state.memoize(("buy_eligibility", context.company_id, context.actor_id), lambda: self._check(rule, context))

        violations = []
        for blocker in check.critical_blockers():
            if self._owner(blocker, state).rule_id != rule.rule_id:
                continue
            violations.append(
                self.violation(
                    rule,
                    f"{self.violation_prefix}: {blocker.message}",
                    severity=Severity.CRITICAL,
                    guard=blocker.guard_name,
                    blocker_details=blocker.model_dump(),
                )
            )
        return violations

    def _check(self, rule: Rule, context: ValidationContext) -> BuyCheck:
        guard = self.guards.buy_guard
        return self.consult(
            rule,
            "buy_eligibility_guard",
            lambda: coerce_verdict(BuyCheck, guard.can_invest(context.company_id, context.actor_id)),
        )

    def _owner(self, blocker: BuyBlocker, state: EvaluationPass) -> Rule:
        engaged = self.engaged_rules(state)
        for rule in engaged:
            if any(fnmatchcase(blocker.guard_name, pattern) for pattern in rule.guard_names):
                return rule
        return engaged[0]
