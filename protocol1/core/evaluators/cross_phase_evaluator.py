"""
CrossPhaseEvaluator - phases respect each other's invariants.
"""

from protocol1.core.models import Rule, RuleFamily, ValidationContext, Violation

from .base_evaluator import BaseEvaluator, EvaluationPass

SNAPSHOT_MUTATIONS = frozenset({"update_snapshot", "delete_snapshot"})
CONTEXT_RECALCULATIONS = frozenset({"recalculate_platform_context"})

SNAPSHOT_KINDS = {
    "investment_snapshot": "investment_disclosure_snapshots",
    "platform_context_snapshot": "platform_context_snapshots",
}
DEFAULT_SNAPSHOT_KIND = "investment_disclosure_snapshots"


class CrossPhaseEvaluator(BaseEvaluator):
    """
    Asks the cross-phase guard to assert its invariants.

    Snapshot mutations assert snapshot immutability; platform-context
    recalculations assert that the context may be mutated. The guard
    signals refusal by raising, which run() turns into one violation
    carrying the guard's message.
    """

    required_guard = "cross_phase_guard"
    violation_prefix = "Cross-phase enforcement violation"

    @property
    def family(self) -> RuleFamily:
        return RuleFamily.CROSS_PHASE

    def engages(self, rule: Rule, context: ValidationContext) -> bool:
        return context.action in rule.guarded_actions

    def evaluate(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        context = state.context
        guard = self.guards.cross_phase_guard

        if context.action in SNAPSHOT_MUTATIONS:
            snapshot_id = context.payload.get("snapshot_id") or context.resource_refs.target_id
            if snapshot_id:
                kind = SNAPSHOT_KINDS.get(context.resource_refs.target_model or "", DEFAULT_SNAPSHOT_KIND)
                self.consult(rule, "cross_phase_guard", guard.assert_snapshot_immutability, str(snapshot_id), kind)

        elif context.action in CONTEXT_RECALCULATIONS and context.company_id:
            source = context.payload.get("source") or context.actor_type.value
            self.consult(
                rule,
                "cross_phase_guard",
                guard.assert_can_mutate_platform_context,
                context.company_id,
                source,
                context.actor_id,
            )

        return []
