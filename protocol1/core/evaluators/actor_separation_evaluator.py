"""
ActorSeparationEvaluator - each actor has explicit, bounded permissions.
"""

from protocol1.core.models import Rule, RuleFamily, Violation

from .base_evaluator import BaseEvaluator, EvaluationPass

READ_ACTIONS = frozenset({"read"})


def is_write_action(action: str) -> bool:
    """Anything that is not a read or a view_* action mutates state."""
    return action not in READ_ACTIONS and not action.startswith("view_")


class ActorSeparationEvaluator(BaseEvaluator):
    """
    Enforces actor boundaries in exactly one of three modes per rule:

    - whitelist: violation if allowed_actions is set and the action is not in it
    - blocked resources: violation if the action writes to a listed resource
    - blacklist: violation if the action is in blocked_actions
    """

    @property
    def family(self) -> RuleFamily:
        return RuleFamily.ACTOR_SEPARATION

    def evaluate(self, rule: Rule, state: EvaluationPass) -> list[Violation]:
        context = state.context
        actor_type = context.actor_type.value
        action = context.action

        if rule.allowed_actions is not None:
            if action in rule.allowed_actions:
                return []
            return [
                self.violation(
                    rule,
                    f"Actor separation violation: '{actor_type}' action '{action}' not in allowed list",
                    actor_type=actor_type,
                    attempted_action=action,
                    allowed_actions=sorted(rule.allowed_actions),
                )
            ]

        if rule.blocked_resources:
            target_model = context.resource_refs.target_model
            if target_model in rule.blocked_resources and is_write_action(action):
                return [
                    self.violation(
                        rule,
                        f"Actor separation violation: '{actor_type}' cannot write to '{target_model}'",
                        actor_type=actor_type,
                        attempted_action=action,
                        target_model=target_model,
                    )
                ]
            return []

        if action in rule.blocked_actions:
            return [
                self.violation(
                    rule,
                    f"Actor separation violation: '{actor_type}' cannot perform '{action}'",
                    actor_type=actor_type,
                    attempted_action=action,
                )
            ]

        return []
