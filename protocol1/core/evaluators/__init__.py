"""
Rule-family evaluators.

One evaluator per rule set: platform supremacy, immutability, actor
separation, attribution, buy eligibility and cross-phase enforcement.
"""

from .actor_separation_evaluator import ActorSeparationEvaluator
from .attribution_evaluator import AttributionEvaluator
from .base_evaluator import BaseEvaluator, EvaluationPass, GuardSet
from .buy_eligibility_evaluator import BuyEligibilityEvaluator
from .cross_phase_evaluator import CrossPhaseEvaluator
from .immutability_evaluator import ImmutabilityEvaluator
from .platform_supremacy_evaluator import PlatformSupremacyEvaluator

__all__ = [
    "BaseEvaluator",
    "EvaluationPass",
    "GuardSet",
    "PlatformSupremacyEvaluator",
    "ImmutabilityEvaluator",
    "ActorSeparationEvaluator",
    "AttributionEvaluator",
    "BuyEligibilityEvaluator",
    "CrossPhaseEvaluator",
]
