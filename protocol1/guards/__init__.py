"""
Sub-guard adapters: the external checkers the rule evaluators delegate to.
"""

from .interfaces import (
    BuyBlocker,
    BuyCheck,
    BuyEligibilityGuard,
    CrossPhaseGuard,
    ImmutabilityLookup,
    PlatformCheck,
    PlatformStateGuard,
)

__all__ = [
    "BuyBlocker",
    "BuyCheck",
    "BuyEligibilityGuard",
    "CrossPhaseGuard",
    "ImmutabilityLookup",
    "PlatformCheck",
    "PlatformStateGuard",
]
