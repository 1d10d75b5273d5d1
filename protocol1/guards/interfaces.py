"""
Sub-guard adapter interfaces consumed by the rule evaluators.

The business logic behind these guards (platform state, buy eligibility,
cross-phase mutation rules) lives outside the enforcement core. The
Validator only needs the verdicts described here.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class PlatformCheck(BaseModel):
    """
    Verdict of the platform-state guard.

    Attributes:
        allowed: Whether platform state permits the action
        reason: Why the action is blocked
        blocking_state: State that blocks the action ("suspended", "frozen", ...)
        platform_state: Snapshot of the company's platform state flags
    """

    allowed: bool
    reason: str | None = None
    blocking_state: str | None = None
    platform_state: dict[str, Any] | None = None


class BuyBlocker(BaseModel):
    """One reason an investment cannot proceed."""

    severity: str
    message: str
    guard_name: str

    @property
    def is_critical(self) -> bool:
        return self.severity.lower() == "critical"


class BuyCheck(BaseModel):
    """Verdict of the buy-eligibility guard."""

    allowed: bool
    blockers: list[BuyBlocker] = Field(default_factory=list)

    def critical_blockers(self) -> list[BuyBlocker]:
        return [blocker for blocker in self.blockers if blocker.is_critical]


class PlatformStateGuard(ABC):
    """Decides whether platform state (suspension, freeze, ...) permits an action."""

    @abstractmethod
    def can_perform_action(
        self,
        company_id: str,
        action: str,
        actor_id: str | None = None,
    ) -> PlatformCheck:
        """
        Check an action against the company's current platform state.

        Args:
            company_id: Company the action targets
            action: Action identifier
            actor_id: Acting user, if known

        Returns:
            PlatformCheck verdict
        """


class BuyEligibilityGuard(ABC):
    """Runs the layered company, investor and acknowledgement buy guards."""

    @abstractmethod
    def can_invest(self, company_id: str, actor_id: str) -> BuyCheck:
        """
        Check whether an investor may invest in a company.

        Args:
            company_id: Target company
            actor_id: Investing user

        Returns:
            BuyCheck with every blocker found
        """


class CrossPhaseGuard(ABC):
    """Asserts invariants that span platform phases; raises on refusal."""

    @abstractmethod
    def assert_snapshot_immutability(self, snapshot_id: str, kind: str) -> None:
        """Raise if the snapshot may not be mutated."""

    @abstractmethod
    def assert_can_mutate_platform_context(
        self,
        company_id: str,
        source: str,
        actor_id: str | None = None,
    ) -> None:
        """Raise if the company's platform context may not be recalculated now."""


class ImmutabilityLookup(ABC):
    """Resolves whether a target record is currently immutable or locked."""

    @abstractmethod
    def is_immutable(self, target_model: str, target_id: str | None) -> bool:
        """
        Check a target record's lock state.

        Args:
            target_model: investment_snapshot, platform_context_snapshot,
                          disclosure or acknowledgement
            target_id: Record id

        Returns:
            True when the record must not be mutated
        """
