"""
Request-level Protocol-1 enforcement.

GovernanceGateway sits between request handling and business logic: it
builds the validation context, runs the Validator, and turns the outcome
into either "continue" (with the result attached) or an HTTP-shaped
rejection. Unexpected validator failures follow the fail-safe policy.
"""

from typing import Any, Callable

from pydantic import BaseModel, Field

from protocol1.config import Protocol1Settings
from protocol1.core.errors import GovernanceViolationException
from protocol1.core.models import ValidationResult, Violation
from protocol1.core.rules.validator import Validator
from protocol1.observability.logger import get_logger
from protocol1.observability.metrics import fail_open_total, gateway_responses_total, increment_counter

from .context_builder import ContextBuilder, GatewayRequest

logger = get_logger(__name__)

HTTP_FORBIDDEN = 403
HTTP_INTERNAL_SERVER_ERROR = 500

VIOLATION_MESSAGE = "Protocol-1 Governance Violation"
SYSTEM_ERROR_MESSAGE = "Protocol-1 validation system error"
SUPPORT_MESSAGE = (
    "This action violates platform governance rules. "
    "Please contact support if you believe this is an error."
)


class GatewayResponse(BaseModel):
    """HTTP-shaped rejection returned instead of calling the business logic."""

    status_code: int
    body: dict[str, Any] = Field(default_factory=dict)


class GatewayOutcome(BaseModel):
    """
    Decision for one request.

    Attributes:
        allowed: Whether the request may continue
        result: Validation result (None when validation was skipped or failed)
        response: Rejection to return when not allowed
        failed_open: Allowed despite an unexpected validation error
        skipped: Protocol-1 is disabled
    """

    allowed: bool
    result: ValidationResult | None = None
    response: GatewayResponse | None = None
    failed_open: bool = False
    skipped: bool = False


def format_violations(violations: list[Violation]) -> list[dict[str, str]]:
    """User-facing violation list: rule name, message and severity only."""
    return [violation.to_response() for violation in violations]


def forbidden_response(result: ValidationResult) -> GatewayResponse:
    """
    403 body for a blocked action.

    Only CRITICAL and HIGH violations are shown.
    """
    return GatewayResponse(
        status_code=HTTP_FORBIDDEN,
        body={
            "status": "error",
            "message": VIOLATION_MESSAGE,
            "error": result.block_reason,
            "protocol_version": result.protocol_version,
            "enforcement_mode": result.enforcement_mode.value,
            "violations": {
                "critical": format_violations(result.violations.critical),
                "high": format_violations(result.violations.high),
            },
            "support_message": SUPPORT_MESSAGE,
        },
    )


class GovernanceGateway:
    """
    Applies Protocol-1 to inbound requests.

    Usage:
        gateway = GovernanceGateway(validator, settings, monitor)
        outcome = gateway.handle(request)
        if not outcome.allowed:
            return outcome.response
    """

    def __init__(
        self,
        validator: Validator,
        settings: Protocol1Settings | None = None,
        monitor=None,
        context_builder: ContextBuilder | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            validator: Configured Validator
            settings: Protocol-1 settings (enabled flag, fail-safe policy)
            monitor: Counts attempted actions; optional
            context_builder: Request-to-context inference
        """
        self.validator = validator
        self.settings = settings or Protocol1Settings()
        self.monitor = monitor
        self.context_builder = context_builder or ContextBuilder()

    def handle(
        self,
        request: GatewayRequest,
        actor_type_override: str | None = None,
        action_override: str | None = None,
    ) -> GatewayOutcome:
        """
        Validate one request.

        Args:
            request: Inbound request
            actor_type_override: Actor type declared by the route
            action_override: Action declared by the route

        Returns:
            GatewayOutcome; never raises
        """
        if not self.settings.enabled:
            return GatewayOutcome(allowed=True, skipped=True)

        if self.monitor is not None:
            self.monitor.increment_action_counter()

        try:
            context = self.context_builder.build(request, actor_type_override, action_override)
            logger.debug(
                "Validating request",
                extra={
                    "url": request.full_url or request.path,
                    "method": request.method,
                    "actor_type": context.actor_type.value,
                    "action": context.action,
                    "company_id": context.company_id,
                },
            )
            result = self.validator.validate(context)

        except GovernanceViolationException as e:
            result = e.result
            logger.warning(
                "Request blocked by Protocol-1",
                extra={
                    "url": request.full_url or request.path,
                    "block_reason": e.block_reason,
                    "critical_count": len(result.violations.critical),
                    "high_count": len(result.violations.high),
                },
            )
            increment_counter(gateway_responses_total, 1, status=str(HTTP_FORBIDDEN))
            return GatewayOutcome(allowed=False, result=result, response=forbidden_response(result))

        except Exception as e:
            return self._handle_internal_error(request, e)

        logger.info(
            "Protocol-1 validation passed",
            extra={
                "url": request.full_url or request.path,
                "violations_count": result.total_violations,
                "validation_duration_ms": result.validation_duration_ms,
            },
        )
        return GatewayOutcome(allowed=True, result=result)

    def dispatch(
        self,
        request: GatewayRequest,
        call_next: Callable[[GatewayRequest, ValidationResult | None], Any],
        actor_type_override: str | None = None,
        action_override: str | None = None,
    ) -> Any:
        """
        Middleware form of handle(): call the next handler or return the rejection.

        Args:
            request: Inbound request
            call_next: Business-logic handler, receives the request and the result
            actor_type_override: Actor type declared by the route
            action_override: Action declared by the route

        Returns:
            Whatever call_next returns, or a GatewayResponse
        """
        outcome = self.handle(request, actor_type_override, action_override)
        if not outcome.allowed:
            return outcome.response
        return call_next(request, outcome.result)

    def _handle_internal_error(self, request: GatewayRequest, error: Exception) -> GatewayOutcome:
        logger.error(
            f"Protocol-1 validation error: {error}",
            extra={"url": request.full_url or request.path, "error_type": type(error).__name__},
            exc_info=True,
        )

        if self.settings.should_fail_open():
            increment_counter(fail_open_total, 1, environment=self.settings.environment)
            logger.critical(
                "Failing open due to Protocol-1 validation error",
                extra={"url": request.full_url or request.path, "environment": self.settings.environment},
            )
            return GatewayOutcome(allowed=True, failed_open=True)

        increment_counter(gateway_responses_total, 1, status=str(HTTP_INTERNAL_SERVER_ERROR))
        return GatewayOutcome(
            allowed=False,
            response=GatewayResponse(
                status_code=HTTP_INTERNAL_SERVER_ERROR,
                body={
                    "status": "error",
                    "message": SYSTEM_ERROR_MESSAGE,
                    "error": str(error),
                },
            ),
        )
