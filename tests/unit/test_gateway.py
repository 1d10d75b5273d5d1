"""
Unit tests for the request-level governance gateway.
"""

from unittest.mock import MagicMock

import pytest

from protocol1.config import Protocol1Settings
from protocol1.core.errors import UnexpectedInternalError
from protocol1.core.rules import CRITICAL_BLOCK_REASON, Validator
from protocol1.middleware import GatewayRequest, GatewayResponse, GatewayUser, GovernanceGateway
from protocol1.middleware.gateway import SUPPORT_MESSAGE, SYSTEM_ERROR_MESSAGE, VIOLATION_MESSAGE
from protocol1.warehouse import counter_key


def issuer_request(path: str, method: str = "POST", **input) -> GatewayRequest:
    return GatewayRequest(
        path=path,
        method=method,
        input=input,
        route_params={"company_id": 42},
        user=GatewayUser(user_id=7, roles={"company_user"}, company_id=42),
    )


@pytest.fixture
def failing_validator():
    validator = MagicMock(spec=Validator)
    validator.validate.side_effect = UnexpectedInternalError("Protocol-1 validation failed: boom")
    return validator


class TestGatewayDecisions:
    """Tests for allow and block outcomes"""

    def test_allowed_request(self, guards, monitor):
        gateway = GovernanceGateway(Validator(**guards), monitor=monitor)

        outcome = gateway.handle(issuer_request("api/issuer/disclosures/1002/edit"))

        assert outcome.allowed is True
        assert outcome.response is None
        assert outcome.result is not None
        assert outcome.result.total_violations == 0

    def test_blocked_request_gets_403(self, guards, monitor):
        gateway = GovernanceGateway(Validator(**guards), monitor=monitor)

        outcome = gateway.handle(issuer_request("api/issuer/anything"), action_override="edit_platform_context")

        assert outcome.allowed is False
        assert outcome.response.status_code == 403
        body = outcome.response.body
        assert body["status"] == "error"
        assert body["message"] == VIOLATION_MESSAGE
        assert body["error"] == CRITICAL_BLOCK_REASON
        assert body["protocol_version"] == "1.0.0"
        assert body["enforcement_mode"] == "strict"
        assert body["support_message"] == SUPPORT_MESSAGE
        assert body["violations"]["critical"] == [{
            "rule_name": "Issuer Action Boundaries",
            "message": "Actor separation violation: 'issuer' action 'edit_platform_context' not in allowed list",
            "severity": "CRITICAL",
        }]
        assert body["violations"]["high"] == []

    def test_blocked_response_hides_rule_details(self, guards, immutability_lookup):
        immutability_lookup.locked.add(("disclosure", "1001"))
        gateway = GovernanceGateway(Validator(**guards))

        outcome = gateway.handle(issuer_request("api/issuer/disclosures/1001", method="PUT"))

        high = outcome.response.body["violations"]["high"]
        assert [v["rule_name"] for v in high] == ["Approved Disclosure Lock"]
        assert set(high[0]) == {"rule_name", "message", "severity"}

    def test_every_request_counts_as_an_action(self, guards, monitor, counter_store, today):
        gateway = GovernanceGateway(Validator(**guards), monitor=monitor)

        gateway.handle(issuer_request("api/issuer/disclosures/1002/edit"))
        gateway.handle(issuer_request("api/issuer/anything"), action_override="edit_platform_context")

        assert counter_store.get(counter_key(today, "total_actions")) == 2

    def test_disabled_gateway_skips_validation(self, monitor, counter_store, failing_validator):
        gateway = GovernanceGateway(failing_validator, settings=Protocol1Settings(enabled=False), monitor=monitor)

        outcome = gateway.handle(issuer_request("api/issuer/anything"))

        assert outcome.allowed is True
        assert outcome.skipped is True
        failing_validator.validate.assert_not_called()
        assert counter_store.values == {}


class TestGatewayFailSafe:
    """Tests for unexpected validation errors"""

    def test_fail_open_in_production(self, failing_validator):
        gateway = GovernanceGateway(failing_validator, settings=Protocol1Settings(environment="production"))

        outcome = gateway.handle(issuer_request("api/issuer/anything"))

        assert outcome.allowed is True
        assert outcome.failed_open is True
        assert outcome.result is None

    @pytest.mark.parametrize("declared", [{"x": 1}, ["issuer"], 7])
    def test_non_string_actor_type_is_blocked_not_failed_open(self, guards, declared):
        """Test a structured actor_type in the request body is a violation, not an internal error"""
        gateway = GovernanceGateway(Validator(**guards), settings=Protocol1Settings(environment="production"))

        outcome = gateway.handle(issuer_request("api/issuer/companies/5/platform-context", actor_type=declared))

        assert outcome.allowed is False
        assert outcome.failed_open is False
        assert outcome.response.status_code == 403
        assert [v.rule_id for v in outcome.result.violations.critical] == ["RULE_3_1_ISSUER_BOUNDARIES"]
        attribution = [v for v in outcome.result.violations.high if v.rule_id == "RULE_4_1_EXPLICIT_ACTOR_TYPE"]
        assert len(attribution) == 1
        assert attribution[0].message == f"Attribution violation: Invalid actor_type '{declared!r}'"

    def test_surface_error_outside_production(self, failing_validator):
        gateway = GovernanceGateway(failing_validator, settings=Protocol1Settings(environment="local"))

        outcome = gateway.handle(issuer_request("api/issuer/anything"))

        assert outcome.allowed is False
        assert outcome.response.status_code == 500
        assert outcome.response.body["message"] == SYSTEM_ERROR_MESSAGE
        assert "boom" in outcome.response.body["error"]

    def test_fail_closed_policy(self, failing_validator):
        settings = Protocol1Settings(environment="production", exceptions={"fail_safe_mode": "block"})
        gateway = GovernanceGateway(failing_validator, settings=settings)

        outcome = gateway.handle(issuer_request("api/issuer/anything"))

        assert outcome.allowed is False
        assert outcome.response.status_code == 500


class TestGatewayDispatch:
    """Tests for the middleware form"""

    def test_dispatch_calls_next_with_result(self, guards):
        gateway = GovernanceGateway(Validator(**guards))
        seen = {}

        def call_next(request, result):
            seen["result"] = result
            return "handled"

        assert gateway.dispatch(issuer_request("api/issuer/disclosures/1002/edit"), call_next) == "handled"
        assert seen["result"].passed is True

    def test_dispatch_returns_rejection(self, guards):
        gateway = GovernanceGateway(Validator(**guards))
        call_next = MagicMock()

        response = gateway.dispatch(
            issuer_request("api/issuer/anything"),
            call_next,
            action_override="edit_platform_context",
        )

        assert isinstance(response, GatewayResponse)
        assert response.status_code == 403
        call_next.assert_not_called()
