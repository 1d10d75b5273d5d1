"""
End-to-end tests for the governance enforcement flow.

Tests the complete flow: request → context inference → validation →
violation log, alerts and counters → allow or reject.
"""

import pytest

from protocol1.config import Protocol1Settings
from protocol1.core.models import EnforcementMode, Severity
from protocol1.core.rules import Validator
from protocol1.guards import BuyBlocker, BuyCheck, PlatformCheck
from protocol1.middleware import GatewayRequest, GatewayUser, GovernanceGateway
from protocol1.observability.monitor import ANOMALY_ALERT_TITLE, CRITICAL_ALERT_TITLE, Monitor
from protocol1.warehouse import counter_key


def build_gateway(settings, monitor, guards):
    validator = Validator.from_settings(settings, monitor=monitor, **guards)
    return GovernanceGateway(validator, settings=settings, monitor=monitor)


def investor_request(path="api/investor/investments", method="POST", **input):
    return GatewayRequest(
        path=path,
        method=method,
        input={"company_id": 42, **input},
        user=GatewayUser(user_id=7, roles={"investor"}),
        ip_address="203.0.113.5",
        full_url=f"https://platform.example/{path}",
    )


def issuer_request(path, method="POST", **input):
    return GatewayRequest(
        path=path,
        method=method,
        input=input,
        route_params={"company_id": 42},
        user=GatewayUser(user_id=11, roles={"company_user"}, company_id=42),
    )


def admin_request(path, **input):
    return GatewayRequest(
        path=path,
        method="POST",
        input=input,
        route_params={"id": 42},
        user=GatewayUser(user_id=3, roles={"admin"}),
    )


@pytest.mark.e2e
class TestEnforcementFlow:
    """Full request-to-audit-trail scenarios"""

    def test_investor_without_kyc_is_blocked(self, settings, monitor, guards, buy_guard, violation_store, alert_store, counter_store, today):
        """Test a critical buy blocker rejects the investment and is fully recorded"""
        buy_guard.check = BuyCheck(
            allowed=False,
            blockers=[BuyBlocker(severity="critical", message="KYC verification not approved", guard_name="kyc_not_approved")],
        )
        gateway = build_gateway(settings, monitor, guards)

        outcome = gateway.handle(investor_request(amount=5000))

        assert outcome.allowed is False
        assert outcome.response.status_code == 403
        assert outcome.response.body["violations"]["critical"][0]["rule_name"] == "Investor Buy Eligibility Guards"
        assert buy_guard.calls == [("42", "7")]

        assert [e.rule_id for e in violation_store.entries] == ["RULE_5_2_INVESTOR_GUARDS"]
        entry = violation_store.entries[0]
        assert entry.was_blocked is True
        assert entry.action == "create_investment"
        assert entry.context_data["ip_address"] == "203.0.113.5"

        assert [a.title for a in alert_store.alerts] == [CRITICAL_ALERT_TITLE]
        assert counter_store.get(counter_key(today, "total_actions")) == 1
        assert counter_store.get(counter_key(today, "severity:CRITICAL")) == 1

    def test_issuer_cannot_touch_platform_context(self, settings, monitor, guards, violation_store):
        gateway = build_gateway(settings, monitor, guards)

        outcome = gateway.handle(issuer_request("api/issuer/platform-context/recalculate"), action_override="edit_platform_context")

        assert outcome.allowed is False
        critical = outcome.result.violations.critical
        assert [v.rule_id for v in critical] == ["RULE_3_1_ISSUER_BOUNDARIES"]
        assert [e.severity for e in violation_store.entries] == [Severity.CRITICAL]

    def test_admin_without_reason_in_monitor_mode(self, monitor, guards, violation_store, alert_store):
        """Test monitor mode lets the action through but records it"""
        settings = Protocol1Settings(enforcement_mode="monitor")
        gateway = build_gateway(settings, monitor, guards)

        outcome = gateway.handle(admin_request("api/admin/companies/42/suspend", admin_user_id="3"))

        assert outcome.allowed is True
        assert [(v.rule_id, v.details["missing_field"]) for v in outcome.result.violations.high] == [
            ("RULE_4_2_ADMIN_REASON_REQUIRED", "reason"),
        ]
        entry = violation_store.entries[0]
        assert entry.was_blocked is False
        assert entry.enforcement_mode == EnforcementMode.MONITOR
        assert entry.company_id == "42"
        assert alert_store.alerts == []

    def test_repeated_violations_raise_anomaly_alert(self, monitor, guards, immutability_lookup, alert_store, clock):
        """Test the eleventh issuer violation inside the window raises one anomaly alert"""
        immutability_lookup.locked.add(("disclosure", "1001"))
        gateway = build_gateway(Protocol1Settings(enforcement_mode="lenient"), monitor, guards)
        request = issuer_request("api/issuer/disclosures/1001", method="PUT", title="Retry")

        for _ in range(10):
            assert gateway.handle(request).allowed is True
            clock.advance(seconds=20)
        assert alert_store.alerts == []

        gateway.handle(request)

        assert [a.title for a in alert_store.alerts] == [ANOMALY_ALERT_TITLE]
        assert alert_store.alerts[0].severity == Severity.HIGH
        assert alert_store.alerts[0].message == "11 violations in last 5 minutes from issuer"

    def test_approved_disclosure_strict_and_lenient(self, monitor, guards, immutability_lookup):
        immutability_lookup.locked.add(("disclosure", "1001"))
        request = issuer_request("api/issuer/disclosures/1001", method="PUT", title="Corrected")

        strict = build_gateway(Protocol1Settings(enforcement_mode="strict"), monitor, guards).handle(request)
        lenient = build_gateway(Protocol1Settings(enforcement_mode="lenient"), monitor, guards).handle(request)

        assert strict.allowed is False
        assert strict.response.body["error"] == "HIGH severity Protocol-1 violation detected"
        assert lenient.allowed is True
        assert [v.rule_id for v in lenient.result.violations.high] == ["RULE_2_3_APPROVED_DISCLOSURES"]

    def test_frozen_company_blocks_issuer_edit(self, settings, monitor, guards, platform_guard):
        platform_guard.check = PlatformCheck(
            allowed=False,
            reason="Company disclosures are frozen by the platform",
            blocking_state="frozen",
        )
        gateway = build_gateway(settings, monitor, guards)

        outcome = gateway.handle(issuer_request("api/issuer/disclosures/1002/edit"))

        assert outcome.allowed is False
        assert [v.rule_id for v in outcome.result.violations.critical] == ["RULE_1_2_FREEZE"]
        assert platform_guard.calls == [("42", "edit_disclosure", "11")]

    def test_compliance_score_after_traffic(self, settings, monitor, guards):
        gateway = build_gateway(settings, monitor, guards)

        for _ in range(3):
            gateway.handle(issuer_request("api/issuer/disclosures/1002/edit"))
        gateway.handle(issuer_request("api/issuer/anything"), action_override="edit_platform_context")

        score = monitor.get_compliance_score()

        assert score.total_actions == 4
        assert score.total_violations == 1
        assert score.score == 75.0
        assert score.grade == "C+"

    def test_monitor_outage_does_not_change_decision(self, settings, guards, unavailable_store, clock):
        monitor = Monitor(unavailable_store, unavailable_store, unavailable_store, settings=settings, clock=clock)
        gateway = build_gateway(settings, monitor, guards)

        outcome = gateway.handle(issuer_request("api/issuer/anything"), action_override="edit_platform_context")

        assert outcome.allowed is False
        assert outcome.response.status_code == 403
