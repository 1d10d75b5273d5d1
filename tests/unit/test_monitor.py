"""
Unit tests for the Protocol-1 violation monitor.
"""

import pytest

from protocol1.config import Protocol1Settings
from protocol1.core.models import EnforcementMode, Severity, Violation
from protocol1.observability.monitor import (
    ANOMALY_ALERT_TITLE,
    CRITICAL_ALERT_TITLE,
    Monitor,
    compliance_grade,
)
from protocol1.warehouse import counter_key


def make_violation(severity=Severity.HIGH, rule_id="RULE_4_2_ADMIN_REASON_REQUIRED", name="Admin Action Reason Required"):
    return Violation(
        rule_id=rule_id,
        rule_name=name,
        severity=severity,
        message=f"{rule_id} violated",
        details={"missing_field": "reason"},
    )


CRITICAL = make_violation(Severity.CRITICAL, "RULE_3_1_ISSUER_BOUNDARIES", "Issuer Action Boundaries")


class TestComplianceGrade:
    """Tests for grade boundaries"""

    @pytest.mark.parametrize("score,grade", [
        (100.0, "A+"),
        (95.0, "A+"),
        (94.99, "A"),
        (90.0, "A"),
        (85.0, "B+"),
        (80.0, "B"),
        (79.99, "C+"),
        (75.0, "C+"),
        (70.0, "C"),
        (60.0, "D"),
        (59.99, "F"),
        (0.0, "F"),
    ])
    def test_grade(self, score, grade):
        assert compliance_grade(score) == grade


class TestRecordViolations:
    """Tests for persisting violations"""

    def test_one_log_entry_per_violation(self, monitor, violation_store, make_context, clock):
        context = make_context("admin_judgment", "suspend_company", company_id="42")

        monitor.record_violations(
            [make_violation(), make_violation(rule_id="RULE_X", name="X")],
            context,
            was_blocked=True,
            enforcement_mode="lenient",
        )

        assert len(violation_store.entries) == 2
        entry = violation_store.entries[0]
        assert entry.rule_id == "RULE_4_2_ADMIN_REASON_REQUIRED"
        assert entry.actor_type == "admin_judgment"
        assert entry.action == "suspend_company"
        assert entry.company_id == "42"
        assert entry.was_blocked is True
        assert entry.enforcement_mode == EnforcementMode.LENIENT
        assert entry.protocol_version == "1.0.0"
        assert entry.created_at == clock.now
        assert entry.violation_details["missing_field"] == "reason"

    def test_counters_updated(self, monitor, counter_store, make_context, today):
        context = make_context("issuer", "edit_platform_context")

        monitor.record_violations([CRITICAL, make_violation()], context)

        assert counter_store.get(counter_key(today, "total")) == 2
        assert counter_store.get(counter_key(today, "severity:CRITICAL")) == 1
        assert counter_store.get(counter_key(today, "severity:HIGH")) == 1
        assert counter_store.get(counter_key(today, "rule:RULE_3_1_ISSUER_BOUNDARIES")) == 1

    def test_empty_batch_is_ignored(self, monitor, violation_store, counter_store, make_context):
        monitor.record_violations([], make_context("issuer", "read"))

        assert violation_store.entries == []
        assert counter_store.values == {}

    def test_monitoring_disabled(self, violation_store, alert_store, counter_store, clock, make_context):
        settings = Protocol1Settings(monitoring={"enabled": False})
        monitor = Monitor(violation_store, alert_store, counter_store, settings=settings, clock=clock)

        monitor.record_violations([CRITICAL], make_context("issuer", "edit_platform_context"))
        monitor.increment_action_counter()

        assert violation_store.entries == []
        assert alert_store.alerts == []
        assert counter_store.values == {}


class TestAlerts:
    """Tests for critical and anomaly alerts"""

    def test_critical_alert(self, monitor, alert_store, make_context):
        """Test a batch with a CRITICAL violation raises one CRITICAL alert"""
        context = make_context("issuer", "edit_platform_context", company_id="42")

        monitor.record_violations([CRITICAL, CRITICAL, make_violation()], context)

        assert len(alert_store.alerts) == 1
        alert = alert_store.alerts[0]
        assert alert.severity == Severity.CRITICAL
        assert alert.title == CRITICAL_ALERT_TITLE
        assert alert.message == "2 critical violation(s) detected"
        assert alert.alert_data["actor_type"] == "issuer"
        assert alert.alert_data["company_id"] == "42"
        assert [v["rule_id"] for v in alert.alert_data["violations"]] == ["RULE_3_1_ISSUER_BOUNDARIES"] * 2

    def test_high_only_batch_raises_no_alert(self, monitor, alert_store, make_context):
        monitor.record_violations([make_violation()], make_context("admin_judgment", "suspend_company"))

        assert alert_store.alerts == []

    def test_anomaly_alert_on_eleventh_violation(self, monitor, alert_store, make_context):
        """Test the anomaly alert fires once the window count exceeds the threshold"""
        context = make_context("admin_judgment", "suspend_company", company_id="42")

        for _ in range(10):
            monitor.record_violations([make_violation()], context)
        assert alert_store.alerts == []

        monitor.record_violations([make_violation()], context)

        assert len(alert_store.alerts) == 1
        alert = alert_store.alerts[0]
        assert alert.severity == Severity.HIGH
        assert alert.title == ANOMALY_ALERT_TITLE
        assert alert.message == "11 violations in last 5 minutes from admin_judgment"
        assert alert.alert_data["anomaly_detected"] is True
        assert alert.alert_data["violation_count"] == 11

    def test_anomaly_window_expires(self, monitor, alert_store, make_context, clock):
        """Test violations older than the window are not counted"""
        context = make_context("admin_judgment", "suspend_company")

        for _ in range(10):
            monitor.record_violations([make_violation()], context)
        clock.advance(minutes=6)
        monitor.record_violations([make_violation()], context)

        assert alert_store.alerts == []

    def test_anomaly_counts_per_actor_type(self, monitor, alert_store, make_context):
        for _ in range(10):
            monitor.record_violations([make_violation()], make_context("admin_judgment", "suspend_company"))
        monitor.record_violations([make_violation()], make_context("investor", "read"))

        assert alert_store.alerts == []

    def test_alerting_disabled(self, violation_store, alert_store, counter_store, clock, make_context):
        settings = Protocol1Settings(alerting={"enabled": False})
        monitor = Monitor(violation_store, alert_store, counter_store, settings=settings, clock=clock)

        monitor.record_violations([CRITICAL], make_context("issuer", "edit_platform_context"))

        assert alert_store.alerts == []
        assert len(violation_store.entries) == 1

    def test_check_alert_thresholds_returns_alerts(self, monitor, make_context):
        alerts = monitor.check_alert_thresholds([CRITICAL], make_context("issuer", "edit_platform_context"))

        assert len(alerts) == 1
        assert alerts[0].alert_id == 1


class TestPersistenceFailures:
    """Tests that monitoring never breaks enforcement"""

    def test_violation_store_down(self, unavailable_store, alert_store, counter_store, clock, make_context, today):
        """Test alerts and counters still work when the log cannot be written"""
        monitor = Monitor(unavailable_store, alert_store, counter_store, clock=clock)

        monitor.record_violations([CRITICAL], make_context("issuer", "edit_platform_context"))

        assert len(alert_store.alerts) == 1
        assert counter_store.get(counter_key(today, "total")) == 1

    def test_every_store_down(self, unavailable_store, clock, make_context):
        monitor = Monitor(unavailable_store, unavailable_store, unavailable_store, clock=clock)

        monitor.record_violations([CRITICAL], make_context("issuer", "edit_platform_context"))
        monitor.increment_action_counter()

    def test_failed_critical_alert_still_checks_anomaly(self, violation_store, alert_store, counter_store, clock, make_context, monkeypatch):
        """Test the anomaly alert is raised even when the critical alert cannot be stored"""
        insert = alert_store.insert

        def insert_without_critical(alert):
            if alert.severity == Severity.CRITICAL:
                raise ConnectionError("alert table unavailable")
            return insert(alert)

        monkeypatch.setattr(alert_store, "insert", insert_without_critical)
        settings = Protocol1Settings(alerting={"anomaly_threshold": 1})
        monitor = Monitor(violation_store, alert_store, counter_store, settings=settings, clock=clock)

        monitor.record_violations([CRITICAL, CRITICAL], make_context("issuer", "edit_platform_context"))

        assert [a.title for a in alert_store.alerts] == [ANOMALY_ALERT_TITLE]
        assert alert_store.alerts[0].alert_data["violation_count"] == 2


class TestReporting:
    """Tests for daily metrics and compliance score"""

    def test_compliance_score(self, monitor, counter_store, today):
        """Test 5 violations in 100 actions scores 95.0 (A+)"""
        counter_store.values[counter_key(today, "total_actions")] = 100
        counter_store.values[counter_key(today, "total")] = 5

        score = monitor.get_compliance_score()

        assert score.score == 95.0
        assert score.grade == "A+"
        assert score.total_actions == 100
        assert score.total_violations == 5
        assert score.date == today.isoformat()

    def test_compliance_score_half_violations(self, monitor, counter_store, today):
        counter_store.values[counter_key(today, "total_actions")] = 100
        counter_store.values[counter_key(today, "total")] = 50

        score = monitor.get_compliance_score()

        assert score.score == 50.0
        assert score.grade == "F"

    def test_grade_uses_unrounded_score(self, monitor, counter_store, today):
        """Test 94.996 displays as 95.0 but grades A"""
        counter_store.values[counter_key(today, "total_actions")] = 25000
        counter_store.values[counter_key(today, "total")] = 1251

        score = monitor.get_compliance_score()

        assert score.score == 95.0
        assert score.grade == "A"

    def test_compliance_score_without_actions(self, monitor):
        score = monitor.get_compliance_score("2026-01-01")

        assert score.score == 100.0
        assert score.grade == "A+"
        assert score.date == "2026-01-01"

    def test_compliance_score_floor(self, monitor, counter_store, today):
        counter_store.values[counter_key(today, "total_actions")] = 2
        counter_store.values[counter_key(today, "total")] = 5

        score = monitor.get_compliance_score(today)

        assert score.score == 0.0
        assert score.grade == "F"

    def test_action_counter(self, monitor, counter_store, today):
        monitor.increment_action_counter()
        monitor.increment_action_counter()

        assert counter_store.get(counter_key(today, "total_actions")) == 2

    def test_action_counter_disabled(self, violation_store, alert_store, counter_store, clock):
        settings = Protocol1Settings(monitoring={"track_action_counter": False})
        monitor = Monitor(violation_store, alert_store, counter_store, settings=settings, clock=clock)

        monitor.increment_action_counter()

        assert counter_store.values == {}

    def test_get_metrics(self, monitor, make_context, today):
        issuer = make_context("issuer", "edit_platform_context")
        admin = make_context("admin_judgment", "suspend_company")
        monitor.record_violations([CRITICAL], issuer)
        monitor.record_violations([make_violation(), make_violation()], admin)

        metrics = monitor.get_metrics()

        assert metrics.date == today.isoformat()
        assert metrics.total_violations == 3
        assert metrics.by_severity == {"CRITICAL": 1, "HIGH": 2, "MEDIUM": 0, "LOW": 0}
        assert [(r.rule_id, r.violation_count) for r in metrics.top_violated_rules] == [
            ("RULE_4_2_ADMIN_REASON_REQUIRED", 2),
            ("RULE_3_1_ISSUER_BOUNDARIES", 1),
        ]
        assert metrics.by_actor_type == {"issuer": 1, "admin_judgment": 2}
