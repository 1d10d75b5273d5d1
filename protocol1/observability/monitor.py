"""
Protocol-1 violation monitor.

Records every violation in the append-only log, raises alerts for
critical violations and violation bursts, keeps day-bucketed counters
and derives the daily metrics and compliance score from them.

Monitoring must never break enforcement: every storage failure is
wrapped in MonitorPersistenceError, logged and swallowed.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

from protocol1.config import Protocol1Settings
from protocol1.core.errors import MonitorPersistenceError
from protocol1.core.models import (
    Alert,
    ComplianceScore,
    EnforcementMode,
    GovernanceMetrics,
    Severity,
    ValidationContext,
    Violation,
    ViolationLogEntry,
)
from protocol1.core.rules.catalog import PROTOCOL_VERSION
from protocol1.observability.logger import get_logger
from protocol1.observability.metrics import increment_counter, monitor_persistence_errors_total, record_alert
from protocol1.warehouse.counter_store import counter_key

logger = get_logger(__name__)

CRITICAL_ALERT_TITLE = "CRITICAL Protocol-1 Violation Detected"
ANOMALY_ALERT_TITLE = "High Volume of Protocol-1 Violations"
TOP_RULES_LIMIT = 10

# (minimum score, grade), highest first
GRADE_THRESHOLDS = (
    (95.0, "A+"),
    (90.0, "A"),
    (85.0, "B+"),
    (80.0, "B"),
    (75.0, "C+"),
    (70.0, "C"),
    (60.0, "D"),
)


def compliance_grade(score: float) -> str:
    """
    Letter grade for a compliance score.

    Args:
        score: Score between 0 and 100

    Returns:
        A+, A, B+, B, C+, C, D or F
    """
    for minimum, grade in GRADE_THRESHOLDS:
        if score >= minimum:
            return grade
    return "F"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_day(day: date | str | None, now: datetime) -> date:
    if day is None:
        return now.date()
    if isinstance(day, str):
        return date.fromisoformat(day)
    return day


class Monitor:
    """
    Persists violations and reports on them.

    The stores are duck-typed: anything with the ViolationLogStore,
    AlertStore and CounterStore methods works (the unit tests use
    in-memory fakes).
    """

    def __init__(
        self,
        violation_store,
        alert_store,
        counter_store,
        settings: Protocol1Settings | None = None,
        protocol_version: str = PROTOCOL_VERSION,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Initialize the monitor.

        Args:
            violation_store: Append-only violation log
            alert_store: Alert persistence
            counter_store: Day-bucketed counters
            settings: Monitoring and alerting settings (default: all enabled)
            protocol_version: Version written to each log entry
            clock: Returns the current UTC time
        """
        self.violation_store = violation_store
        self.alert_store = alert_store
        self.counter_store = counter_store
        self.settings = settings or Protocol1Settings()
        self.protocol_version = protocol_version
        self.clock = clock

    # =======================
    # RECORDING
    # =======================

    def record_violations(
        self,
        violations: list[Violation],
        context: ValidationContext,
        was_blocked: bool = False,
        enforcement_mode: EnforcementMode | str = EnforcementMode.STRICT,
    ) -> None:
        """
        Record a batch of violations detected for one action.

        Writes one log entry per violation, then checks the alert
        thresholds (so the anomaly count includes this batch), then bumps
        the counters. Never raises.

        Args:
            violations: Violations from one validation pass
            context: Context the violations were detected in
            was_blocked: Whether the action was blocked
            enforcement_mode: Mode in force
        """
        if not violations or not self.settings.monitoring.enabled:
            return

        enforcement_mode = EnforcementMode(enforcement_mode)
        now = self.clock()

        for violation in violations:
            entry = ViolationLogEntry.from_violation(
                violation,
                context,
                protocol_version=self.protocol_version,
                was_blocked=was_blocked,
                enforcement_mode=enforcement_mode,
                created_at=now,
            )
            self._guarded("record violation", self._append_entry, entry)

        if self.settings.alerting.enabled:
            self.check_alert_thresholds(violations, context)

        self._guarded("update metrics", self.update_metrics, violations)

    def check_alert_thresholds(self, violations: list[Violation], context: ValidationContext) -> list[Alert]:
        """
        Raise alerts for critical violations and violation bursts.

        - CRITICAL alert when the batch holds at least one CRITICAL violation
        - HIGH anomaly alert when the actor type's persisted violations in
          the trailing window exceed the threshold

        Each check is guarded on its own, so a failed critical alert never
        skips the anomaly check. Never raises.

        Args:
            violations: Violations from one validation pass
            context: Context the violations were detected in

        Returns:
            Alerts raised
        """
        alerting = self.settings.alerting
        alerts = []

        if alerting.alert_on_critical:
            alerts.append(self._guarded("raise critical alert", self._critical_alert, violations, context))
        if alerting.alert_on_anomaly:
            alerts.append(self._guarded("check anomaly threshold", self._anomaly_alert, context))

        return [alert for alert in alerts if alert is not None]

    def _critical_alert(self, violations: list[Violation], context: ValidationContext) -> Alert | None:
        critical = [v for v in violations if v.severity == Severity.CRITICAL]
        if not critical:
            return None

        return self._raise_alert(
            Alert(
                severity=Severity.CRITICAL,
                title=CRITICAL_ALERT_TITLE,
                message=f"{len(critical)} critical violation(s) detected",
                alert_data={
                    "actor_type": context.actor_type.value,
                    "action": context.action,
                    "company_id": context.company_id,
                    "actor_id": context.actor_id,
                    "violations": [{"rule_id": v.rule_id, **v.to_response()} for v in critical],
                },
                created_at=self.clock(),
            ),
            kind="critical_violation",
        )

    def _anomaly_alert(self, context: ValidationContext) -> Alert | None:
        alerting = self.settings.alerting
        actor_type = context.actor_type.value
        window = alerting.anomaly_window_minutes
        since = self.clock() - timedelta(minutes=window)
        recent = self.violation_store.count_for_actor_since(actor_type, since)

        if recent <= alerting.anomaly_threshold:
            return None

        return self._raise_alert(
            Alert(
                severity=Severity.HIGH,
                title=ANOMALY_ALERT_TITLE,
                message=f"{recent} violations in last {window} minutes from {actor_type}",
                alert_data={
                    "actor_type": actor_type,
                    "violation_count": recent,
                    "window_minutes": window,
                    "threshold": alerting.anomaly_threshold,
                    "anomaly_detected": True,
                },
                created_at=self.clock(),
            ),
            kind="anomaly",
        )

    def update_metrics(self, violations: list[Violation]) -> None:
        """
        Bump today's counters: total, per severity and per rule.

        Args:
            violations: Violations to count
        """
        today = self.clock().date()
        for violation in violations:
            self.counter_store.increment(counter_key(today, "total"))
            self.counter_store.increment(counter_key(today, f"severity:{violation.severity.value}"))
            self.counter_store.increment(counter_key(today, f"rule:{violation.rule_id}"))

    def increment_action_counter(self) -> None:
        """Count one attempted platform action (the compliance score denominator). Never raises."""
        monitoring = self.settings.monitoring
        if not monitoring.enabled or not monitoring.track_action_counter:
            return

        today = self.clock().date()
        self._guarded("increment action counter", self.counter_store.increment, counter_key(today, "total_actions"))

    # =======================
    # REPORTING
    # =======================

    def get_metrics(self, day: date | str | None = None) -> GovernanceMetrics:
        """
        Violation metrics for a day.

        Args:
            day: Calendar day (default: today)

        Returns:
            GovernanceMetrics with totals, severities, top rules and actor types
        """
        day = _as_day(day, self.clock())

        return GovernanceMetrics(
            date=day.isoformat(),
            total_violations=self.counter_store.get(counter_key(day, "total")),
            by_severity={
                severity.value: self.counter_store.get(counter_key(day, f"severity:{severity.value}"))
                for severity in Severity
            },
            top_violated_rules=self.violation_store.top_violated_rules(day, limit=TOP_RULES_LIMIT),
            by_actor_type=self.violation_store.counts_by_actor_type(day),
        )

    def get_compliance_score(self, day: date | str | None = None) -> ComplianceScore:
        """
        Compliance score for a day: 100 minus the violation rate in percent.

        Args:
            day: Calendar day (default: today)

        Returns:
            ComplianceScore (100 / A+ when no actions were recorded)
        """
        day = _as_day(day, self.clock())
        total_actions = self.counter_store.get(counter_key(day, "total_actions"))
        total_violations = self.counter_store.get(counter_key(day, "total"))

        if total_actions == 0:
            raw_score = 100.0
        else:
            raw_score = max(0.0, 100.0 - (total_violations / total_actions * 100.0))

        # Graded before rounding; the rounded value is for display only
        return ComplianceScore(
            score=round(raw_score, 2),
            grade=compliance_grade(raw_score),
            total_actions=total_actions,
            total_violations=total_violations,
            date=day.isoformat(),
        )

    # =======================
    # INTERNALS
    # =======================

    def _append_entry(self, entry: ViolationLogEntry) -> None:
        self.violation_store.append(entry)
        logger.info(
            f"Protocol-1 violation recorded: {entry.rule_id}",
            extra={
                "rule_id": entry.rule_id,
                "severity": entry.severity.value,
                "actor_type": entry.actor_type,
                "action": entry.action,
                "company_id": entry.company_id,
                "was_blocked": entry.was_blocked,
            },
        )

    def _raise_alert(self, alert: Alert, kind: str) -> Alert:
        alert_id = self.alert_store.insert(alert)
        record_alert(alert.severity.value, kind)
        logger.critical(
            f"PROTOCOL-1 ALERT: {alert.title}",
            extra={"alert_id": alert_id, "alert_message": alert.message, **alert.alert_data},
        )
        return alert.model_copy(update={"alert_id": alert_id})

    def _guarded(self, operation: str, call: Callable[..., Any], *args: Any) -> Any:
        try:
            return call(*args)
        except Exception as e:
            error = MonitorPersistenceError(operation, e)
            increment_counter(monitor_persistence_errors_total, 1, operation=operation)
            logger.error(str(error), extra={"operation": operation}, exc_info=True)
            return None
