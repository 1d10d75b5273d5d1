"""
Prometheus metrics for Protocol-1 governance enforcement

These mirror what the Monitor persists (violations, alerts) plus the
validator's own health: outcomes, latency and fail-open events.
"""
from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# VALIDATION METRICS
# =======================

validations_total = Counter(
    name="protocol1_validations_total",
    documentation="Total number of governance validations",
    labelnames=["outcome", "enforcement_mode"],  # outcome: passed, warned, blocked
    registry=REGISTRY,
)

validation_duration_seconds = Histogram(
    name="protocol1_validation_duration_seconds",
    documentation="Time spent evaluating governance rules in seconds",
    labelnames=["enforcement_mode"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
    registry=REGISTRY,
)

violations_total = Counter(
    name="protocol1_violations_total",
    documentation="Total number of governance violations detected",
    labelnames=["severity", "rule_id"],
    registry=REGISTRY,
)

# =======================
# MONITORING METRICS
# =======================

alerts_total = Counter(
    name="protocol1_alerts_total",
    documentation="Total number of governance alerts raised",
    labelnames=["severity", "kind"],  # kind: critical_violation, anomaly
    registry=REGISTRY,
)

monitor_persistence_errors_total = Counter(
    name="protocol1_monitor_persistence_errors_total",
    documentation="Monitor storage failures that were logged and swallowed",
    labelnames=["operation"],
    registry=REGISTRY,
)

# =======================
# GATEWAY METRICS
# =======================

fail_open_total = Counter(
    name="protocol1_fail_open_total",
    documentation="Requests allowed through after an unexpected internal error",
    labelnames=["environment"],
    registry=REGISTRY,
)

gateway_responses_total = Counter(
    name="protocol1_gateway_responses_total",
    documentation="Gateway decisions by HTTP status",
    labelnames=["status"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    histogram.labels(**labels).observe(value)


# =======================
# GOVERNANCE HELPERS
# =======================

def record_validation(outcome: str, enforcement_mode: str, duration_ms: float) -> None:
    """
    Record one validation pass.

    Args:
        outcome: "passed", "warned" or "blocked"
        enforcement_mode: strict, lenient or monitor
        duration_ms: Wall-clock evaluation time in milliseconds
    """
    increment_counter(validations_total, 1, outcome=outcome, enforcement_mode=enforcement_mode)
    observe_histogram(validation_duration_seconds, duration_ms / 1000.0, enforcement_mode=enforcement_mode)


def record_violation(severity: str, rule_id: str) -> None:
    increment_counter(violations_total, 1, severity=severity, rule_id=rule_id)


def record_alert(severity: str, kind: str) -> None:
    increment_counter(alerts_total, 1, severity=severity, kind=kind)
