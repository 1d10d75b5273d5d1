"""
Pytest configuration and fixtures for Protocol-1 tests

Unit tests run against in-memory stores and stub sub-guards; integration
tests run the PostgreSQL stores against a testcontainers database.
"""
import os
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Generator

import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

from protocol1.config import Protocol1Settings
from protocol1.core.models import ActorType, ResourceRefs, ValidationContext
from protocol1.guards import (
    BuyCheck,
    BuyEligibilityGuard,
    CrossPhaseGuard,
    ImmutabilityLookup,
    PlatformCheck,
    PlatformStateGuard,
)
from protocol1.observability.monitor import Monitor
from protocol1.warehouse import DatabaseConnectionPool


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that exercise the full enforcement flow"
    )


# =======================
# IN-MEMORY STORES
# =======================

class InMemoryViolationStore:
    """ViolationLogStore stand-in backed by a list."""

    def __init__(self):
        self.entries = []

    def append(self, entry):
        log_id = len(self.entries) + 1
        self.entries.append(entry.model_copy(update={"log_id": log_id}))
        return log_id

    def count_for_actor_since(self, actor_type, since):
        return sum(1 for e in self.entries if e.actor_type == actor_type and e.created_at >= since)

    def top_violated_rules(self, day, limit=10):
        from protocol1.core.models import RuleViolationCount

        on_day = [e for e in self.entries if e.created_at.date() == day]
        counts = Counter(e.rule_id for e in on_day)
        names = {e.rule_id: e.rule_name for e in on_day}
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
        return [
            RuleViolationCount(rule_id=rule_id, rule_name=names[rule_id], violation_count=count)
            for rule_id, count in ranked
        ]

    def counts_by_actor_type(self, day):
        return dict(Counter(e.actor_type for e in self.entries if e.created_at.date() == day))

    def recent(self, limit=50, actor_type=None, company_id=None):
        entries = [
            e for e in reversed(self.entries)
            if (actor_type is None or e.actor_type == actor_type)
            and (company_id is None or e.company_id == company_id)
        ]
        return entries[:limit]


class InMemoryAlertStore:
    """AlertStore stand-in backed by a list."""

    def __init__(self):
        self.alerts = []

    def insert(self, alert):
        alert_id = len(self.alerts) + 1
        self.alerts.append(alert.model_copy(update={"alert_id": alert_id}))
        return alert_id

    def list_unacknowledged(self, limit=50):
        return [a for a in reversed(self.alerts) if not a.is_acknowledged][:limit]


class InMemoryCounterStore:
    """CounterStore stand-in backed by a dict."""

    def __init__(self):
        self.values: dict[str, int] = {}

    def increment(self, key, amount=1):
        self.values[key] = self.values.get(key, 0) + amount

    def get(self, key):
        return self.values.get(key, 0)


class UnavailableStore:
    """Every store operation fails, like a database that is down."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise psycopg.OperationalError("connection refused")
        return fail


class FixedClock:
    """Deterministic UTC clock for the Monitor."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 1, 16, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# =======================
# STUB SUB-GUARDS
# =======================

class StubPlatformGuard(PlatformStateGuard):
    """Returns a configurable verdict and records every call."""

    def __init__(self):
        self.check = PlatformCheck(allowed=True)
        self.error: Exception | None = None
        self.calls = []

    def can_perform_action(self, company_id, action, actor_id=None):
        self.calls.append((company_id, action, actor_id))
        if self.error is not None:
            raise self.error
        return self.check


class StubBuyGuard(BuyEligibilityGuard):
    def __init__(self):
        self.check = BuyCheck(allowed=True)
        self.error: Exception | None = None
        self.calls = []

    def can_invest(self, company_id, actor_id):
        self.calls.append((company_id, actor_id))
        if self.error is not None:
            raise self.error
        return self.check


class StubCrossPhaseGuard(CrossPhaseGuard):
    def __init__(self):
        self.snapshot_error: Exception | None = None
        self.context_error: Exception | None = None
        self.calls = []

    def assert_snapshot_immutability(self, snapshot_id, kind):
        self.calls.append(("snapshot", snapshot_id, kind))
        if self.snapshot_error is not None:
            raise self.snapshot_error

    def assert_can_mutate_platform_context(self, company_id, source, actor_id=None):
        self.calls.append(("platform_context", company_id, source, actor_id))
        if self.context_error is not None:
            raise self.context_error


class StubImmutabilityLookup(ImmutabilityLookup):
    """Records listed in `locked` as (target_model, target_id) are immutable."""

    def __init__(self):
        self.locked: set[tuple[str, str]] = set()
        self.error: Exception | None = None
        self.calls = []

    def is_immutable(self, target_model, target_id):
        self.calls.append((target_model, target_id))
        if self.error is not None:
            raise self.error
        return (target_model, target_id) in self.locked


# =======================
# UNIT FIXTURES
# =======================

@pytest.fixture
def violation_store() -> InMemoryViolationStore:
    return InMemoryViolationStore()


@pytest.fixture
def alert_store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def counter_store() -> InMemoryCounterStore:
    return InMemoryCounterStore()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> Protocol1Settings:
    return Protocol1Settings()


@pytest.fixture
def monitor(violation_store, alert_store, counter_store, settings, clock) -> Monitor:
    """Monitor wired to in-memory stores and a fixed clock"""
    return Monitor(
        violation_store=violation_store,
        alert_store=alert_store,
        counter_store=counter_store,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def unavailable_store() -> UnavailableStore:
    return UnavailableStore()


@pytest.fixture
def platform_guard() -> StubPlatformGuard:
    return StubPlatformGuard()


@pytest.fixture
def buy_guard() -> StubBuyGuard:
    return StubBuyGuard()


@pytest.fixture
def cross_phase_guard() -> StubCrossPhaseGuard:
    return StubCrossPhaseGuard()


@pytest.fixture
def immutability_lookup() -> StubImmutabilityLookup:
    return StubImmutabilityLookup()


@pytest.fixture
def guards(platform_guard, buy_guard, cross_phase_guard, immutability_lookup) -> dict:
    """All stub sub-guards, keyed by Validator constructor argument"""
    return {
        "platform_guard": platform_guard,
        "buy_guard": buy_guard,
        "cross_phase_guard": cross_phase_guard,
        "immutability_lookup": immutability_lookup,
    }


@pytest.fixture
def make_context():
    """
    Build a ValidationContext with the declared actor_type in the payload

    Usage:
        context = make_context("issuer", "edit_disclosure", company_id="42")
    """
    def _make(
        actor_type: str | ActorType,
        action: str,
        company_id: str | None = None,
        target_model: str | None = None,
        target_id: str | None = None,
        actor_id: str | None = "7",
        payload: dict | None = None,
    ) -> ValidationContext:
        actor_type = ActorType(actor_type)
        data = {"actor_type": actor_type.value}
        data.update(payload or {})
        return ValidationContext(
            actor_type=actor_type,
            action=action,
            resource_refs=ResourceRefs(company_id=company_id, target_model=target_model, target_id=target_id),
            actor_id=actor_id,
            payload=data,
        )

    return _make


@pytest.fixture
def today(clock) -> date:
    return clock.now.date()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the governance schema applied
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_protocol1",
        password="test_password",
        dbname="test_platform",
        driver=None,
    ) as postgres:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path) as f:
            init_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """Open DatabaseConnectionPool against the test container"""
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_platform",
        user="test_protocol1",
        password="test_password",
    )
    pool.open()
    try:
        yield pool
    finally:
        pool.close()


@pytest.fixture
def clean_db(postgres_container) -> Generator[None, None, None]:
    """
    Empty every governance table before the test

    The violation log rejects DELETE, so it is truncated (TRUNCATE does
    not fire row triggers).
    """
    with psycopg.connect(postgres_container.get_connection_url()) as conn:
        with conn.cursor() as cur:
            cur.execute(
                "TRUNCATE TABLE protocol1_violation_log, protocol1_alerts, protocol1_metric_counters, "
                "investment_disclosure_snapshots, platform_context_snapshots, company_disclosures "
                "RESTART IDENTITY"
            )
        conn.commit()
    yield
