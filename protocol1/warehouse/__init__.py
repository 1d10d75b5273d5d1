"""
PostgreSQL persistence: connection pool, violation log, alerts, metric
counters and the immutability lookup.
"""

from .alert_store import AlertStore
from .connection import DatabaseConnectionPool
from .counter_store import METRICS_KEY_PREFIX, CounterStore, counter_key
from .resource_lookup import WarehouseImmutabilityLookup
from .violation_store import ViolationLogStore

__all__ = [
    "AlertStore",
    "CounterStore",
    "DatabaseConnectionPool",
    "METRICS_KEY_PREFIX",
    "ViolationLogStore",
    "WarehouseImmutabilityLookup",
    "counter_key",
]
