"""
Day-bucketed metric counters.

Counters are keyed strings (protocol1:metrics:{date}:{dimension}) that
only ever grow. Increments are a single upsert, so concurrent writers
never lose an update.
"""

from datetime import date

import psycopg
from psycopg.rows import dict_row

from protocol1.observability.logger import get_logger
from protocol1.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)

METRICS_KEY_PREFIX = "protocol1:metrics"


def counter_key(day: date | str, dimension: str) -> str:
    """
    Build a counter key.

    Args:
        day: Bucket date
        dimension: total, total_actions, severity:{SEVERITY} or rule:{RULE_ID}

    Returns:
        Key such as "protocol1:metrics:2026-01-16:severity:HIGH"
    """
    day_str = day.isoformat() if isinstance(day, date) else day
    return f"{METRICS_KEY_PREFIX}:{day_str}:{dimension}"


class CounterStore:
    """Atomic increments and reads over protocol1_metric_counters."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def increment(self, key: str, amount: int = 1) -> None:
        """
        Add to a counter, creating it at zero if needed.

        Args:
            key: Counter key
            amount: Non-negative increment

        Raises:
            ValueError: If amount is negative
            psycopg.DatabaseError: If the upsert fails
        """
        if amount < 0:
            raise ValueError(f"Counters only increase; got increment {amount} for {key}")

        upsert_sql = """
            INSERT INTO protocol1_metric_counters (counter_key, value, updated_at)
            VALUES (%(key)s, %(amount)s, NOW())
            ON CONFLICT (counter_key)
            DO UPDATE SET value = protocol1_metric_counters.value + EXCLUDED.value,
                          updated_at = NOW();
        """

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(upsert_sql, {"key": key, "amount": amount})
                conn.commit()

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to increment counter {key}: {e}")
            raise

    def get(self, key: str) -> int:
        """Current value of a counter (0 when it does not exist)."""
        query_sql = "SELECT value FROM protocol1_metric_counters WHERE counter_key = %(key)s;"

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query_sql, {"key": key})
                    row = cur.fetchone()
            return int(row["value"]) if row else 0

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to read counter {key}: {e}")
            raise
