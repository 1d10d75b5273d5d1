"""
Violation log operations.

The violation log is the append-only audit trail of every governance
violation. This module inserts entries and runs the read queries behind
anomaly detection and daily reporting; it deliberately has no update or
delete operation.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from protocol1.core.models import RuleViolationCount, ViolationLogEntry
from protocol1.observability.logger import get_logger
from protocol1.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)

LOG_COLUMNS = """
    log_id,
    protocol_version,
    rule_id,
    rule_name,
    severity,
    message,
    actor_type,
    action,
    company_id,
    actor_id,
    target_model,
    target_id,
    violation_details,
    context_data,
    was_blocked,
    enforcement_mode,
    created_at
"""


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class ViolationLogStore:
    """Append-only access to protocol1_violation_log."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def append(self, entry: ViolationLogEntry) -> int:
        """
        Insert a single violation log entry.

        Args:
            entry: Entry to persist

        Returns:
            log_id: Generated log ID

        Raises:
            psycopg.DatabaseError: If insert fails
        """
        insert_sql = """
            INSERT INTO protocol1_violation_log (
                protocol_version,
                rule_id,
                rule_name,
                severity,
                message,
                actor_type,
                action,
                company_id,
                actor_id,
                target_model,
                target_id,
                violation_details,
                context_data,
                was_blocked,
                enforcement_mode,
                created_at
            ) VALUES (
                %(protocol_version)s,
                %(rule_id)s,
                %(rule_name)s,
                %(severity)s,
                %(message)s,
                %(actor_type)s,
                %(action)s,
                %(company_id)s,
                %(actor_id)s,
                %(target_model)s,
                %(target_id)s,
                %(violation_details)s,
                %(context_data)s,
                %(was_blocked)s,
                %(enforcement_mode)s,
                %(created_at)s
            ) RETURNING log_id;
        """

        params = entry.model_dump(exclude={"log_id"}, mode="json")
        params["violation_details"] = Jsonb(params["violation_details"])
        params["context_data"] = Jsonb(params["context_data"])
        params["created_at"] = entry.created_at

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(insert_sql, params)
                    row = cur.fetchone()
                conn.commit()

            log_id = row["log_id"] if row else None
            logger.debug(
                f"Recorded violation: log_id={log_id}, rule_id={entry.rule_id}, "
                f"severity={entry.severity.value}"
            )
            return log_id

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert violation log entry: {e}")
            raise

    def count_for_actor_since(self, actor_type: str, since: datetime) -> int:
        """
        Count entries for an actor type created at or after a point in time.

        Args:
            actor_type: Actor type to count
            since: Window start

        Returns:
            Number of matching entries
        """
        query_sql = """
            SELECT COUNT(*) AS violation_count
            FROM protocol1_violation_log
            WHERE actor_type = %(actor_type)s
              AND created_at >= %(since)s;
        """

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query_sql, {"actor_type": actor_type, "since": since})
                    row = cur.fetchone()
            return int(row["violation_count"]) if row else 0

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to count violations for actor {actor_type}: {e}")
            raise

    def top_violated_rules(self, day: date, limit: int = 10) -> list[RuleViolationCount]:
        """
        Most violated rules on a day, by count descending then rule id.

        Args:
            day: Calendar day (UTC)
            limit: Maximum number of rules

        Returns:
            List of RuleViolationCount
        """
        query_sql = """
            SELECT rule_id, MAX(rule_name) AS rule_name, COUNT(*) AS violation_count
            FROM protocol1_violation_log
            WHERE created_at >= %(start)s AND created_at < %(end)s
            GROUP BY rule_id
            ORDER BY violation_count DESC, rule_id ASC
            LIMIT %(limit)s;
        """
        start, end = day_bounds(day)

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query_sql, {"start": start, "end": end, "limit": limit})
                    rows = cur.fetchall()
            return [RuleViolationCount(**row) for row in rows]

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to query top violated rules: {e}")
            raise

    def counts_by_actor_type(self, day: date) -> dict[str, int]:
        """
        Violation counts per actor type on a day.

        Args:
            day: Calendar day (UTC)

        Returns:
            Dictionary mapping actor_type to count
        """
        query_sql = """
            SELECT actor_type, COUNT(*) AS violation_count
            FROM protocol1_violation_log
            WHERE created_at >= %(start)s AND created_at < %(end)s
            GROUP BY actor_type
            ORDER BY actor_type;
        """
        start, end = day_bounds(day)

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query_sql, {"start": start, "end": end})
                    rows = cur.fetchall()
            return {row["actor_type"]: int(row["violation_count"]) for row in rows}

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to query violations by actor type: {e}")
            raise

    def recent(
        self,
        limit: int = 50,
        actor_type: str | None = None,
        company_id: str | None = None,
    ) -> list[ViolationLogEntry]:
        """
        Most recent entries, newest first.

        Args:
            limit: Maximum number of entries
            actor_type: Filter by actor type (optional)
            company_id: Filter by company (optional)

        Returns:
            List of ViolationLogEntry
        """
        conditions = []
        params: dict[str, Any] = {"limit": limit}
        if actor_type:
            conditions.append("actor_type = %(actor_type)s")
            params["actor_type"] = actor_type
        if company_id:
            conditions.append("company_id = %(company_id)s")
            params["company_id"] = company_id

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query_sql = f"""
            SELECT {LOG_COLUMNS}
            FROM protocol1_violation_log
            {where_clause}
            ORDER BY created_at DESC, log_id DESC
            LIMIT %(limit)s;
        """

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query_sql, params)
                    rows = cur.fetchall()
            return [ViolationLogEntry(**row) for row in rows]

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to query recent violations: {e}")
            raise
