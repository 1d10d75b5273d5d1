"""
Alert persistence for the governance monitor.
"""

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from protocol1.core.models import Alert
from protocol1.observability.logger import get_logger
from protocol1.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)


class AlertStore:
    """Insert and list rows of protocol1_alerts."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def insert(self, alert: Alert) -> int:
        """
        Persist an alert.

        Args:
            alert: Alert to insert

        Returns:
            alert_id: Generated alert ID

        Raises:
            psycopg.DatabaseError: If insert fails
        """
        insert_sql = """
            INSERT INTO protocol1_alerts (
                severity, title, message, alert_data, is_acknowledged, created_at
            ) VALUES (
                %(severity)s, %(title)s, %(message)s, %(alert_data)s, %(is_acknowledged)s, %(created_at)s
            ) RETURNING alert_id;
        """

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(
                        insert_sql,
                        {
                            "severity": alert.severity.value,
                            "title": alert.title,
                            "message": alert.message,
                            "alert_data": Jsonb(alert.model_dump(mode="json")["alert_data"]),
                            "is_acknowledged": alert.is_acknowledged,
                            "created_at": alert.created_at,
                        },
                    )
                    row = cur.fetchone()
                conn.commit()

            return row["alert_id"] if row else None

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert alert '{alert.title}': {e}")
            raise

    def list_unacknowledged(self, limit: int = 50) -> list[Alert]:
        """
        Alerts not yet acknowledged by an operator, newest first.

        Args:
            limit: Maximum number of alerts

        Returns:
            List of Alert
        """
        query_sql = """
            SELECT alert_id, severity, title, message, alert_data, is_acknowledged, created_at
            FROM protocol1_alerts
            WHERE is_acknowledged = FALSE
            ORDER BY created_at DESC, alert_id DESC
            LIMIT %(limit)s;
        """

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query_sql, {"limit": limit})
                    rows = cur.fetchall()
            return [Alert(**row) for row in rows]

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to query unacknowledged alerts: {e}")
            raise
