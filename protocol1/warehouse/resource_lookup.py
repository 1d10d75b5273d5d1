"""
Postgres-backed immutability lookup.

Lock state per target model:
- investment_snapshot: investment_disclosure_snapshots.is_immutable
- platform_context_snapshot: platform_context_snapshots.is_locked
- disclosure: company_disclosures.status = 'approved'
- acknowledgement: always immutable
"""

import psycopg
from psycopg.rows import dict_row

from protocol1.guards import ImmutabilityLookup
from protocol1.observability.logger import get_logger
from protocol1.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)

LOCK_QUERIES = {
    "investment_snapshot": "SELECT is_immutable AS locked FROM investment_disclosure_snapshots WHERE id = %(id)s;",
    "platform_context_snapshot": "SELECT is_locked AS locked FROM platform_context_snapshots WHERE id = %(id)s;",
    "disclosure": "SELECT status = 'approved' AS locked FROM company_disclosures WHERE id = %(id)s;",
}


class WarehouseImmutabilityLookup(ImmutabilityLookup):
    """Reads lock flags from the platform's snapshot and disclosure tables."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def is_immutable(self, target_model: str, target_id: str | None) -> bool:
        if target_model == "acknowledgement":
            return True

        query_sql = LOCK_QUERIES.get(target_model)
        if query_sql is None or target_id is None:
            return False

        try:
            record_id = int(target_id)
        except ValueError:
            logger.debug(f"Non-numeric {target_model} id '{target_id}'; treating as mutable")
            return False

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(query_sql, {"id": record_id})
                    row = cur.fetchone()

        except psycopg.DatabaseError as e:
            logger.error(f"Failed to look up lock state of {target_model} {target_id}: {e}")
            raise

        # A record that does not exist cannot be mutated, so it is not locked either
        return bool(row and row["locked"])
