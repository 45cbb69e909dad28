"""
Migration history for the Pumpkin Patch schema.

Every worker process runs the migration runner on startup. The ledger holds a
PostgreSQL advisory lock for as long as it is open, so only one process at a
time reads the history and applies what is missing; the others wait and then
find everything already recorded.
"""

import logging
from typing import Set

import psycopg2

logger = logging.getLogger(__name__)

# Arbitrary, but must stay the same across releases
MIGRATION_LOCK_KEY = 7_245_001


class MigrationLedger:
    """Open with ``with MigrationLedger(url) as ledger:``."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._conn = None

    def __enter__(self) -> "MigrationLedger":
        self._conn = psycopg2.connect(self.database_url)
        self._conn.autocommit = True
        cursor = self._conn.cursor()
        cursor.execute("SELECT pg_advisory_lock(%s)", (MIGRATION_LOCK_KEY,))
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                migration_id TEXT PRIMARY KEY,
                migration_name TEXT NOT NULL,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            self._conn.cursor().execute("SELECT pg_advisory_unlock(%s)", (MIGRATION_LOCK_KEY,))
        finally:
            self._conn.close()
            self._conn = None
        return False

    def applied(self) -> Set[str]:
        """Ids of every migration already recorded."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT migration_id FROM _migrations")
        return {row[0] for row in cursor.fetchall()}

    def record(self, migration_id: str, migration_name: str) -> None:
        cursor = self._conn.cursor()
        cursor.execute("""
            INSERT INTO _migrations (migration_id, migration_name)
            VALUES (%s, %s)
            ON CONFLICT (migration_id) DO NOTHING
        """, (migration_id, migration_name))
        if cursor.rowcount == 0:
            logger.debug(f"[MIGRATION {migration_id}] Already recorded in migration history")
