#!/usr/bin/env python3
"""
Migration runner for Pumpkin Patch.
Runs all pending migrations in order on startup.
"""

import importlib
import logging
from typing import Optional

from migrations.migration_tracker import MigrationLedger

logger = logging.getLogger(__name__)


MIGRATIONS = [
    {
        "id": "001",
        "name": "initial_schema",
        "module": "migrations.001_initial_schema",
        "function": "run_migration"
    },
]


def run_migration(ledger: MigrationLedger, database_url: str, migration: dict):
    """Apply one migration and record it in the ledger."""
    migration_id = migration["id"]
    logger.info(f"[MIGRATION {migration_id}] Starting: {migration['name']}")

    try:
        module = importlib.import_module(migration["module"])
        migration_func = getattr(module, migration["function"])

        migration_func(database_url)

        ledger.record(migration_id, migration["name"])

        logger.info(f"[MIGRATION {migration_id}] Completed successfully")

    except Exception as e:
        logger.error(f"[MIGRATION {migration_id}] Failed: {e}")
        raise


def run_all_migrations(database_url: Optional[str] = None) -> int:
    """Run all pending migrations in order. Returns how many were applied."""
    if database_url is None:
        from app.core.config import settings
        database_url = settings.database_url

    logger.info("=" * 60)
    logger.info("Starting automatic migration runner")
    logger.info("=" * 60)

    with MigrationLedger(database_url) as ledger:
        applied = ledger.applied()
        pending_migrations = [m for m in MIGRATIONS if m["id"] not in applied]
        for migration in MIGRATIONS:
            if migration["id"] in applied:
                logger.info(f"[SKIP] Migration {migration['id']} ({migration['name']}) already applied")

        if not pending_migrations:
            logger.info("All migrations are up to date!")
            return 0

        logger.info(f"Found {len(pending_migrations)} pending migration(s)")
        logger.info("-" * 60)

        for migration in pending_migrations:
            run_migration(ledger, database_url, migration)
            logger.info("-" * 60)

    logger.info("=" * 60)
    logger.info("All migrations completed successfully!")
    logger.info("=" * 60)
    return len(pending_migrations)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    run_all_migrations()
