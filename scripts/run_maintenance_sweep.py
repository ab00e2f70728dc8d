#!/usr/bin/env python3
"""
Run the session/attempt maintenance sweep once.

Writes effective session statuses back to the database and closes attempts
whose test or session time has run out. Intended to be called from cron or
any external scheduler; the engine itself never runs a background loop.

Usage:
    DATABASE_URL="postgresql://..." python scripts/run_maintenance_sweep.py

    # Report what would change without committing
    python scripts/run_maintenance_sweep.py --dry-run

    # Create missing tables first (local SQLite development)
    python scripts/run_maintenance_sweep.py --create-tables

    # One JSON object per log line, for cron output shipped to a log store
    python scripts/run_maintenance_sweep.py --json-logs
"""

import argparse
import json
import logging
import sys

from assessment_engine.core.datetime_utils import utc_now
from assessment_engine.core.db_error_handling import (
    DatabaseOperationError,
    wrap_db_operation,
)
from assessment_engine.core.logging_config import setup_logging
from assessment_engine.models import Base, SessionLocal, engine
from assessment_engine.models.repository import run_maintenance

logger = logging.getLogger("assessment_engine.scripts.maintenance")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the maintenance sweep once")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Roll back instead of committing",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before sweeping",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit structured JSON log lines regardless of ENV",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    setup_logging(json_output=True if args.json_logs else None)

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        with wrap_db_operation(db, "run maintenance sweep"):
            result = run_maintenance(db, utc_now())
            if args.dry_run:
                db.rollback()
                logger.info("Dry run: changes rolled back")
            else:
                db.commit()
    except DatabaseOperationError as e:
        logger.error(e.message)
        return 1
    finally:
        db.close()

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
