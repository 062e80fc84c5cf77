"""
seed_demo_data.py — Load the demo organizations, users and catalog into Postgres.

This script:
1. Connects to the database named by --database-url (or SUPABASE_DB_URL)
2. Optionally creates the inventory tables (local/sqlite development)
3. Inserts the demo rows parents-first and prints a count per table

Usage:
    python scripts/seed_demo_data.py --database-url sqlite:///desk_guard.db --create-schema
"""

from __future__ import annotations

import argparse
import sys

from app.core.config import settings
from app.core.database import create_schema, make_engine
from app.core.errors import StoreError
from app.core.logging import configure_logging, get_logger
from app.services.store.fixtures import load_demo_data
from app.services.store.sql_store import SqlEntityStore

logger = get_logger(__name__)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Seed the inventory tables with demo data")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: SUPABASE_DB_URL from the environment)",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create the tables before inserting (use for sqlite or a fresh local database)",
    )
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL)

    db_url = args.database_url or settings.SUPABASE_DB_URL
    if not db_url:
        print("[ERROR] No database URL. Pass --database-url or set SUPABASE_DB_URL.")
        return 1

    engine = make_engine(db_url)
    if args.create_schema:
        create_schema(engine)
        print("[OK] Schema created")

    store = SqlEntityStore(engine)
    try:
        counts = load_demo_data(store)
    except StoreError as exc:
        logger.error("Seeding failed: %s", exc)
        print(f"[ERROR] {exc}")
        return 1
    finally:
        store.dispose()

    print("=" * 60)
    for table, count in counts.items():
        print(f"  {table:<20} {count:>4} rows")
    print("=" * 60)
    print(f"[OK] Demo data loaded. Every demo user signs in with password {settings.DEMO_PASSWORD!r}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
