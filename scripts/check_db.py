#!/usr/bin/env python3
# scripts/check_db.py - Check database connection and report table contents
import sys
import os

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from erapport.core.config import settings  # noqa: E402
from erapport.core.db import DatabaseManager  # noqa: E402
from erapport.models import Base  # noqa: E402
from erapport.services.status_migration import MigrationState  # noqa: E402


def check_database_connection() -> bool:
    """Check if the configured database answers and list the state tables"""
    print("Database Connection Check")
    print("=" * 40)
    print(f"Database: {settings.safe_database_url()}")
    print("-" * 40)

    manager = DatabaseManager()
    health = manager.health_check()
    if not health["ok"]:
        print(f"❌ Connection failed: {health.get('error')}")
        print("\nTroubleshooting:")
        print("1. Check that PostgreSQL is running")
        print("2. Verify DATABASE_URL (or PGHOST/PGUSER/PGPASSWORD/PGDATABASE)")
        print("3. Apply migrations: alembic upgrade head")
        return False

    print(f"✅ Connection successful ({health['response_time_ms']} ms)")

    try:
        existing = set(inspect(manager.engine).get_table_names())
        missing = [name for name in Base.metadata.tables if name not in existing]
        if missing:
            print(f"📝 Missing tables: {', '.join(missing)} - run: alembic upgrade head")
            return False

        with manager.transaction() as session:
            print("📋 State tables:")
            for name, table in Base.metadata.tables.items():
                count = session.execute(select(func.count()).select_from(table)).scalar_one()
                print(f"  - {name}: {count} row(s)")
            state = MigrationState()
            print(f"Status encoding version: {state.current_version(session)} (current: {state.target_version})")
    except SQLAlchemyError as e:
        print(f"❌ Query failed: {e}")
        return False
    finally:
        manager.close()

    return True


if __name__ == "__main__":
    if check_database_connection():
        sys.exit(0)
    else:
        sys.exit(1)
