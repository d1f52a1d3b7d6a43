#!/usr/bin/env python3
# backend/init_db.py
"""
Database initialization script.

Creates users, invest_assets, invest_transactions and
invest_asset_snapshots (with the unique (asset_id, month, year) key the
snapshot upsert relies on).

This script can be run from any directory:
    python backend/init_db.py
    cd backend && python init_db.py
"""
import sys
from pathlib import Path

# Add the backend directory to Python path so 'invest_snapshots' is importable
backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from invest_snapshots.database import check_database_health, engine
from invest_snapshots.models import Base


def init_db() -> None:
    """Create all database tables defined in models."""
    health = check_database_health()
    if health["status"] != "healthy":
        print(f"Database is not reachable: {health['error']}")
        sys.exit(1)

    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print(f"Tables created successfully on {engine.dialect.name}!")


if __name__ == "__main__":
    init_db()
