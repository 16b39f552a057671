# scripts/setup/init_db.py
"""
Initialize database: creates all tables, the status row, and syncs the
visitor count from today's log.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text
from app.database import SessionLocal, create_tables, engine
from app.config import settings
from app.services.ledger import OccupancyLedger
from app.services.reconciler import reconcile


def main():
    print("🗄️  Occupancy DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  docker-compose up -d db")
        print("  # or: sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    tables = sorted(inspect(engine).get_table_names())
    print(f"✅ Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    ledger = OccupancyLedger(SessionLocal, settings.TIMEZONE,
                             keep_min_visitor_while_open=settings.KEEP_MIN_VISITOR_WHILE_OPEN)
    recovered = reconcile(ledger, settings.DEFAULT_MAX_CAPACITY)
    snapshot = ledger.get_current_status()
    print(f"\n👥 Visitors now: {recovered} / {snapshot.max_capacity} ({snapshot.status})")

    print("\n🎉 Database ready! You can now start the backend:")
    print(f"   uvicorn app.main:app --host {settings.BACKEND_HOST} --port {settings.BACKEND_PORT}")


if __name__ == "__main__":
    main()
