"""
Database initialization script for the Patient Flow Engine.
"""
import sys
import logging
import traceback
from pathlib import Path

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database():
    """Create the queue tables and verify the connection."""
    print("\n🗄️  Initializing Patient Flow Database...")
    print("="*60)

    try:
        from patientflow.core.config import Config
        from patientflow.db.connection import init_db, get_db
        from patientflow.db.models import QueueEntryRow

        db_url = Config.DATABASE_URL
        print(f"📍 Database URL: {db_url}")

        init_db(db_url)
        print("✅ Database schema created successfully!")

        db = get_db()
        try:
            count = db.query(QueueEntryRow).count()
            print(f"✅ Database connection verified! ({count} queue rows)")
        finally:
            db.close()

        if db_url.startswith("sqlite"):
            db_path = Path(db_url.replace("sqlite:///", "")).resolve()
            print(f"\n📊 SQLite Database: {db_path}")
            if db_path.exists():
                print(f"   Size: {db_path.stat().st_size:,} bytes")

        print("\n✅ Database ready!")
        print("="*60)
        return True

    except Exception as e:
        print("\n❌ Database initialization failed!")
        print(f"Error: {e}")
        traceback.print_exc()
        return False


if __name__ == "__main__":
    success = setup_database()
    sys.exit(0 if success else 1)
