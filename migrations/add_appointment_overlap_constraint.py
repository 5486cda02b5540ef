"""
Add a storage-level no-overlap constraint on appointments (PostgreSQL only)

The application checks for conflicts before writing, but two sessions can
still race between the check and the insert. This exclusion constraint makes
the database reject any second non-cancelled appointment whose
[start_time, end_time) range intersects an existing one.

Run with: python migrations/add_appointment_overlap_constraint.py [downgrade]
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text

from cabinet.database import engine
from cabinet.domain.scheduling.repository import OVERLAP_CONSTRAINT


def upgrade():
    """Create the exclusion constraint"""
    if engine.dialect.name != "postgresql":
        print(f"ℹ️  {engine.dialect.name} has no exclusion constraints, skipping")
        return

    with engine.connect() as conn:
        result = conn.execute(
            text("SELECT 1 FROM pg_constraint WHERE conname = :name"),
            {"name": OVERLAP_CONSTRAINT},
        )
        if result.first():
            print(f"ℹ️  {OVERLAP_CONSTRAINT} already exists")
            return

        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        conn.execute(
            text(
                f"""
                ALTER TABLE appointments
                ADD CONSTRAINT {OVERLAP_CONSTRAINT}
                EXCLUDE USING gist (tsrange(start_time, end_time, '[)') WITH &&)
                WHERE (status <> 'CANCELLED')
                """
            )
        )
        conn.commit()
        print(f"✅ Added {OVERLAP_CONSTRAINT}")


def downgrade():
    """Drop the exclusion constraint"""
    if engine.dialect.name != "postgresql":
        return

    with engine.connect() as conn:
        conn.execute(text(f"ALTER TABLE appointments DROP CONSTRAINT IF EXISTS {OVERLAP_CONSTRAINT}"))
        conn.commit()
        print(f"✅ Dropped {OVERLAP_CONSTRAINT}")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "downgrade":
        downgrade()
    else:
        upgrade()
