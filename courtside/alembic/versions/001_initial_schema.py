"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

Creates all tables from the current models. On PostgreSQL it also adds the
storage-level guarantee that no two PENDING/CONFIRMED bookings of a court
overlap: a GiST exclusion constraint over (court_id, tstzrange(start_at, end_at)).
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from courtside.database.db import Base
    from courtside.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)

    if bind.dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE bookings
            ADD CONSTRAINT ex_bookings_court_no_overlap
            EXCLUDE USING gist (
                court_id WITH =,
                tstzrange(start_at, end_at, '[)') WITH &&
            )
            WHERE (status IN ('PENDING', 'CONFIRMED'))
            """
        )


def downgrade() -> None:
    """Drop all tables."""
    from courtside.database.db import Base
    from courtside.database import models  # noqa: F401

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_court_no_overlap")
    Base.metadata.drop_all(bind=bind, checkfirst=True)
