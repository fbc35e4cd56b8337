"""Add composite indexes for the admin analytics and history queries.

Revision ID: 002_user_events_composite_index
Revises: 001_initial
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_user_events_composite_index"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Idempotent: create_all may already have run on a fresh database."""
    conn = op.get_bind()
    # Event log filtered by type and date range
    conn.execute(
        sa.text(
            """
            CREATE INDEX IF NOT EXISTS ix_user_events_type_created
            ON user_events (event_type, created_at);
            """
        )
    )
    # Per-user analysis history, newest first
    conn.execute(
        sa.text(
            """
            CREATE INDEX IF NOT EXISTS ix_analyses_user_created
            ON analyses (user_id, created_at);
            """
        )
    )


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(sa.text("DROP INDEX IF EXISTS ix_analyses_user_created;"))
    conn.execute(sa.text("DROP INDEX IF EXISTS ix_user_events_type_created;"))
