"""claim inbox rows before handling notifications

Existing rows were written after handling finished, so they become DONE.

Revision ID: 0003_inbox_claims
Revises: 0002_refund_index
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_inbox_claims"
down_revision = "0002_refund_index"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("inbox_events", sa.Column("status", sa.String(), nullable=False, server_default="DONE"))
    op.add_column(
        "inbox_events",
        sa.Column("claimed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.alter_column("inbox_events", "consumed_at", nullable=True, server_default=None)
    op.create_index("ix_inbox_events_status", "inbox_events", ["status"])


def downgrade() -> None:
    op.drop_index("ix_inbox_events_status", table_name="inbox_events")
    op.execute("DELETE FROM inbox_events WHERE status = 'PROCESSING'")
    op.alter_column("inbox_events", "consumed_at", nullable=False, server_default=sa.func.now())
    op.drop_column("inbox_events", "claimed_at")
    op.drop_column("inbox_events", "status")
