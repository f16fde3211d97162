"""add refund id lookup table

Refund notifications used to be resolved by decoding every stored correlation
record. Rows are written on the next save of each record; older records stay
reachable through the scan.

Revision ID: 0002_refund_index
Revises: 0001_reconciliation
Create Date: 2026-10-14
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_refund_index"
down_revision = "0001_reconciliation"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "refund_index",
        sa.Column("refund_id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.order_id"]),
        sa.PrimaryKeyConstraint("refund_id"),
    )
    op.create_index("ix_refund_index_order_id", "refund_index", ["order_id"])


def downgrade() -> None:
    op.drop_index("ix_refund_index_order_id", table_name="refund_index")
    op.drop_table("refund_index")
