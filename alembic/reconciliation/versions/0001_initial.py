"""initial reconciliation schema

Revision ID: 0001_reconciliation
Revises:
Create Date: 2026-10-12
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_reconciliation"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_method_system_name", sa.String(), nullable=False),
        sa.Column("authorization_transaction_id", sa.String(), nullable=True),
        sa.Column("capture_transaction_id", sa.String(), nullable=True),
        sa.Column("gateway_order_id", sa.String(), nullable=True),
        sa.Column("has_new_payment_notification", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("order_id"),
    )
    op.create_index("ix_orders_payment_method_system_name", "orders", ["payment_method_system_name"])
    op.create_index("ix_orders_authorization_transaction_id", "orders", ["authorization_transaction_id"])
    op.create_index("ix_orders_capture_transaction_id", "orders", ["capture_transaction_id"])
    op.create_index("ix_orders_gateway_order_id", "orders", ["gateway_order_id"])

    op.create_table(
        "order_notes",
        sa.Column("note_id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("display_to_customer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.order_id"]),
        sa.PrimaryKeyConstraint("note_id"),
    )
    op.create_index("ix_order_notes_order_id", "order_notes", ["order_id"])

    op.create_table(
        "generic_attributes",
        sa.Column("attribute_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("key_group", sa.String(), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("attribute_id"),
        sa.UniqueConstraint("entity_id", "key_group", "key", "store_id", name="uq_generic_attribute"),
    )
    op.create_index("ix_generic_attributes_entity_id", "generic_attributes", ["entity_id"])
    op.create_index("ix_generic_attributes_key", "generic_attributes", ["key"])

    op.create_table(
        "inbox_events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("consumed_by_service", sa.String(), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("event_id", "consumed_by_service"),
        sa.UniqueConstraint("event_id", "consumed_by_service", name="uq_inbox_consumer"),
    )


def downgrade() -> None:
    op.drop_table("inbox_events")
    op.drop_index("ix_generic_attributes_key", table_name="generic_attributes")
    op.drop_index("ix_generic_attributes_entity_id", table_name="generic_attributes")
    op.drop_table("generic_attributes")
    op.drop_index("ix_order_notes_order_id", table_name="order_notes")
    op.drop_table("order_notes")
    op.drop_index("ix_orders_gateway_order_id", table_name="orders")
    op.drop_index("ix_orders_capture_transaction_id", table_name="orders")
    op.drop_index("ix_orders_authorization_transaction_id", table_name="orders")
    op.drop_index("ix_orders_payment_method_system_name", table_name="orders")
    op.drop_table("orders")
