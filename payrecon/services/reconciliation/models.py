"""Reconciliation database models.

Orders and their notes are owned by the shop; this service reads them and
appends audit notes. Gateway identifiers live in `generic_attributes` as a
per-order correlation document, with `refund_index` as a lookup shortcut.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payrecon.common.db import Base


class Order(Base):
    """Shop order as seen by the payment integration."""

    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    store_id: Mapped[int] = mapped_column(Integer, default=0)
    payment_method_system_name: Mapped[str] = mapped_column(String, index=True)
    authorization_transaction_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    capture_transaction_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    gateway_order_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    has_new_payment_notification: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    notes: Mapped[list["OrderNote"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderNote.created_at"
    )


class OrderNote(Base):
    """Timestamped note attached to an order; internal unless flagged otherwise."""

    __tablename__ = "order_notes"

    note_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.order_id"), index=True)
    note: Mapped[str] = mapped_column(Text)
    display_to_customer: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    order: Mapped[Order] = relationship(back_populates="notes")


class GenericAttribute(Base):
    """Key/value attribute attached to any entity, scoped per store."""

    __tablename__ = "generic_attributes"
    __table_args__ = (
        UniqueConstraint("entity_id", "key_group", "key", "store_id", name="uq_generic_attribute"),
    )

    attribute_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(String, index=True)
    key_group: Mapped[str] = mapped_column(String)
    key: Mapped[str] = mapped_column(String, index=True)
    value: Mapped[str] = mapped_column(Text)
    store_id: Mapped[int] = mapped_column(Integer, default=0)


class RefundIndex(Base):
    """Refund id to owning order, maintained whenever a correlation record is saved."""

    __tablename__ = "refund_index"

    refund_id: Mapped[str] = mapped_column(String, primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.order_id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class InboxEvent(Base):
    """Claim rows for gateway notifications: PROCESSING while handled, DONE afterwards."""

    __tablename__ = "inbox_events"
    __table_args__ = (UniqueConstraint("event_id", "consumed_by_service", name="uq_inbox_consumer"),)

    event_id: Mapped[str] = mapped_column(String, primary_key=True)
    consumed_by_service: Mapped[str] = mapped_column(String, primary_key=True)
    status: Mapped[str] = mapped_column(String, default="PROCESSING", index=True)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
