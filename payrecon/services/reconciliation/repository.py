"""Order and generic-attribute queries used by reconciliation.

Helpers take an open session and never commit; transaction boundaries belong
to the caller.
"""

from sqlalchemy import select

from payrecon.services.reconciliation.models import GenericAttribute, Order


ORDER_KEY_GROUP = "Order"


def get_order(db, order_id: str) -> Order | None:
    return db.get(Order, order_id)


def find_order_by_authorization_id(db, system_name: str, authorization_id: str | None) -> Order | None:
    """Order paid with `system_name` whose authorization transaction id matches."""

    if not authorization_id:
        return None
    return db.execute(
        select(Order)
        .where(
            Order.payment_method_system_name == system_name,
            Order.authorization_transaction_id == authorization_id,
        )
        .order_by(Order.created_at)
        .limit(1)
    ).scalar_one_or_none()


def find_order_by_capture_id(db, system_name: str, capture_id: str | None) -> Order | None:
    """Order paid with `system_name` whose capture transaction id matches."""

    if not capture_id:
        return None
    return db.execute(
        select(Order)
        .where(
            Order.payment_method_system_name == system_name,
            Order.capture_transaction_id == capture_id,
        )
        .order_by(Order.created_at)
        .limit(1)
    ).scalar_one_or_none()


def find_order_by_gateway_order_id(db, gateway_order_id: str | None) -> Order | None:
    if not gateway_order_id:
        return None
    return db.execute(
        select(Order).where(Order.gateway_order_id == gateway_order_id).order_by(Order.created_at).limit(1)
    ).scalar_one_or_none()


def save_order(db, order: Order) -> None:
    db.add(order)
    db.flush()


def get_attribute(db, entity_id: str, key: str, store_id: int = 0, key_group: str = ORDER_KEY_GROUP) -> str | None:
    """Value of one attribute, or None when it was never written."""

    return db.execute(
        select(GenericAttribute.value).where(
            GenericAttribute.entity_id == entity_id,
            GenericAttribute.key_group == key_group,
            GenericAttribute.key == key,
            GenericAttribute.store_id == store_id,
        )
    ).scalar_one_or_none()


def set_attribute(
    db,
    entity_id: str,
    key: str,
    value: str,
    store_id: int = 0,
    key_group: str = ORDER_KEY_GROUP,
) -> None:
    """Insert or overwrite one attribute."""

    attribute = db.execute(
        select(GenericAttribute).where(
            GenericAttribute.entity_id == entity_id,
            GenericAttribute.key_group == key_group,
            GenericAttribute.key == key,
            GenericAttribute.store_id == store_id,
        )
    ).scalar_one_or_none()
    if attribute is None:
        db.add(
            GenericAttribute(
                entity_id=entity_id,
                key_group=key_group,
                key=key,
                value=value,
                store_id=store_id,
            )
        )
    else:
        attribute.value = value
    db.flush()


def get_attributes_by_key(db, key: str, key_group: str = ORDER_KEY_GROUP) -> list[tuple[str, str]]:
    """All `(entity_id, value)` pairs stored under `key` across stores, in write order."""

    rows = db.execute(
        select(GenericAttribute.entity_id, GenericAttribute.value)
        .where(GenericAttribute.key == key, GenericAttribute.key_group == key_group)
        .order_by(GenericAttribute.attribute_id)
    ).all()
    return [(row.entity_id, row.value) for row in rows]
