"""Per-order correlation record and its persistence.

The record maps one order to every identifier the gateway uses for it. It is
stored as a JSON document in a generic attribute; orders written before the
structured format only carry the gateway order id under a separate key and
are upgraded the next time their record is saved.
"""

import threading
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ValidationError

from payrecon.common.logging import logger
from payrecon.services.reconciliation.config import ReconciliationConfig
from payrecon.services.reconciliation.models import Order, RefundIndex
from payrecon.services.reconciliation.repository import (
    get_attribute,
    get_attributes_by_key,
    get_order,
    set_attribute,
)


class ReconciliationError(Exception):
    """Base class for reconciliation failures that must reach the caller."""


class CorruptRecordError(ReconciliationError):
    """A stored correlation document could not be decoded."""

    def __init__(self, order_id: str, detail: str) -> None:
        super().__init__(f"corrupt correlation record for order {order_id}: {detail}")
        self.order_id = order_id


class OrderNotFoundError(ReconciliationError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"order {order_id} does not exist")
        self.order_id = order_id


class SchemaVersion(str, Enum):
    LEGACY = "legacy"
    CURRENT = "current"


@dataclass
class CorrelationRecord:
    """Gateway identifiers known for one order."""

    gateway_order_id: str | None = None
    authorization_id: str | None = None
    capture_id: str | None = None
    refund_ids: set[str] = field(default_factory=set)
    schema_version: SchemaVersion = SchemaVersion.CURRENT

    def set_gateway_order_id(self, gateway_order_id: str) -> None:
        """Assign the gateway order id; it never changes once set."""

        if self.gateway_order_id and self.gateway_order_id != gateway_order_id:
            raise ValueError(
                f"gateway order id already set to {self.gateway_order_id}, refusing {gateway_order_id}"
            )
        self.gateway_order_id = gateway_order_id

    def add_refund_id(self, refund_id: str) -> None:
        self.refund_ids.add(refund_id)

    def merge(self, other: "CorrelationRecord") -> None:
        """Fold `other` into this record without dropping anything already known."""

        if other.gateway_order_id:
            self.set_gateway_order_id(other.gateway_order_id)
        self.authorization_id = other.authorization_id or self.authorization_id
        self.capture_id = other.capture_id or self.capture_id
        self.refund_ids |= other.refund_ids

    def is_empty(self) -> bool:
        return not (self.gateway_order_id or self.authorization_id or self.capture_id or self.refund_ids)


class CorrelationDocument(BaseModel):
    """Stored JSON shape of a correlation record."""

    version: Literal[2] = 2
    gateway_order_id: str | None = None
    authorization_id: str | None = None
    capture_id: str | None = None
    refund_ids: list[str] = []

    @classmethod
    def from_record(cls, record: CorrelationRecord) -> "CorrelationDocument":
        return cls(
            gateway_order_id=record.gateway_order_id,
            authorization_id=record.authorization_id,
            capture_id=record.capture_id,
            refund_ids=sorted(record.refund_ids),
        )

    def to_record(self) -> CorrelationRecord:
        return CorrelationRecord(
            gateway_order_id=self.gateway_order_id,
            authorization_id=self.authorization_id,
            capture_id=self.capture_id,
            refund_ids=set(self.refund_ids),
            schema_version=SchemaVersion.CURRENT,
        )


def encode_record(record: CorrelationRecord) -> str:
    return CorrelationDocument.from_record(record).model_dump_json()


def decode_record(order_id: str, serialized: str) -> CorrelationRecord:
    """Decode a stored document, raising `CorruptRecordError` on any malformed input."""

    try:
        return CorrelationDocument.model_validate_json(serialized).to_record()
    except ValidationError as exc:
        raise CorruptRecordError(order_id, str(exc)) from exc


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class CorrelationStore:
    """Reads and writes correlation records through generic attributes.

    `load` and `save` run inside the caller's session and do not serialize
    concurrent writers: two load/save cycles on the same order race and the
    last save wins. `update` wraps the cycle in a per-order lock and its own
    transaction.
    """

    def __init__(self, session_factory, config: ReconciliationConfig) -> None:
        self.session_factory = session_factory
        self.config = config
        self._locks: dict[str, _LockEntry] = {}
        self._locks_guard = threading.Lock()

    def load(self, db, order: Order) -> CorrelationRecord:
        serialized = get_attribute(db, order.order_id, self.config.record_key, order.store_id)
        if serialized:
            return decode_record(order.order_id, serialized)

        legacy_id = get_attribute(db, order.order_id, self.config.legacy_key, order.store_id)
        if legacy_id:
            return CorrelationRecord(gateway_order_id=legacy_id, schema_version=SchemaVersion.LEGACY)
        return CorrelationRecord()

    def save(self, db, order: Order, record: CorrelationRecord) -> None:
        """Persist `record` and mirror its identifiers onto the order row."""

        set_attribute(db, order.order_id, self.config.record_key, encode_record(record), order.store_id)

        if record.gateway_order_id and not order.gateway_order_id:
            order.gateway_order_id = record.gateway_order_id
        if record.authorization_id:
            order.authorization_transaction_id = record.authorization_id
        if record.capture_id:
            order.capture_transaction_id = record.capture_id

        for refund_id in record.refund_ids:
            indexed = db.get(RefundIndex, refund_id)
            if indexed is None:
                db.add(RefundIndex(refund_id=refund_id, order_id=order.order_id))
            elif indexed.order_id != order.order_id:
                logger.warning(
                    "refund id already indexed refund_id=%s indexed_order=%s order=%s",
                    refund_id,
                    indexed.order_id,
                    order.order_id,
                )
        db.flush()

    @contextmanager
    def _order_lock(self, order_id: str):
        """Hold the per-order lock; the entry is dropped once no thread holds or waits on it."""

        with self._locks_guard:
            entry = self._locks.get(order_id)
            if entry is None:
                entry = self._locks[order_id] = _LockEntry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[order_id]

    def update(self, order_id: str, mutate: Callable[[CorrelationRecord], None]) -> CorrelationRecord:
        """Load, mutate and save one record while holding the order's lock."""

        with self._order_lock(order_id):
            with self.session_factory() as db:
                order = db.get(Order, order_id, with_for_update=True)
                if order is None:
                    raise OrderNotFoundError(order_id)
                record = self.load(db, order)
                mutate(record)
                self.save(db, order, record)
                db.commit()
        record.schema_version = SchemaVersion.CURRENT
        return record

    def find_order_id_by_refund_id(self, db, refund_id: str | None) -> str | None:
        """Owning order of a refund id: index first, then a scan of every stored record."""

        if not refund_id:
            return None
        indexed = db.get(RefundIndex, refund_id)
        if indexed is not None:
            return indexed.order_id

        # Records saved before the index existed are only reachable by scanning.
        for order_id, serialized in get_attributes_by_key(db, self.config.record_key):
            if refund_id in decode_record(order_id, serialized).refund_ids:
                return order_id
        return None

    def find_order_by_refund_id(self, db, refund_id: str | None) -> Order | None:
        order_id = self.find_order_id_by_refund_id(db, refund_id)
        if order_id is None:
            return None
        return get_order(db, order_id)

    def record_gateway_order_id(self, order_id: str, gateway_order_id: str) -> CorrelationRecord:
        return self.update(order_id, lambda record: record.set_gateway_order_id(gateway_order_id))

    def record_authorization(self, order_id: str, authorization_id: str) -> CorrelationRecord:
        def mutate(record: CorrelationRecord) -> None:
            record.authorization_id = authorization_id

        return self.update(order_id, mutate)

    def record_capture(self, order_id: str, capture_id: str) -> CorrelationRecord:
        def mutate(record: CorrelationRecord) -> None:
            record.capture_id = capture_id

        return self.update(order_id, mutate)

    def record_refund(self, order_id: str, refund_id: str) -> CorrelationRecord:
        return self.update(order_id, lambda record: record.add_refund_id(refund_id))
