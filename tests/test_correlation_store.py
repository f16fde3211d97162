"""Correlation record persistence: legacy upgrade, corruption, refund lookup, locking."""

import threading
import time

import pytest

from payrecon.services.reconciliation.correlation import (
    CorrelationRecord,
    CorruptRecordError,
    OrderNotFoundError,
    SchemaVersion,
)
from payrecon.services.reconciliation.models import Order, RefundIndex
from payrecon.services.reconciliation.repository import get_attribute, set_attribute


def test_missing_record_loads_empty(store, make_order, session_factory):
    order = make_order()

    with session_factory() as db:
        record = store.load(db, db.get(Order, order.order_id))

    assert record == CorrelationRecord()
    assert record.schema_version is SchemaVersion.CURRENT
    assert record.is_empty()


def test_legacy_record_is_upgraded_on_save(store, make_order, session_factory, config):
    """Orders from before the structured format resolve and upgrade without a migration."""

    order = make_order()
    with session_factory() as db:
        set_attribute(db, order.order_id, config.legacy_key, "G-LEGACY-1")
        db.commit()

    with session_factory() as db:
        legacy = store.load(db, db.get(Order, order.order_id))
    assert legacy.schema_version is SchemaVersion.LEGACY
    assert legacy.gateway_order_id == "G-LEGACY-1"
    assert legacy.authorization_id is None
    assert legacy.capture_id is None
    assert legacy.refund_ids == set()

    with session_factory() as db:
        managed = db.get(Order, order.order_id)
        store.save(db, managed, legacy)
        db.commit()

    with session_factory() as db:
        managed = db.get(Order, order.order_id)
        assert get_attribute(db, order.order_id, config.record_key) is not None
        reloaded = store.load(db, managed)
        assert managed.gateway_order_id == "G-LEGACY-1"

    assert reloaded.schema_version is SchemaVersion.CURRENT
    assert reloaded.gateway_order_id == "G-LEGACY-1"
    assert reloaded.refund_ids == set()


def test_save_twice_reloads_equal_record(store, make_order, session_factory):
    order = make_order()
    record = CorrelationRecord(
        gateway_order_id="G-1",
        authorization_id="A-1",
        capture_id="C-1",
        refund_ids={"R-2", "R-1"},
    )

    loaded = []
    for _ in range(2):
        with session_factory() as db:
            managed = db.get(Order, order.order_id)
            store.save(db, managed, record)
            db.commit()
        with session_factory() as db:
            loaded.append(store.load(db, db.get(Order, order.order_id)))

    assert loaded[0] == record
    assert loaded[1] == record


def test_save_mirrors_identifiers_onto_order(store, make_order, session_factory):
    order = make_order()

    with session_factory() as db:
        managed = db.get(Order, order.order_id)
        store.save(db, managed, CorrelationRecord(gateway_order_id="G-9", authorization_id="A-9", capture_id="C-9"))
        db.commit()

    with session_factory() as db:
        managed = db.get(Order, order.order_id)
        assert managed.gateway_order_id == "G-9"
        assert managed.authorization_transaction_id == "A-9"
        assert managed.capture_transaction_id == "C-9"


@pytest.mark.parametrize("stored", ["<OrderAttribute/>", '{"version": 1}', '{"refund_ids": "R-1"}'])
def test_corrupt_record_raises(store, make_order, session_factory, config, stored):
    order = make_order()
    with session_factory() as db:
        set_attribute(db, order.order_id, config.record_key, stored)
        db.commit()

    with session_factory() as db:
        with pytest.raises(CorruptRecordError) as excinfo:
            store.load(db, db.get(Order, order.order_id))
    assert excinfo.value.order_id == order.order_id


def test_records_are_scoped_per_store(store, make_order, session_factory):
    first = make_order(store_id=1)
    second = make_order(store_id=2)

    with session_factory() as db:
        store.save(db, db.get(Order, first.order_id), CorrelationRecord(gateway_order_id="G-STORE-1"))
        db.commit()

    with session_factory() as db:
        assert store.load(db, db.get(Order, second.order_id)).is_empty()
        assert store.load(db, db.get(Order, first.order_id)).gateway_order_id == "G-STORE-1"


def test_gateway_order_id_is_immutable():
    record = CorrelationRecord(gateway_order_id="G-1")

    record.set_gateway_order_id("G-1")
    with pytest.raises(ValueError):
        record.set_gateway_order_id("G-2")
    assert record.gateway_order_id == "G-1"


def test_merge_never_drops_identifiers():
    record = CorrelationRecord(gateway_order_id="G-1", capture_id="C-1", refund_ids={"R-1"})

    record.merge(CorrelationRecord(authorization_id="A-1", refund_ids={"R-2"}))

    assert record == CorrelationRecord(
        gateway_order_id="G-1",
        authorization_id="A-1",
        capture_id="C-1",
        refund_ids={"R-1", "R-2"},
    )


def test_refund_lookup_uses_index(store, make_order, session_factory):
    order = make_order()
    store.record_refund(order.order_id, "R-IDX")

    with session_factory() as db:
        assert db.get(RefundIndex, "R-IDX").order_id == order.order_id
        assert store.find_order_id_by_refund_id(db, "R-IDX") == order.order_id
        assert store.find_order_id_by_refund_id(db, "R-UNKNOWN") is None
        assert store.find_order_id_by_refund_id(db, None) is None


def test_refund_lookup_scans_records_without_index_rows(store, make_order, session_factory, config):
    """Records written before the index existed are still found."""

    first = make_order()
    second = make_order()
    with session_factory() as db:
        set_attribute(db, first.order_id, config.record_key, '{"version": 2, "refund_ids": ["R-1"]}')
        set_attribute(db, second.order_id, config.record_key, '{"version": 2, "refund_ids": ["R-2"]}')
        db.commit()

    with session_factory() as db:
        assert db.get(RefundIndex, "R-2") is None
        assert store.find_order_id_by_refund_id(db, "R-2") == second.order_id
        assert store.find_order_id_by_refund_id(db, "R-1") == first.order_id


def test_refund_scan_raises_on_corrupt_record(store, make_order, session_factory, config):
    order = make_order()
    with session_factory() as db:
        set_attribute(db, order.order_id, config.record_key, "not json")
        db.commit()

    with session_factory() as db:
        with pytest.raises(CorruptRecordError):
            store.find_order_id_by_refund_id(db, "R-1")


def test_plain_load_save_keeps_last_writer(store, make_order, session_factory):
    """Unlocked load/save cycles race: the second save drops the first one's refund id."""

    order = make_order()
    with session_factory() as db:
        first = store.load(db, db.get(Order, order.order_id))
    with session_factory() as db:
        second = store.load(db, db.get(Order, order.order_id))

    first.add_refund_id("R-1")
    second.add_refund_id("R-2")
    for record in (first, second):
        with session_factory() as db:
            store.save(db, db.get(Order, order.order_id), record)
            db.commit()

    with session_factory() as db:
        assert store.load(db, db.get(Order, order.order_id)).refund_ids == {"R-2"}


def test_update_serializes_writers_per_order(store, make_order, session_factory):
    """Locked updates keep every concurrently added refund id (differs from plain load/save)."""

    order = make_order()
    refund_ids = {f"R-{n}" for n in range(8)}
    threads = [threading.Thread(target=store.record_refund, args=(order.order_id, rid)) for rid in refund_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    with session_factory() as db:
        assert store.load(db, db.get(Order, order.order_id)).refund_ids == refund_ids


def test_update_upgrades_legacy_record(store, make_order, session_factory, config):
    order = make_order()
    with session_factory() as db:
        set_attribute(db, order.order_id, config.legacy_key, "G-OLD")
        db.commit()

    record = store.record_capture(order.order_id, "C-NEW")

    assert record.schema_version is SchemaVersion.CURRENT
    assert record.gateway_order_id == "G-OLD"
    assert record.capture_id == "C-NEW"


def test_update_unknown_order_raises(store):
    with pytest.raises(OrderNotFoundError):
        store.record_authorization("missing-order", "A-1")


def test_order_locks_are_released_after_update(store, make_order):
    orders = [make_order() for _ in range(50)]

    for n, order in enumerate(orders):
        store.record_capture(order.order_id, f"C-{n}")

    assert store._locks == {}


def test_order_lock_is_released_when_update_fails(store):
    with pytest.raises(OrderNotFoundError):
        store.record_capture("missing-order", "C-1")

    assert store._locks == {}


def test_order_lock_entry_lives_while_threads_wait(store, make_order, session_factory):
    order = make_order()
    entered = threading.Event()
    release = threading.Event()

    def slow_mutate(record):
        entered.set()
        release.wait(timeout=5)
        record.capture_id = "C-SLOW"

    holder = threading.Thread(target=store.update, args=(order.order_id, slow_mutate))
    holder.start()
    entered.wait(timeout=5)
    waiter = threading.Thread(target=store.record_refund, args=(order.order_id, "R-WAIT"))
    waiter.start()

    while True:
        with store._locks_guard:
            if store._locks[order.order_id].users == 2:
                break
        time.sleep(0.01)
    release.set()
    holder.join()
    waiter.join()

    assert store._locks == {}
    with session_factory() as db:
        record = store.load(db, db.get(Order, order.order_id))
    assert record.capture_id == "C-SLOW"
    assert record.refund_ids == {"R-WAIT"}
