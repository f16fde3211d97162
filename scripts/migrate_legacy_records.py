"""Rewrite legacy correlation attributes in the structured format.

Reads are already upgraded transparently; this only saves each legacy record
once so refund/capture lookups no longer depend on the legacy key.
"""

import argparse

from payrecon.common.config import settings
from payrecon.common.db import SessionLocal
from payrecon.common.logging import configure_logging, logger
from payrecon.services.reconciliation.config import ReconciliationConfig
from payrecon.services.reconciliation.correlation import CorrelationStore, SchemaVersion
from payrecon.services.reconciliation.repository import get_attributes_by_key, get_order


def migrate(store: CorrelationStore, dry_run: bool) -> int:
    """Upgrade every order whose record still loads as legacy; returns the count."""

    with store.session_factory() as db:
        order_ids = [order_id for order_id, _ in get_attributes_by_key(db, store.config.legacy_key)]

    upgraded = 0
    for order_id in order_ids:
        with store.session_factory() as db:
            order = get_order(db, order_id)
            if order is None:
                logger.warning("legacy attribute without order order_id=%s", order_id)
                continue
            if store.load(db, order).schema_version is not SchemaVersion.LEGACY:
                continue
        if not dry_run:
            # An empty mutation is enough: `update` saves in the current format.
            store.update(order_id, lambda record: None)
        upgraded += 1
        logger.info("legacy record upgraded order_id=%s dry_run=%s", order_id, dry_run)
    return upgraded


def main() -> None:
    """CLI entrypoint for the one-off legacy upgrade."""

    parser = argparse.ArgumentParser(description="Upgrade legacy correlation attributes.")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    configure_logging()
    store = CorrelationStore(SessionLocal, ReconciliationConfig.from_settings(settings))
    count = migrate(store, args.dry_run)
    print(f"{'Would upgrade' if args.dry_run else 'Upgraded'} {count} legacy record(s)")


if __name__ == "__main__":
    main()
