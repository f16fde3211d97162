"""Startup config log: DSN masking and warnings for silencing switches."""

import logging

from payrecon.common.config import CommonSettings
from payrecon.common.startup import log_startup_config, startup_summary


def test_summary_masks_dsn_password():
    settings = CommonSettings(postgres_dsn="postgresql+psycopg://recon:s3cret@db:5432/recon")

    summary = startup_summary(settings)

    assert "s3cret" not in summary["postgres_dsn"]
    assert summary["postgres_dsn"] == "postgresql+psycopg://recon:***@db:5432/recon"
    assert summary["gateway_system_name"] == settings.gateway_system_name
    assert summary["inbox_claim_timeout_seconds"] == settings.inbox_claim_timeout_seconds


def test_unparseable_dsn_is_hidden():
    assert startup_summary(CommonSettings(postgres_dsn="not a url"))["postgres_dsn"] == "<redacted>"


def test_inactive_payment_method_is_flagged(caplog):
    settings = CommonSettings(postgres_dsn="sqlite://", payment_method_active=False, add_order_notes=False)

    with caplog.at_level(logging.INFO, logger="payrecon"):
        log_startup_config(settings)

    assert "startup_config=" in caplog.text
    assert "payment method Payments.Gateway is not active" in caplog.text
    assert "order notes disabled" in caplog.text
