"""Startup log of the effective reconciliation settings."""

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from payrecon.common.config import CommonSettings
from payrecon.common.logging import logger


def _safe_dsn(dsn: str) -> str:
    """Database URL with the password masked; unparseable values are hidden entirely."""

    try:
        return make_url(dsn).render_as_string(hide_password=True)
    except ArgumentError:
        return "<redacted>"


def startup_summary(settings: CommonSettings) -> dict[str, object]:
    summary: dict[str, object] = settings.model_dump(exclude={"postgres_dsn"})
    summary["postgres_dsn"] = _safe_dsn(settings.postgres_dsn)
    return summary


def log_startup_config(settings: CommonSettings) -> None:
    """Log settings once at boot and flag the switches that silence notifications."""

    logger.info("startup_config=%s", startup_summary(settings))
    if not settings.payment_method_active:
        logger.warning(
            "payment method %s is not active; notifications will be ignored",
            settings.gateway_system_name,
        )
    if not settings.add_order_notes:
        logger.warning("order notes disabled; matched notifications leave no audit trail")
