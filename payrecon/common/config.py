"""Central environment-driven settings for the reconciliation service.

The process loads this once at startup. Components never read it directly;
`main.py` converts it into a `ReconciliationConfig` (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "reconciliation"
    log_level: str = "INFO"
    postgres_dsn: str
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    tracing_enabled: bool = True
    gateway_system_name: str = "Payments.Gateway"
    store_url: str = "http://localhost:8000/"
    resource_prefix: str = "Plugins.Payments.Gateway"
    add_order_notes: bool = True
    payment_method_active: bool = True
    inbox_claim_timeout_seconds: int = 300
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
