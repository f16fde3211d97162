"""Explicit configuration handed to each reconciliation component."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconciliationConfig:
    """Per-integration values; components never read process settings themselves."""

    system_name: str = "Payments.Gateway"
    store_url: str = "http://localhost:8000/"
    resource_prefix: str = "Plugins.Payments.Gateway"
    add_order_notes: bool = True
    payment_method_active: bool = True
    service_name: str = "reconciliation"
    inbox_claim_timeout_seconds: int = 300

    @classmethod
    def from_settings(cls, settings) -> "ReconciliationConfig":
        return cls(
            system_name=settings.gateway_system_name,
            store_url=settings.store_url,
            resource_prefix=settings.resource_prefix,
            add_order_notes=settings.add_order_notes,
            payment_method_active=settings.payment_method_active,
            service_name=settings.service_name,
            inbox_claim_timeout_seconds=settings.inbox_claim_timeout_seconds,
        )

    @property
    def record_key(self) -> str:
        return f"{self.system_name}.OrderAttribute"

    @property
    def legacy_key(self) -> str:
        # Written by releases that only tracked the gateway order id.
        return f"{self.system_name}.OrderReferenceId"

    @property
    def icon_url(self) -> str:
        return f"{self.store_url.rstrip('/')}/Plugins/{self.system_name}/Content/images/favicon.png"
