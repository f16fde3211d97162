"""Resolve gateway notifications to the order they belong to."""

from dataclasses import dataclass

from payrecon.services.reconciliation.config import ReconciliationConfig
from payrecon.services.reconciliation.correlation import CorrelationStore
from payrecon.services.reconciliation.models import Order
from payrecon.services.reconciliation.repository import (
    find_order_by_authorization_id,
    find_order_by_capture_id,
    find_order_by_gateway_order_id,
)
from payrecon.services.reconciliation.schemas import Notification, NotificationType


@dataclass(frozen=True)
class MatchResult:
    """Outcome of one match attempt.

    `reason` names the identifier that failed to resolve (e.g. "CaptureId X").
    It is None both on success and for unsupported message types, which are
    reported with `supported=False` and never run a strategy.
    """

    order: Order | None = None
    strategy: str | None = None
    reason: str | None = None
    supported: bool = True

    @property
    def found(self) -> bool:
        return self.order is not None

    @classmethod
    def unsupported(cls) -> "MatchResult":
        return cls(supported=False)


class NotificationMatcher:
    """Runs the ordered lookup strategies for each notification type."""

    def __init__(self, store: CorrelationStore, config: ReconciliationConfig) -> None:
        self.store = store
        self.config = config

    def match(self, db, notification: Notification) -> MatchResult:
        kind = notification.kind
        if kind is NotificationType.AUTHORIZATION:
            return self._run(
                db,
                notification,
                [("authorization_id", self._by_authorization_id)],
                f"AuthorizationId {notification.authorization_id}",
            )
        if kind is NotificationType.CAPTURE:
            return self._run(
                db,
                notification,
                [("capture_id", self._by_capture_id), ("gateway_order_id", self._by_gateway_order_id)],
                f"CaptureId {notification.capture_id}",
            )
        if kind is NotificationType.REFUND:
            return self._run(
                db,
                notification,
                [("refund_id", self._by_refund_id), ("gateway_order_id", self._by_gateway_order_id)],
                f"RefundId {notification.refund_id}",
            )
        return MatchResult.unsupported()

    def _run(self, db, notification: Notification, strategies, reason: str) -> MatchResult:
        for name, strategy in strategies:
            order = strategy(db, notification)
            if order is not None:
                return MatchResult(order=order, strategy=name)
        return MatchResult(reason=reason)

    def _by_authorization_id(self, db, notification: Notification) -> Order | None:
        return find_order_by_authorization_id(db, self.config.system_name, notification.authorization_id)

    def _by_capture_id(self, db, notification: Notification) -> Order | None:
        return find_order_by_capture_id(db, self.config.system_name, notification.capture_id)

    def _by_refund_id(self, db, notification: Notification) -> Order | None:
        return self.store.find_order_by_refund_id(db, notification.refund_id)

    def _by_gateway_order_id(self, db, notification: Notification) -> Order | None:
        return find_order_by_gateway_order_id(db, notification.gateway_order_id)
