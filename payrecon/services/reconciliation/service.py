"""Gateway notification handling.

Matches each notification to its order, records identifiers learnt from it,
writes an audit note and acknowledges. Notifications that match nothing are
acknowledged too, so the gateway does not keep retrying them.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from payrecon.common.logging import logger, notification_id_ctx, order_id_ctx
from payrecon.common.metrics import (
    duplicate_events_skipped_total,
    notifications_matched_total,
    notifications_received_total,
    notifications_unmatched_total,
    order_notes_failed_total,
)
from payrecon.services.reconciliation.annotator import AnnotationResult, OrderNoteAnnotator, OrderNoteKind
from payrecon.services.reconciliation.config import ReconciliationConfig
from payrecon.services.reconciliation.correlation import CorrelationRecord, CorrelationStore
from payrecon.services.reconciliation.localization import DictLocalizer, Localizer
from payrecon.services.reconciliation.matcher import MatchResult, NotificationMatcher
from payrecon.services.reconciliation.models import InboxEvent, Order
from payrecon.services.reconciliation.schemas import Notification, NotificationType


NOTE_KINDS: dict[NotificationType, OrderNoteKind] = {
    NotificationType.AUTHORIZATION: OrderNoteKind.AUTHORIZATION_NOTIFICATION,
    NotificationType.CAPTURE: OrderNoteKind.CAPTURE_NOTIFICATION,
    NotificationType.REFUND: OrderNoteKind.REFUND_NOTIFICATION,
}


@dataclass(frozen=True)
class NotificationOutcome:
    result: MatchResult
    duplicate: bool = False
    ignored: bool = False
    annotation: AnnotationResult | None = None


class NotificationService:
    """Entry point for parsed gateway notifications."""

    def __init__(
        self,
        session_factory,
        config: ReconciliationConfig,
        localizer: Localizer | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.service_name = config.service_name
        self.store = CorrelationStore(session_factory, config)
        self.matcher = NotificationMatcher(self.store, config)
        self.annotator = OrderNoteAnnotator(
            session_factory,
            config,
            localizer or DictLocalizer.with_defaults(config.resource_prefix),
        )

    def _claim_inbox(self, event_id: str) -> bool:
        """Commit a PROCESSING row before any work; False when another delivery owns it.

        A PROCESSING claim older than the claim timeout belongs to a delivery
        that died mid-way and is taken over.
        """

        now = datetime.now(timezone.utc)
        with self.session_factory() as db:
            db.add(
                InboxEvent(
                    event_id=event_id,
                    consumed_by_service=self.service_name,
                    status="PROCESSING",
                    claimed_at=now,
                )
            )
            try:
                db.commit()
                return True
            except IntegrityError:
                db.rollback()

            stale_before = now - timedelta(seconds=self.config.inbox_claim_timeout_seconds)
            taken = db.execute(
                update(InboxEvent)
                .where(
                    InboxEvent.event_id == event_id,
                    InboxEvent.consumed_by_service == self.service_name,
                    InboxEvent.status == "PROCESSING",
                    InboxEvent.claimed_at < stale_before,
                )
                .values(claimed_at=now)
            )
            db.commit()
            if taken.rowcount == 1:
                logger.warning("stale inbox claim taken over notification_id=%s", event_id)
                return True
            return False

    def _finish_inbox(self, event_id: str) -> None:
        with self.session_factory() as db:
            db.execute(
                update(InboxEvent)
                .where(InboxEvent.event_id == event_id, InboxEvent.consumed_by_service == self.service_name)
                .values(status="DONE", consumed_at=datetime.now(timezone.utc))
            )
            db.commit()

    def _release_inbox(self, event_id: str) -> None:
        """Drop a claim so a redelivery of the same notification is handled again."""

        with self.session_factory() as db:
            db.execute(
                delete(InboxEvent).where(
                    InboxEvent.event_id == event_id,
                    InboxEvent.consumed_by_service == self.service_name,
                    InboxEvent.status == "PROCESSING",
                )
            )
            db.commit()

    def _remember_identifiers(self, order: Order, notification: Notification) -> CorrelationRecord:
        """Store identifiers the notification carries so later ones match directly."""

        kind = notification.kind
        refund_id = notification.refund_id if kind is NotificationType.REFUND else None
        learned = CorrelationRecord(
            authorization_id=notification.authorization_id if kind is NotificationType.AUTHORIZATION else None,
            capture_id=notification.capture_id if kind is NotificationType.CAPTURE else None,
            refund_ids={refund_id} if refund_id else set(),
        )

        def mutate(record: CorrelationRecord) -> None:
            if not record.gateway_order_id:
                # The order row keeps its gateway order id; the notification only fills a gap.
                learned.gateway_order_id = order.gateway_order_id or notification.gateway_order_id
            record.merge(learned)

        return self.store.update(order.order_id, mutate)

    def _process(self, notification: Notification, message_type: str) -> NotificationOutcome:
        with self.session_factory() as db:
            result = self.matcher.match(db, notification)

        if not result.found:
            logger.warning("order not found for %s", result.reason)
            notifications_unmatched_total.labels(service=self.service_name, message_type=message_type).inc()
            return NotificationOutcome(result=result)

        order = result.order
        order_token = order_id_ctx.set(order.order_id)
        try:
            notifications_matched_total.labels(
                service=self.service_name,
                message_type=message_type,
                strategy=result.strategy,
            ).inc()
            logger.info(
                "notification matched message_type=%s strategy=%s order_id=%s",
                message_type,
                result.strategy,
                order.order_id,
            )
            self._remember_identifiers(order, notification)

            annotation = self.annotator.annotate(
                order,
                NOTE_KINDS[notification.kind],
                notification.summary(),
                is_async_notification=True,
            )
            if not annotation.ok:
                order_notes_failed_total.labels(service=self.service_name).inc()
                logger.error("order note failed order_id=%s error=%s", order.order_id, annotation.error)
            return NotificationOutcome(result=result, annotation=annotation)
        finally:
            order_id_ctx.reset(order_token)

    def handle(self, notification: Notification) -> NotificationOutcome:
        """Process one notification; only data-integrity errors propagate."""

        kind = notification.kind
        message_type = kind.value if kind else "unsupported"
        notifications_received_total.labels(service=self.service_name, message_type=message_type).inc()
        notification_token = notification_id_ctx.set(notification.notification_id or "")
        try:
            if not self.config.payment_method_active:
                logger.error(
                    "payment method not active, notification ignored system_name=%s message_type=%s",
                    self.config.system_name,
                    notification.message_type,
                )
                return NotificationOutcome(result=MatchResult(), ignored=True)

            if kind is None:
                logger.debug("unsupported notification type ignored message_type=%s", notification.message_type)
                return NotificationOutcome(result=MatchResult.unsupported())

            event_id = notification.notification_id
            if event_id and not self._claim_inbox(event_id):
                logger.info(
                    "duplicate notification skipped message_type=%s notification_id=%s",
                    notification.message_type,
                    event_id,
                )
                duplicate_events_skipped_total.labels(service=self.service_name, topic="gateway.notifications").inc()
                return NotificationOutcome(result=MatchResult(), duplicate=True)

            try:
                outcome = self._process(notification, message_type)
            except Exception:
                if event_id:
                    self._release_inbox(event_id)
                raise

            if event_id:
                if outcome.result.found:
                    self._finish_inbox(event_id)
                else:
                    # A redelivery may match once the order catches up.
                    self._release_inbox(event_id)
            return outcome
        finally:
            notification_id_ctx.reset(notification_token)
