"""Audit notes appended to orders when the gateway reports something."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from html import escape

from payrecon.services.reconciliation.config import ReconciliationConfig
from payrecon.services.reconciliation.correlation import OrderNotFoundError
from payrecon.services.reconciliation.localization import Localizer
from payrecon.services.reconciliation.models import Order, OrderNote
from payrecon.services.reconciliation.repository import save_order


class OrderNoteKind(IntEnum):
    """Position of the note text in the localized `OrderNoteStrings` list."""

    ORDER_REFERENCE_CREATED = 0
    AUTHORIZATION_NOTIFICATION = 1
    CAPTURE_NOTIFICATION = 2
    REFUND_NOTIFICATION = 3
    AUTHORIZATION_ISSUED = 4
    CAPTURE_ISSUED = 5
    REFUND_ISSUED = 6
    ORDER_CANCELED = 7


@dataclass(frozen=True)
class AnnotationResult:
    status: str
    note: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def written(cls, note: str) -> "AnnotationResult":
        return cls(status="written", note=note)

    @classmethod
    def skipped(cls) -> "AnnotationResult":
        return cls(status="skipped")

    @classmethod
    def failed(cls, error: Exception) -> "AnnotationResult":
        return cls(status="failed", error=error)


class OrderNoteAnnotator:
    """Writes internal HTML notes to orders.

    A note that cannot be written must never block payment processing, so
    `annotate` reports failures through `AnnotationResult` instead of raising.
    """

    def __init__(self, session_factory, config: ReconciliationConfig, localizer: Localizer) -> None:
        self.session_factory = session_factory
        self.config = config
        self.localizer = localizer

    def compose(self, kind: OrderNoteKind, substitution: str | None = None) -> str:
        """HTML fragment: gateway icon plus the localized message, if any."""

        strings = self.localizer.resolve(f"{self.config.resource_prefix}.OrderNoteStrings").split(";")
        template = strings[kind] if 0 <= kind < len(strings) else ""
        if substitution:
            body = template.replace("{0}", escape(substitution))
        else:
            body = template.replace("{0}", "")
        body = body.strip()

        html = f'<img src="{self.config.icon_url}" style="float: left; width: 16px; height: 16px;" />'
        if body:
            html += f'<span style="padding-left: 4px;">{body}</span>'
        return html

    def annotate(
        self,
        order: Order | None,
        kind: OrderNoteKind,
        substitution: str | None = None,
        is_async_notification: bool = False,
    ) -> AnnotationResult:
        if not self.config.add_order_notes or order is None:
            return AnnotationResult.skipped()
        try:
            note = self.compose(kind, substitution)
            with self.session_factory() as db:
                managed = db.get(Order, order.order_id)
                if managed is None:
                    raise OrderNotFoundError(order.order_id)
                managed.notes.append(
                    OrderNote(
                        note=note,
                        display_to_customer=False,
                        created_at=datetime.now(timezone.utc),
                    )
                )
                if is_async_notification:
                    managed.has_new_payment_notification = True
                save_order(db, managed)
                db.commit()
            if is_async_notification:
                order.has_new_payment_notification = True
            return AnnotationResult.written(note)
        except Exception as exc:
            return AnnotationResult.failed(exc)
