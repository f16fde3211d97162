"""Notification payloads and API response schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Gateway message types the matcher knows how to resolve."""

    AUTHORIZATION = "AuthorizationNotification"
    CAPTURE = "CaptureNotification"
    REFUND = "RefundNotification"

    @classmethod
    def parse(cls, value: str | None) -> "NotificationType | None":
        """Case-insensitive lookup; None for anything unrecognized."""

        if not value:
            return None
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        return None


class Notification(BaseModel):
    """Gateway notification already parsed by the boundary layer."""

    notification_id: str | None = None
    message_type: str = Field(min_length=1)
    gateway_order_id: str = Field(min_length=1)
    authorization_id: str | None = None
    capture_id: str | None = None
    refund_id: str | None = None
    state: str | None = None
    reason_code: str | None = None

    @property
    def kind(self) -> NotificationType | None:
        return NotificationType.parse(self.message_type)

    def summary(self) -> str:
        """Short human-readable status used in order notes."""

        parts = [self.message_type]
        identifier = {
            NotificationType.AUTHORIZATION: self.authorization_id,
            NotificationType.CAPTURE: self.capture_id,
            NotificationType.REFUND: self.refund_id,
        }.get(self.kind)
        if identifier:
            parts.append(identifier)
        if self.state:
            parts.append(self.state)
        if self.reason_code:
            parts.append(f"({self.reason_code})")
        return " ".join(parts)


class NotificationAck(BaseModel):
    """Response returned to the gateway callback layer."""

    ok: bool = True
    matched: bool
    duplicate: bool = False
    order_id: str | None = None
    strategy: str | None = None


class CorrelationResponse(BaseModel):
    order_id: str
    schema_version: str
    gateway_order_id: str | None
    authorization_id: str | None
    capture_id: str | None
    refund_ids: list[str]
