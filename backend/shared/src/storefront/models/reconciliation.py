"""Reconciliation result and notification audit models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import OrderStatus, ReconciliationOutcome


class ReconciliationResult(BaseModel):
    """Outcome of processing one notification delivery.

    Returned by the engine and echoed (minus internals) in the webhook
    acknowledgement for diagnostics.
    """

    outcome: ReconciliationOutcome
    topic: str | None = None
    reference_id: str | None = None
    payment_id: str | None = None
    order_id: str | None = None
    previous_status: OrderStatus | None = None
    order_status: OrderStatus | None = None
    stock_adjusted: bool = False
    side_effects: list[str] = Field(default_factory=list)
    error: str | None = None


class NotificationLog(BaseModel):
    """Audit record of a received payment notification.

    Used for:
    - Auditing: track all webhook deliveries and their outcome
    - Debugging: investigate payment issues

    Deliveries are not deduplicated on this log; reconciliation itself is
    idempotent and a repeated delivery is always reprocessed.
    """

    model_config = ConfigDict(strict=True)

    notification_id: str = Field(..., description="Unique delivery ID")
    topic: str | None = Field(default=None, examples=["payment", "order-group"])
    reference_id: str | None = Field(default=None, description="Notification reference ID")
    received_at: datetime
    outcome: str = Field(..., examples=["processed", "order_not_found"])
    payment_id: str | None = None
    order_id: str | None = None
    error_message: str | None = None
