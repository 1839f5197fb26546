"""API models for the payment webhook."""

from pydantic import BaseModel

from storefront.models import OrderStatus, ReconciliationResult


class WebhookAck(BaseModel):
    """Acknowledgement returned for every webhook delivery.

    ``ok`` is always true; the remaining fields are diagnostics only.
    """

    ok: bool = True
    outcome: str
    topic: str | None = None
    reference_id: str | None = None
    payment_id: str | None = None
    order_id: str | None = None
    order_status: OrderStatus | None = None

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "WebhookAck":
        return cls(
            outcome=result.outcome.value,
            topic=result.topic,
            reference_id=result.reference_id,
            payment_id=result.payment_id,
            order_id=result.order_id,
            order_status=result.order_status,
        )
