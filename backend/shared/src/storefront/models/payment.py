"""Payment provider models decoded at the HTTP boundary.

The provider returns loosely shaped JSON (numeric IDs, optional nested
objects, metadata keys in either camelCase or snake_case). ``from_provider``
constructors normalise those payloads once so the reconciliation engine
only deals with these strict types.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import OrderStatus, ProviderPaymentStatus

# Metadata keys that may carry the order idempotency key, in priority order.
# The provider snake-cases metadata keys on the way back.
_METADATA_REFERENCE_KEYS = (
    "mpExternalReference",
    "mp_external_reference",
    "external_reference",
)


def _as_id(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def map_provider_status(provider_status: str | None) -> OrderStatus:
    """Map a provider payment status to an order status.

    approved -> paid, rejected -> failed, cancelled -> cancelled; every
    other (in-process, unknown, missing) status maps to pending.
    """
    mapping = {
        ProviderPaymentStatus.APPROVED.value: OrderStatus.PAID,
        ProviderPaymentStatus.REJECTED.value: OrderStatus.FAILED,
        ProviderPaymentStatus.CANCELLED.value: OrderStatus.CANCELLED,
    }
    return mapping.get(provider_status or "", OrderStatus.PENDING)


class PaymentRecord(BaseModel):
    """A payment as reported by the provider."""

    model_config = ConfigDict(frozen=True)

    payment_id: str
    status: str | None = None
    status_detail: str | None = None
    idempotency_key: str | None = Field(
        default=None,
        description="Order correlation key (external_reference or metadata)",
    )
    group_id: str | None = Field(default=None, description="Provider order-group ID")

    @classmethod
    def from_provider(cls, payload: dict[str, Any], payment_id: str) -> "PaymentRecord":
        """Decode a ``GET /v1/payments/{id}`` response.

        Args:
            payload: Provider JSON body
            payment_id: ID that was requested, used if the body omits it
        """
        metadata = payload.get("metadata")
        metadata = metadata if isinstance(metadata, dict) else {}
        order = payload.get("order")
        order = order if isinstance(order, dict) else {}

        reference = _as_id(payload.get("external_reference"))
        if reference is None:
            for key in _METADATA_REFERENCE_KEYS:
                reference = _as_id(metadata.get(key))
                if reference is not None:
                    break

        return cls(
            payment_id=_as_id(payload.get("id")) or payment_id,
            status=_as_id(payload.get("status")),
            status_detail=_as_id(payload.get("status_detail")),
            idempotency_key=reference,
            group_id=_as_id(order.get("id")),
        )

    @property
    def order_status(self) -> OrderStatus:
        return map_provider_status(self.status)


class GroupPayment(BaseModel):
    """A payment attempt listed inside an order group."""

    id: str | None = None
    status: str | None = None


class OrderGroup(BaseModel):
    """Provider object grouping one or more payment attempts."""

    group_id: str
    payments: list[GroupPayment] = Field(default_factory=list)

    @classmethod
    def from_provider(cls, payload: dict[str, Any], group_id: str) -> "OrderGroup":
        """Decode a ``GET /merchant_orders/{id}`` response."""
        raw_payments = payload.get("payments")
        raw_payments = raw_payments if isinstance(raw_payments, list) else []
        return cls(
            group_id=_as_id(payload.get("id")) or group_id,
            payments=[
                GroupPayment(id=_as_id(p.get("id")), status=_as_id(p.get("status")))
                for p in raw_payments
                if isinstance(p, dict)
            ],
        )

    def resolve_payment_id(self) -> str | None:
        """Pick the payment to reconcile.

        Prefers an approved payment; otherwise any payment with an ID.
        Returns None while the group has no payments yet.
        """
        with_id = [p for p in self.payments if p.id]
        approved = next(
            (p for p in with_id if p.status == ProviderPaymentStatus.APPROVED.value),
            None,
        )
        chosen = approved or (with_id[0] if with_id else None)
        return chosen.id if chosen else None


class CheckoutItem(BaseModel):
    """Line item sent to the provider when creating a checkout session."""

    title: str
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0)
    currency_id: str = "ARS"


class CheckoutSession(BaseModel):
    """Checkout session (preference) returned by the provider."""

    id: str
    init_point: str | None = None
    sandbox_init_point: str | None = None
