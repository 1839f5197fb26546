"""Order model: one checkout attempt and its payment state."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import OrderStatus


class LineItem(BaseModel):
    """An ordered product, snapshotted at order-creation time.

    Prices are copied from the cart so later catalog price changes do not
    affect the order.
    """

    product_id: str = Field(..., min_length=1, description="Stable product identifier")
    title: str = Field(default="Producto", description="Product title at purchase time")
    quantity: int = Field(..., gt=0, description="Ordered quantity")
    unit_price: Decimal = Field(..., gt=0, description="Unit price at purchase time")

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class PaymentMeta(BaseModel):
    """Last-seen payment provider metadata for an order.

    Informational only; overwritten on every reconciliation pass.
    """

    payment_id: str
    provider_status: str | None = None
    provider_status_detail: str | None = None
    provider_group_id: str | None = None


class Order(BaseModel):
    """A storefront order.

    ``order_id`` is the durable identifier used for every lookup and update.
    ``legacy_id`` (store sequence) and ``display_number`` are cosmetic and
    never used by reconciliation.
    """

    order_id: str = Field(..., description="Durable order identifier")
    idempotency_key: str = Field(
        ...,
        min_length=1,
        description="Correlation key shared with the payment provider (external_reference)",
    )
    legacy_id: int | None = Field(default=None, description="Store-assigned sequence number")
    display_number: str | None = Field(
        default=None,
        description="Human-facing order number",
        examples=["AMG-0051"],
    )
    status: OrderStatus = Field(default=OrderStatus.PENDING)
    stock_adjusted: bool = Field(default=False)
    line_items: list[LineItem] = Field(default_factory=list)
    payment_meta: PaymentMeta | None = None

    email: str | None = None
    customer_name: str | None = None
    phone: str | None = None
    shipping_address: dict[str, Any] | None = None
    customer_id: str | None = Field(default=None, description="Owner (identity provider subject)")
    total: Decimal = Field(default=Decimal("0"), ge=0)

    created_at: datetime
    updated_at: datetime | None = None

    @property
    def order_number(self) -> str:
        """Number shown to the shopper; falls back to the durable id."""
        return self.display_number or self.order_id


class OrderCreate(BaseModel):
    """Data required to register a pending order before checkout."""

    model_config = ConfigDict(extra="ignore")

    line_items: list[LineItem] = Field(..., min_length=1)
    idempotency_key: str | None = Field(
        default=None,
        description="Caller-held key; a random one is generated when absent",
    )
    email: str | None = None
    customer_name: str | None = None
    phone: str | None = None
    shipping_address: dict[str, Any] | None = None
    customer_id: str | None = None

    @field_validator("idempotency_key")
    @classmethod
    def _strip_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.line_items), Decimal("0"))
