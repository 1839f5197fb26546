"""API models for order endpoints.

Request/response bodies use the camelCase keys the storefront frontend
sends and expects; domain models in storefront.models stay snake_case.
"""

from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from storefront.models import LineItem, Order, OrderCreate, OrderStatus


class OrderItemRequest(BaseModel):
    """Cart line item as sent by the frontend."""

    model_config = ConfigDict(strict=False, populate_by_name=True)

    product_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("productId", "product_id", "id"),
    )
    title: str = Field(default="Producto")
    quantity: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("quantity", "qty"),
    )
    unit_price: Decimal = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("unitPrice", "unit_price", "price"),
    )


class OrderCreateRequest(BaseModel):
    """Request to register a pending order before checkout.

    The owner is not included; it is taken from the ``x-user-sub`` header.
    """

    model_config = ConfigDict(
        strict=False,
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "items": [
                        {"productId": "mate-imperial", "title": "Mate", "qty": 2, "unit_price": 12500}
                    ],
                    "email": "ana@example.com",
                    "name": "Ana",
                    "phone": "+54 11 5555-0000",
                    "shippingAddress": {"text": "Av. Corrientes 1234, CABA"},
                }
            ]
        },
    )

    items: list[OrderItemRequest] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("items", "lineItems", "line_items"),
    )
    idempotency_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("mpExternalReference", "idempotencyKey", "idempotency_key"),
    )
    email: str | None = None
    customer_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("name", "customerName", "customer_name"),
    )
    phone: str | None = None
    shipping_address: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("shippingAddress", "shipping_address"),
    )

    def to_order_create(self, customer_id: str | None) -> OrderCreate:
        """Convert to the domain creation model."""
        return OrderCreate(
            line_items=[
                LineItem(
                    product_id=item.product_id,
                    title=item.title or "Producto",
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in self.items
            ],
            idempotency_key=self.idempotency_key,
            email=self.email.strip().lower() if self.email else None,
            customer_name=self.customer_name,
            phone=self.phone,
            shipping_address=self.shipping_address,
            customer_id=customer_id,
        )


class OrderCreatedResponse(BaseModel):
    """Identifiers of a newly created order."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., serialization_alias="orderId")
    order_number: str | None = Field(default=None, serialization_alias="orderNumber")
    order_numeric_id: int | None = Field(default=None, serialization_alias="orderNumericId")
    idempotency_key: str = Field(..., serialization_alias="mpExternalReference")
    status: OrderStatus

    @classmethod
    def from_order(cls, order: Order) -> "OrderCreatedResponse":
        return cls(
            order_id=order.order_id,
            order_number=order.display_number,
            order_numeric_id=order.legacy_id,
            idempotency_key=order.idempotency_key,
            status=order.status,
        )


class OrderItemResponse(BaseModel):
    product_id: str = Field(..., serialization_alias="productId")
    title: str
    quantity: int
    unit_price: Decimal = Field(..., serialization_alias="unitPrice")


class OrderResponse(BaseModel):
    """Order as shown on the order-status page."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(..., serialization_alias="documentId")
    id: int | None = Field(default=None, description="Store sequence number")
    order_number: str = Field(..., serialization_alias="orderNumber")
    status: OrderStatus
    stock_adjusted: bool = Field(..., serialization_alias="stockAdjusted")
    items: list[OrderItemResponse]
    total: Decimal
    email: str | None = None
    customer_name: str | None = Field(default=None, serialization_alias="customerName")
    payment_id: str | None = Field(default=None, serialization_alias="mpPaymentId")
    payment_status: str | None = Field(default=None, serialization_alias="mpStatus")
    payment_status_detail: str | None = Field(default=None, serialization_alias="mpStatusDetail")
    created_at: str = Field(..., serialization_alias="createdAt")

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        meta = order.payment_meta
        return cls(
            document_id=order.order_id,
            id=order.legacy_id,
            order_number=order.order_number,
            status=order.status,
            stock_adjusted=order.stock_adjusted,
            items=[
                OrderItemResponse(
                    product_id=li.product_id,
                    title=li.title,
                    quantity=li.quantity,
                    unit_price=li.unit_price,
                )
                for li in order.line_items
            ],
            total=order.total,
            email=order.email,
            customer_name=order.customer_name,
            payment_id=meta.payment_id if meta else None,
            payment_status=meta.provider_status if meta else None,
            payment_status_detail=meta.provider_status_detail if meta else None,
            created_at=order.created_at.isoformat(),
        )
