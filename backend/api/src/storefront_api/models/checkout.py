"""API models for checkout endpoints."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CheckoutPreferenceRequest(BaseModel):
    """Request a checkout session for a previously created order.

    Items are normalised server-side: invalid entries are dropped and an
    empty result is rejected. When omitted, the order's own items are used.
    """

    model_config = ConfigDict(
        strict=False,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "orderId": "ORD-3F9A1C2B7D4E",
                    "mpExternalReference": "0c4f0d8e9b5a4d0e8a7f6c5b4a3d2e1f",
                    "items": [{"title": "Mate", "qty": 2, "unit_price": 12500}],
                }
            ]
        },
    )

    order_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("orderId", "order_id"),
    )
    idempotency_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("mpExternalReference", "idempotencyKey", "idempotency_key"),
    )
    items: list[dict[str, Any]] | None = None


class CheckoutPreferenceResponse(BaseModel):
    """Checkout session to redirect the shopper to."""

    id: str
    init_point: str | None = None
    sandbox_init_point: str | None = None
    idempotency_key: str = Field(..., serialization_alias="mpExternalReference")
    order_id: str = Field(..., serialization_alias="orderId")
