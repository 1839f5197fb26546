"""Checkout endpoint: issue a Mercado Pago checkout session for an order."""

from fastapi import APIRouter, Depends

from storefront.services.checkout import CheckoutService
from storefront_api.dependencies import get_checkout_service
from storefront_api.models.checkout import (
    CheckoutPreferenceRequest,
    CheckoutPreferenceResponse,
)

router = APIRouter(tags=["checkout"])


@router.post(
    "/checkout/preference",
    summary="Create checkout session",
    description="""
Create a Mercado Pago checkout preference scoped to the order's
idempotency key. Items with a non-positive price are dropped; quantities are
floored to whole units (minimum 1).
""",
    response_model=CheckoutPreferenceResponse,
    responses={
        400: {"description": "No valid items"},
        404: {"description": "Order not found"},
        502: {"description": "Mercado Pago rejected the preference"},
        503: {"description": "Mercado Pago is not configured"},
    },
)
async def create_preference(
    body: CheckoutPreferenceRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> CheckoutPreferenceResponse:
    """Create a checkout session for an existing pending order."""
    order, session = checkout.create_checkout_session(
        order_id=body.order_id,
        items=body.items,
        idempotency_key=body.idempotency_key,
    )
    return CheckoutPreferenceResponse(
        id=session.id,
        init_point=session.init_point,
        sandbox_init_point=session.sandbox_init_point,
        idempotency_key=order.idempotency_key,
        order_id=order.order_id,
    )
