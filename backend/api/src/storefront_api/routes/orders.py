"""Order endpoints.

Provides REST endpoints for:
- Registering a pending order before checkout
- Looking up an order by durable ID, display number or legacy numeric ID
"""

from fastapi import APIRouter, Depends, Request
from starlette.status import HTTP_201_CREATED

from storefront.models.errors import ErrorCode, StorefrontError
from storefront.services.checkout import CheckoutService
from storefront.services.order_store import OrderStore
from storefront_api.dependencies import get_checkout_service, get_order_store
from storefront_api.models.orders import (
    OrderCreatedResponse,
    OrderCreateRequest,
    OrderResponse,
)

router = APIRouter(tags=["orders"])


@router.post(
    "/orders",
    summary="Create order",
    description="""
Register a pending order and allocate its idempotency key
(`mpExternalReference`). Pass the returned key to the checkout endpoint.

The display number (`orderNumber`) is assigned best-effort and may be null.
""",
    response_model=OrderCreatedResponse,
    status_code=HTTP_201_CREATED,
    responses={
        409: {"description": "An order already exists for the idempotency key"},
        422: {"description": "Invalid order payload"},
    },
)
async def create_order(
    request: Request,
    body: OrderCreateRequest,
    checkout: CheckoutService = Depends(get_checkout_service),
) -> OrderCreatedResponse:
    """Create a pending order."""
    customer_id = request.headers.get("x-user-sub")
    order = checkout.create_order(body.to_order_create(customer_id))
    return OrderCreatedResponse.from_order(order)


@router.get(
    "/orders/{order_ref}",
    summary="Get order",
    description="""
Look up an order by durable ID, then by display number (e.g. `AMG-0051`),
then by legacy numeric ID.
""",
    response_model=OrderResponse,
    responses={404: {"description": "Order not found"}},
)
async def get_order(
    order_ref: str,
    orders: OrderStore = Depends(get_order_store),
) -> OrderResponse:
    """Get an order for the order-status page."""
    order = orders.find(order_ref)
    if order is None:
        raise StorefrontError(code=ErrorCode.ORDER_NOT_FOUND, details={"id": order_ref})
    return OrderResponse.from_order(order)
