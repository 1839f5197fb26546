"""Order creation and checkout session issuance.

The pre-payment path: register a pending order under an idempotency key,
then ask the provider for a checkout session carrying that key as its
external reference. The key is what later ties payment notifications back
to the order.
"""

import datetime as dt
import math
import uuid
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from storefront.models import (
    CheckoutItem,
    CheckoutSession,
    ErrorCode,
    Order,
    OrderCreate,
    OrderStatus,
    StorefrontError,
)
from storefront.services.mercadopago import (
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
)
from storefront.utils.logging import get_logger, log_payment_operation

if TYPE_CHECKING:
    from storefront.config import Settings

    from .mercadopago import MercadoPagoClient
    from .order_store import OrderStore

logger = get_logger(__name__)


def format_display_number(prefix: str, sequence: int) -> str:
    """Zero-padded display number, e.g. ``AMG-0051``."""
    return f"{prefix}-{sequence:04d}"


def generate_idempotency_key() -> str:
    return uuid.uuid4().hex


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def normalize_checkout_items(
    raw_items: list[dict[str, Any]] | None,
    currency: str = "ARS",
) -> list[CheckoutItem]:
    """Normalise cart items for a checkout session.

    Title defaults to "Producto"; quantity (``qty`` or ``quantity``) is
    floored with a minimum of 1; unit price (``unit_price`` or ``price``)
    must be positive. Items failing these rules are dropped.
    """
    items: list[CheckoutItem] = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            continue

        title = str(raw.get("title") or "Producto").strip() or "Producto"

        quantity_raw = _to_decimal(raw.get("qty", raw.get("quantity", 1)))
        quantity = max(1, math.floor(quantity_raw)) if quantity_raw is not None else 1

        unit_price = _to_decimal(raw.get("unit_price", raw.get("price", 0)))
        if unit_price is None or unit_price <= 0:
            continue

        items.append(
            CheckoutItem(
                title=title,
                quantity=quantity,
                unit_price=unit_price,
                currency_id=currency,
            )
        )
    return items


class CheckoutService:
    """Service for creating orders and checkout sessions.

    Usage:
        checkout = CheckoutService(orders, provider, settings)
        order = checkout.create_order(OrderCreate(line_items=[...], email="ana@example.com"))
        session = checkout.create_checkout_session(order_id=order.order_id)
    """

    def __init__(
        self,
        orders: "OrderStore",
        provider: "MercadoPagoClient",
        settings: "Settings",
    ) -> None:
        """Initialize checkout service.

        Args:
            orders: Order store
            provider: Payment provider client
            settings: Process settings (currency, display number prefix)
        """
        self.orders = orders
        self.provider = provider
        self.settings = settings

    def create_order(self, data: OrderCreate) -> Order:
        """Register a pending order.

        The display number is assigned best-effort after creation; failing to
        assign it never fails the order.

        Raises:
            StorefrontError: DUPLICATE_IDEMPOTENCY_KEY or ORDER_STORE_ERROR.
        """
        now = dt.datetime.now(dt.UTC)
        order = Order(
            order_id=self.orders.generate_order_id(),
            idempotency_key=data.idempotency_key or generate_idempotency_key(),
            status=OrderStatus.PENDING,
            stock_adjusted=False,
            line_items=data.line_items,
            email=data.email,
            customer_name=data.customer_name,
            phone=data.phone,
            shipping_address=data.shipping_address,
            customer_id=data.customer_id,
            total=data.total,
            created_at=now,
            updated_at=now,
        )

        try:
            self.orders.create_order(order)
        except StorefrontError:
            raise
        except Exception as e:
            log_payment_operation(
                logger,
                "create_order",
                order_id=order.order_id,
                idempotency_key=order.idempotency_key,
                error=str(e),
            )
            raise StorefrontError(code=ErrorCode.ORDER_STORE_ERROR) from e

        order = self._assign_display_number(order)

        log_payment_operation(
            logger,
            "create_order",
            order_id=order.order_id,
            idempotency_key=order.idempotency_key,
            status=order.status.value,
            order_number=order.display_number,
        )
        return order

    def _assign_display_number(self, order: Order) -> Order:
        try:
            sequence = self.orders.next_sequence_number()
            display_number = format_display_number(self.settings.order_number_prefix, sequence)
            updated = self.orders.assign_display_number(order.order_id, sequence, display_number)
        except Exception as e:
            logger.warning(
                "Could not assign display number to order %s: %s", order.order_id, e
            )
            return order

        if updated is None:
            logger.warning("Order %s vanished before numbering", order.order_id)
            return order
        return updated

    def create_checkout_session(
        self,
        *,
        order_id: str,
        items: list[dict[str, Any]] | None = None,
        idempotency_key: str | None = None,
    ) -> tuple[Order, CheckoutSession]:
        """Request a checkout session for a pending order.

        Args:
            order_id: Durable ID, display number or legacy ID of the order
            items: Cart items; defaults to the order's own line items
            idempotency_key: Caller-held key, must match the order's when given

        Raises:
            StorefrontError: ORDER_NOT_FOUND, INVALID_ORDER, NO_VALID_ITEMS,
                PAYMENT_PROVIDER_NOT_CONFIGURED or PAYMENT_PROVIDER_ERROR.
        """
        order = self.orders.find(order_id)
        if order is None:
            raise StorefrontError(code=ErrorCode.ORDER_NOT_FOUND, details={"id": order_id})

        if idempotency_key and idempotency_key.strip() != order.idempotency_key:
            raise StorefrontError(
                code=ErrorCode.INVALID_ORDER,
                details={"reason": "idempotency key does not match order"},
            )

        if items is None:
            items = [
                {"title": li.title, "quantity": li.quantity, "unit_price": li.unit_price}
                for li in order.line_items
            ]
        checkout_items = normalize_checkout_items(items, self.settings.currency)
        if not checkout_items:
            raise StorefrontError(code=ErrorCode.NO_VALID_ITEMS)

        try:
            session = self.provider.create_checkout_session(
                items=checkout_items,
                external_reference=order.idempotency_key,
                order_id=order.order_id,
                order_number=order.display_number,
            )
        except PaymentProviderNotConfiguredError as e:
            raise StorefrontError(code=ErrorCode.PAYMENT_PROVIDER_NOT_CONFIGURED) from e
        except PaymentProviderError as e:
            log_payment_operation(
                logger,
                "create_checkout_session",
                order_id=order.order_id,
                idempotency_key=order.idempotency_key,
                error=str(e),
                provider_status=e.status_code,
            )
            raise StorefrontError(
                code=ErrorCode.PAYMENT_PROVIDER_ERROR,
                details={"message": str(e)},
            ) from e

        log_payment_operation(
            logger,
            "create_checkout_session",
            order_id=order.order_id,
            idempotency_key=order.idempotency_key,
            session_id=session.id,
        )
        return order, session
