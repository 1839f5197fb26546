"""Payment reconciliation engine.

Turns a payment notification into an order status transition:

1. Resolve the notification to a payment ID (order groups need one lookup).
2. Fetch the payment from the provider.
3. Read the order correlation key (external reference) from the payment.
4. Locate the order by that key.
5. Map the provider status to an order status. Terminal statuses are kept.
6. Persist the status and the latest payment metadata.
7. Detect the transition into ``paid``.
8. For a paid order whose stock has not been adjusted, validate and commit
   the stock adjustment together with the ``stock_adjusted`` flag in one
   DynamoDB transaction.
9. Queue invoice and confirmation email, only from the pass that committed
   the stock adjustment.

Every failure ends the pass with a ReconciliationOutcome; nothing is raised
to the webhook route, which always acknowledges the delivery. Retrying is
left to the provider's redelivery.
"""

import datetime as dt
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from storefront.models import (
    NotificationLog,
    Order,
    OrderGroupNotification,
    OrderStatus,
    PaymentMeta,
    ReconciliationOutcome,
    ReconciliationResult,
    UnsupportedNotification,
    decode_notification,
)
from storefront.services.mercadopago import (
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
)
from storefront.services.side_effects import SideEffectTask
from storefront.utils.logging import get_logger, log_reconciliation_step

if TYPE_CHECKING:
    from storefront.models import PaymentNotification

    from .dynamodb import DynamoDBService
    from .email_service import EmailService
    from .inventory_store import InventoryStore
    from .invoice_service import InvoiceService
    from .mercadopago import MercadoPagoClient
    from .order_store import OrderStore
    from .side_effects import SideEffectDispatcher

logger = get_logger(__name__)

STOCK_COMMIT_ATTEMPTS = 3


class _StepFailed(Exception):
    """Internal: ends a reconciliation pass with the given outcome."""

    def __init__(self, outcome: ReconciliationOutcome, error: str | None = None) -> None:
        super().__init__(error or outcome.value)
        self.outcome = outcome
        self.error = error


def next_order_status(previous: OrderStatus, mapped: OrderStatus) -> OrderStatus:
    """Status to persist: pending orders take the mapped status, terminal ones stay."""
    return previous if previous.is_terminal else mapped


class ReconciliationEngine:
    """State machine reconciling orders with provider payments.

    Usage:
        engine = ReconciliationEngine(provider, orders, inventory, dispatcher)
        result = engine.handle_delivery(request.query_params, body)
        dispatcher.drain()
    """

    NOTIFICATIONS_TABLE = "payment-notifications"

    def __init__(
        self,
        provider: "MercadoPagoClient",
        orders: "OrderStore",
        inventory: "InventoryStore",
        dispatcher: "SideEffectDispatcher",
        invoices: "InvoiceService | None" = None,
        emails: "EmailService | None" = None,
        db: "DynamoDBService | None" = None,
    ) -> None:
        """Initialize engine.

        Args:
            provider: Payment provider client
            orders: Order store
            inventory: Inventory store
            dispatcher: Queue for post-payment side effects
            invoices: Invoice service (side effect; skipped when None)
            emails: Email service (side effect; skipped when None)
            db: DynamoDB service for the notification audit log (skipped when None)
        """
        self.provider = provider
        self.orders = orders
        self.inventory = inventory
        self.dispatcher = dispatcher
        self.invoices = invoices
        self.emails = emails
        self.db = db

    # =========================================================================
    # Entry points
    # =========================================================================

    def handle_delivery(
        self,
        query_params: Mapping[str, str],
        body: Any = None,
        *,
        x_signature: str | None = None,
        x_request_id: str | None = None,
    ) -> ReconciliationResult:
        """Decode, authenticate and reconcile one webhook delivery."""
        notification = decode_notification(query_params, body)
        if notification is None:
            result = ReconciliationResult(outcome=ReconciliationOutcome.IGNORED)
            log_reconciliation_step(logger, None, None, result=result.outcome.value)
            self.record_notification(result)
            return result

        rejected: ReconciliationResult | None = None
        try:
            if not self.provider.verify_signature(
                x_signature, x_request_id, notification.reference_id
            ):
                rejected = ReconciliationResult(
                    outcome=ReconciliationOutcome.INVALID_SIGNATURE,
                    topic=notification.topic,
                    reference_id=notification.reference_id,
                )
        except PaymentProviderNotConfiguredError as e:
            rejected = ReconciliationResult(
                outcome=ReconciliationOutcome.MISCONFIGURED,
                topic=notification.topic,
                reference_id=notification.reference_id,
                error=str(e),
            )

        if rejected is not None:
            log_reconciliation_step(
                logger,
                notification.topic,
                notification.reference_id,
                result=rejected.outcome.value,
                error=rejected.error,
            )
            self.record_notification(rejected)
            return rejected

        return self.reconcile(notification)

    def reconcile(self, notification: "PaymentNotification") -> ReconciliationResult:
        """Reconcile the order referenced by a decoded notification.

        Never raises; the returned result carries the outcome.
        """
        result = ReconciliationResult(
            outcome=ReconciliationOutcome.PROCESSED,
            topic=notification.topic,
            reference_id=notification.reference_id,
        )

        try:
            self._reconcile(notification, result)
        except _StepFailed as e:
            result.outcome = e.outcome
            result.error = e.error

        log_reconciliation_step(
            logger,
            result.topic,
            result.reference_id,
            result=result.outcome.value,
            order_id=result.order_id,
            payment_id=result.payment_id,
            error=result.error,
            order_status=result.order_status.value if result.order_status else None,
            side_effects=",".join(result.side_effects) or None,
        )
        self.record_notification(result)
        return result

    # =========================================================================
    # Steps
    # =========================================================================

    def _reconcile(
        self,
        notification: "PaymentNotification",
        result: ReconciliationResult,
    ) -> None:
        # 1. Classify
        if isinstance(notification, UnsupportedNotification):
            raise _StepFailed(ReconciliationOutcome.UNSUPPORTED_TOPIC)

        if isinstance(notification, OrderGroupNotification):
            payment_id = self._call_provider(
                self.provider.resolve_payment_id, notification.reference_id
            )
            if payment_id is None:
                raise _StepFailed(ReconciliationOutcome.NO_PAYMENT_YET)
        else:
            payment_id = notification.reference_id
        result.payment_id = payment_id

        # 2. Payment truth
        payment = self._call_provider(self.provider.get_payment, payment_id)

        # 3. Correlation key
        if not payment.idempotency_key:
            raise _StepFailed(ReconciliationOutcome.MISSING_EXTERNAL_REFERENCE)

        # 4. Locate order
        try:
            order = self.orders.get_by_idempotency_key(payment.idempotency_key)
        except Exception as e:
            raise _StepFailed(ReconciliationOutcome.ORDER_LOOKUP_FAILED, str(e)) from e
        if order is None:
            raise _StepFailed(ReconciliationOutcome.ORDER_NOT_FOUND)
        result.order_id = order.order_id
        result.previous_status = order.status

        # 5-6. Map and persist
        target = next_order_status(order.status, payment.order_status)
        meta = PaymentMeta(
            payment_id=payment.payment_id,
            provider_status=payment.status,
            provider_status_detail=payment.status_detail,
            provider_group_id=payment.group_id,
        )
        updated = self._persist_status(order, target, meta)
        result.order_status = updated.status
        result.stock_adjusted = updated.stock_adjusted

        # 7. Became paid
        if order.status is not OrderStatus.PAID and updated.status is OrderStatus.PAID:
            logger.info("Order %s became paid (payment %s)", order.order_id, payment_id)

        # 8. Stock. Also recovers a paid order whose earlier pass stopped
        # before committing the adjustment.
        if updated.status is not OrderStatus.PAID or updated.stock_adjusted:
            return

        committed = self._adjust_stock(updated, result)
        if not committed:
            return

        # 9. Side effects
        result.side_effects = self._enqueue_side_effects(updated)

    def _call_provider(self, func: Any, *args: Any) -> Any:
        try:
            return func(*args)
        except PaymentProviderNotConfiguredError as e:
            raise _StepFailed(ReconciliationOutcome.MISCONFIGURED, str(e)) from e
        except PaymentProviderError as e:
            raise _StepFailed(ReconciliationOutcome.PAYMENT_FETCH_FAILED, str(e)) from e

    def _persist_status(self, order: Order, target: OrderStatus, meta: PaymentMeta) -> Order:
        try:
            updated = self.orders.update_status(order.order_id, target, meta)
            if updated is not None:
                return updated

            # Another delivery moved the order to a different terminal status
            # since it was read; keep that status and refresh metadata only.
            current = self.orders.get_by_id(order.order_id, consistent_read=True)
            if current is None:
                raise _StepFailed(ReconciliationOutcome.ORDER_NOT_FOUND)
            logger.warning(
                "Order %s changed to %s concurrently, keeping it",
                order.order_id,
                current.status.value,
            )
            return self.orders.update_payment_meta(order.order_id, meta) or current
        except _StepFailed:
            raise
        except Exception as e:
            raise _StepFailed(ReconciliationOutcome.UPDATE_FAILED, str(e)) from e

    def _adjust_stock(self, order: Order, result: ReconciliationResult) -> bool:
        """Validate and commit the one-time stock adjustment for a paid order.

        Returns:
            True only if this pass committed the adjustment.

        Raises:
            _StepFailed: stock_rejected, stock_check_failed, update_failed or
                stock_conflict.
        """
        demand: dict[str, int] = {}
        for item in order.line_items:
            demand[item.product_id] = demand.get(item.product_id, 0) + item.quantity

        for attempt in range(1, STOCK_COMMIT_ATTEMPTS + 1):
            try:
                records = {pid: self.inventory.get(pid) for pid in demand}
            except Exception as e:
                raise _StepFailed(ReconciliationOutcome.STOCK_CHECK_FAILED, str(e)) from e

            shortages = [
                pid
                for pid, quantity in demand.items()
                if records[pid] is None or not records[pid].can_fulfil(quantity)  # type: ignore[union-attr]
            ]
            if shortages:
                return self._reject_for_stock(order, shortages, result)

            updates = [
                self.inventory.quantity_update_item(
                    pid,
                    record.available_quantity,  # type: ignore[arg-type]
                    record.quantity_after(demand[pid]),  # type: ignore[arg-type]
                )
                for pid, record in records.items()
                if record is not None and not record.is_unlimited
            ]

            try:
                if self.orders.commit_stock_adjustment(order.order_id, updates):
                    result.stock_adjusted = True
                    logger.info(
                        "Stock adjusted for order %s: %s",
                        order.order_id,
                        ", ".join(f"{pid}-{q}" for pid, q in demand.items()),
                    )
                    return True

                current = self.orders.get_by_id(order.order_id, consistent_read=True)
            except Exception as e:
                raise _StepFailed(ReconciliationOutcome.UPDATE_FAILED, str(e)) from e

            if current is None or current.stock_adjusted or current.status is not OrderStatus.PAID:
                # Another pass owns this order's stock adjustment
                result.stock_adjusted = bool(current and current.stock_adjusted)
                if current is not None:
                    result.order_status = current.status
                return False

            logger.warning(
                "Stock commit for order %s conflicted (attempt %d/%d)",
                order.order_id,
                attempt,
                STOCK_COMMIT_ATTEMPTS,
            )

        raise _StepFailed(
            ReconciliationOutcome.STOCK_CONFLICT,
            f"Stock commit conflicted {STOCK_COMMIT_ATTEMPTS} times",
        )

    def _reject_for_stock(
        self,
        order: Order,
        shortages: list[str],
        result: ReconciliationResult,
    ) -> bool:
        try:
            flipped = self.orders.mark_stock_rejected(order.order_id)
        except Exception as e:
            raise _StepFailed(ReconciliationOutcome.UPDATE_FAILED, str(e)) from e

        if not flipped:
            # Stock was adjusted by a concurrent pass; the order stays paid
            logger.info("Order %s stock adjusted concurrently, not rejecting", order.order_id)
            result.stock_adjusted = True
            return False

        logger.warning(
            "Order %s failed stock validation, insufficient: %s",
            order.order_id,
            ", ".join(shortages),
        )
        result.order_status = OrderStatus.FAILED
        raise _StepFailed(ReconciliationOutcome.STOCK_REJECTED)

    def _enqueue_side_effects(self, order: Order) -> list[str]:
        tasks = []
        if self.invoices is not None:
            tasks.append(SideEffectTask("invoice", self.invoices.generate_for_order, (order,)))
        if self.emails is not None:
            tasks.append(
                SideEffectTask("confirmation_email", self.emails.send_for_order, (order,))
            )
        return [task.name for task in tasks if self.dispatcher.submit(task)]

    # =========================================================================
    # Audit log
    # =========================================================================

    def record_notification(self, result: ReconciliationResult) -> None:
        """Store the delivery and its outcome in the audit table (best-effort)."""
        if self.db is None:
            return

        entry = NotificationLog(
            notification_id=str(uuid.uuid4()),
            topic=result.topic,
            reference_id=result.reference_id,
            received_at=dt.datetime.now(dt.UTC),
            outcome=result.outcome.value,
            payment_id=result.payment_id,
            order_id=result.order_id,
            error_message=result.error,
        )
        item = {
            k: v
            for k, v in entry.model_dump(mode="json").items()
            if v is not None
        }
        try:
            self.db.put_item(self.NOTIFICATIONS_TABLE, item)
        except Exception as e:
            logger.error("Failed to record notification %s: %s", entry.reference_id, e)
