"""Order store backed by DynamoDB.

Tables (names are prefixed per environment):
    orders       hash key order_id; GSIs idempotency_key-index,
                 display_number-index, legacy_id-index, status-index,
                 customer_id-index, email-index
    order-keys   hash key idempotency_key; uniqueness guard written in the
                 same transaction as the order
    counters     hash key counter_name; atomic order sequence
"""

import datetime as dt
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError

from storefront.models import (
    ErrorCode,
    LineItem,
    Order,
    OrderStatus,
    PaymentMeta,
    StorefrontError,
)
from storefront.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


def _to_dynamo(value: Any) -> Any:
    """Recursively convert floats (rejected by DynamoDB) to Decimal."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


class OrderStore:
    """Lookup and conditional update of orders."""

    ORDERS_TABLE = "orders"
    ORDER_KEYS_TABLE = "order-keys"
    COUNTERS_TABLE = "counters"
    ORDER_SEQUENCE = "orders"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize order store.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    @staticmethod
    def generate_order_id() -> str:
        """Generate a durable order ID like ORD-3F9A1C2B7D4E."""
        return f"ORD-{uuid.uuid4().hex[:12].upper()}"

    # =========================================================================
    # Writes
    # =========================================================================

    def create_order(self, order: Order) -> Order:
        """Persist a new order together with its idempotency-key guard.

        Raises:
            StorefrontError: DUPLICATE_IDEMPOTENCY_KEY if an order already
                exists for the key.
        """
        item = self._order_to_item(order)
        created = self.db.transact_write(
            [
                {
                    "Put": {
                        "TableName": self.db.table_name(self.ORDERS_TABLE),
                        "Item": self.db.serialize(item),
                        "ConditionExpression": "attribute_not_exists(order_id)",
                    }
                },
                {
                    "Put": {
                        "TableName": self.db.table_name(self.ORDER_KEYS_TABLE),
                        "Item": self.db.serialize(
                            {
                                "idempotency_key": order.idempotency_key,
                                "order_id": order.order_id,
                                "created_at": order.created_at.isoformat(),
                            }
                        ),
                        "ConditionExpression": "attribute_not_exists(idempotency_key)",
                    }
                },
            ]
        )
        if not created:
            raise StorefrontError(
                code=ErrorCode.DUPLICATE_IDEMPOTENCY_KEY,
                details={"idempotency_key": order.idempotency_key},
            )
        return order

    def next_sequence_number(self) -> int:
        """Allocate the next store-assigned order sequence number."""
        attrs = self.db.update_item(
            self.COUNTERS_TABLE,
            {"counter_name": self.ORDER_SEQUENCE},
            "SET #v = if_not_exists(#v, :zero) + :one",
            {":zero": 0, ":one": 1},
            {"#v": "value"},
        )
        if not attrs:
            raise StorefrontError(code=ErrorCode.ORDER_STORE_ERROR)
        return int(attrs["value"])

    def assign_display_number(
        self, order_id: str, legacy_id: int, display_number: str
    ) -> Order | None:
        """Store the sequence number and derived display number on an order."""
        attrs = self.db.update_item(
            self.ORDERS_TABLE,
            {"order_id": order_id},
            "SET legacy_id = :lid, display_number = :dn, updated_at = :now",
            {
                ":lid": str(legacy_id),
                ":dn": display_number,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
            condition_expression="attribute_exists(order_id)",
        )
        return self._item_to_order(attrs) if attrs else None

    def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        payment_meta: PaymentMeta,
    ) -> Order | None:
        """Write the order status and latest payment metadata.

        The write succeeds when the stored status is still pending or already
        equals ``status``, so a terminal status is never replaced by a
        different one even when two deliveries race.

        Returns:
            The updated order, or None if the order is missing or reached a
            different terminal status in the meantime.
        """
        attrs = self.db.update_item(
            self.ORDERS_TABLE,
            {"order_id": order_id},
            "SET #status = :status, payment_meta = :meta, updated_at = :now",
            {
                ":status": status.value,
                ":pending": OrderStatus.PENDING.value,
                ":meta": _to_dynamo(payment_meta.model_dump()),
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
            {"#status": "status"},
            condition_expression=(
                "attribute_exists(order_id) AND (#status = :pending OR #status = :status)"
            ),
        )
        return self._item_to_order(attrs) if attrs else None

    def update_payment_meta(self, order_id: str, payment_meta: PaymentMeta) -> Order | None:
        """Refresh only the payment metadata of an order."""
        attrs = self.db.update_item(
            self.ORDERS_TABLE,
            {"order_id": order_id},
            "SET payment_meta = :meta, updated_at = :now",
            {
                ":meta": _to_dynamo(payment_meta.model_dump()),
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
            condition_expression="attribute_exists(order_id)",
        )
        return self._item_to_order(attrs) if attrs else None

    def mark_stock_rejected(self, order_id: str) -> bool:
        """Flip a paid order to failed because stock validation failed.

        Only allowed while stock has not been adjusted.

        Returns:
            True if the order was flipped, False if stock was adjusted
            concurrently (the order stays paid).
        """
        attrs = self.db.update_item(
            self.ORDERS_TABLE,
            {"order_id": order_id},
            "SET #status = :failed, updated_at = :now",
            {
                ":failed": OrderStatus.FAILED.value,
                ":false": False,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
            {"#status": "status"},
            condition_expression="attribute_exists(order_id) AND stock_adjusted = :false",
        )
        return attrs is not None

    def commit_stock_adjustment(
        self,
        order_id: str,
        inventory_updates: list[dict[str, Any]],
    ) -> bool:
        """Atomically set ``stock_adjusted`` and apply inventory updates.

        The order flag flips false -> true only while the order is paid; each
        inventory update carries its own compare-and-set condition.

        Args:
            order_id: Order being fulfilled
            inventory_updates: TransactWriteItems built by the inventory store

        Returns:
            True if committed, False if any condition failed.
        """
        flag_update = {
            "Update": {
                "TableName": self.db.table_name(self.ORDERS_TABLE),
                "Key": self.db.serialize({"order_id": order_id}),
                "UpdateExpression": "SET stock_adjusted = :true, updated_at = :now",
                "ConditionExpression": "stock_adjusted = :false AND #status = :paid",
                "ExpressionAttributeNames": {"#status": "status"},
                "ExpressionAttributeValues": self.db.serialize(
                    {
                        ":true": True,
                        ":false": False,
                        ":paid": OrderStatus.PAID.value,
                        ":now": dt.datetime.now(dt.UTC).isoformat(),
                    }
                ),
            }
        }
        return self.db.transact_write([flag_update, *inventory_updates])

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, order_id: str, consistent_read: bool = False) -> Order | None:
        """Get an order by durable ID."""
        item = self.db.get_item(
            self.ORDERS_TABLE, {"order_id": order_id}, consistent_read=consistent_read
        )
        return self._item_to_order(item) if item else None

    def get_by_idempotency_key(self, idempotency_key: str) -> Order | None:
        """Get the (single) order registered for an idempotency key."""
        items = self.db.query_by_gsi(
            self.ORDERS_TABLE,
            "idempotency_key-index",
            "idempotency_key",
            idempotency_key,
        )
        if len(items) > 1:
            logger.error(
                "Multiple orders share idempotency key %s: %s",
                idempotency_key,
                [i["order_id"] for i in items],
            )
        return self._item_to_order(items[0]) if items else None

    def get_by_display_number(self, display_number: str) -> Order | None:
        """Get an order by its human-facing number (e.g. AMG-0051)."""
        items = self.db.query_by_gsi(
            self.ORDERS_TABLE,
            "display_number-index",
            "display_number",
            display_number,
        )
        return self._item_to_order(items[0]) if items else None

    def get_by_legacy_id(self, legacy_id: int | str) -> Order | None:
        """Get an order by its store sequence number."""
        items = self.db.query_by_gsi(
            self.ORDERS_TABLE,
            "legacy_id-index",
            "legacy_id",
            str(int(legacy_id)),
        )
        return self._item_to_order(items[0]) if items else None

    def list_by_status(self, status: OrderStatus) -> list[Order]:
        """List orders currently in ``status``."""
        items = self.db.query_by_gsi(
            self.ORDERS_TABLE,
            "status-index",
            "status",
            status.value,
        )
        return [self._item_to_order(item) for item in items]

    def list_by_customer(self, customer_id: str | None, email: str | None) -> list[Order]:
        """List orders owned by a customer, falling back to the order email."""
        if customer_id:
            items = self.db.query_by_gsi(
                self.ORDERS_TABLE, "customer_id-index", "customer_id", customer_id
            )
            if items:
                return [self._item_to_order(item) for item in items]
        if email:
            items = self.db.query_by_gsi(
                self.ORDERS_TABLE, "email-index", "email", email.strip().lower()
            )
            return [self._item_to_order(item) for item in items]
        return []

    def find(self, id_or_number: str) -> Order | None:
        """Resolve an order by durable ID, then display number, then legacy ID.

        Raises:
            StorefrontError: ORDER_STORE_ERROR if the store cannot be queried.
        """
        ref = id_or_number.strip()
        if not ref:
            return None

        try:
            order = self.get_by_id(ref)
            if order:
                return order

            order = self.get_by_display_number(ref)
            if order:
                return order

            if ref.isascii() and ref.isdigit():
                return self.get_by_legacy_id(ref)
        except ClientError as e:
            logger.error("Order lookup failed for %s: %s", ref, e)
            raise StorefrontError(
                code=ErrorCode.ORDER_STORE_ERROR,
                details={"id": ref},
            ) from e

        return None

    # Conversion helpers

    def _order_to_item(self, order: Order) -> dict[str, Any]:
        """Convert Order model to DynamoDB item."""
        item: dict[str, Any] = {
            "order_id": order.order_id,
            "idempotency_key": order.idempotency_key,
            "status": order.status.value,
            "stock_adjusted": order.stock_adjusted,
            "line_items": [
                {
                    "product_id": li.product_id,
                    "title": li.title,
                    "quantity": li.quantity,
                    "unit_price": li.unit_price,
                }
                for li in order.line_items
            ],
            "total": order.total,
            "created_at": order.created_at.isoformat(),
        }
        if order.legacy_id is not None:
            item["legacy_id"] = str(order.legacy_id)
        if order.display_number:
            item["display_number"] = order.display_number
        if order.payment_meta:
            item["payment_meta"] = _to_dynamo(order.payment_meta.model_dump())
        if order.email:
            item["email"] = order.email.strip().lower()
        if order.customer_name:
            item["customer_name"] = order.customer_name
        if order.phone:
            item["phone"] = order.phone
        if order.shipping_address:
            item["shipping_address"] = _to_dynamo(order.shipping_address)
        if order.customer_id:
            item["customer_id"] = order.customer_id
        if order.updated_at:
            item["updated_at"] = order.updated_at.isoformat()
        return item

    def _item_to_order(self, item: dict[str, Any]) -> Order:
        """Convert DynamoDB item to Order model."""
        meta = item.get("payment_meta")
        return Order(
            order_id=item["order_id"],
            idempotency_key=item["idempotency_key"],
            legacy_id=int(item["legacy_id"]) if item.get("legacy_id") else None,
            display_number=item.get("display_number"),
            status=OrderStatus(item.get("status", OrderStatus.PENDING.value)),
            stock_adjusted=bool(item.get("stock_adjusted", False)),
            line_items=[
                LineItem(
                    product_id=li["product_id"],
                    title=li.get("title", "Producto"),
                    quantity=int(li["quantity"]),
                    unit_price=Decimal(str(li["unit_price"])),
                )
                for li in item.get("line_items", [])
            ],
            payment_meta=PaymentMeta(**meta) if meta else None,
            email=item.get("email"),
            customer_name=item.get("customer_name"),
            phone=item.get("phone"),
            shipping_address=item.get("shipping_address"),
            customer_id=item.get("customer_id"),
            total=Decimal(str(item.get("total", 0))),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            updated_at=(
                dt.datetime.fromisoformat(item["updated_at"])
                if item.get("updated_at")
                else None
            ),
        )
