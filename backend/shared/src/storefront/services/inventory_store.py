"""Inventory store: per-product available quantity in DynamoDB."""

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from storefront.models import UNLIMITED, InventoryRecord

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


def _to_attribute(quantity: int | str) -> int | str:
    return UNLIMITED if quantity == UNLIMITED else int(quantity)


class InventoryStore:
    """Lookup and conditional update of product stock."""

    TABLE = "inventory"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize inventory store.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def get(self, product_id: str, consistent_read: bool = True) -> InventoryRecord | None:
        """Get the current inventory record for a product.

        Args:
            product_id: Stable product identifier
            consistent_read: Read the latest committed value (default)

        Returns:
            InventoryRecord, or None if the product has no inventory row
        """
        item = self.db.get_item(
            self.TABLE, {"product_id": product_id}, consistent_read=consistent_read
        )
        if not item:
            return None

        raw = item.get("available_quantity", 0)
        quantity: int | str = (
            UNLIMITED if raw == UNLIMITED else int(Decimal(str(raw)))
        )
        return InventoryRecord(product_id=product_id, available_quantity=quantity)

    def set_available_quantity(self, product_id: str, quantity: int | str) -> None:
        """Set the absolute available quantity (or ``"unlimited"``)."""
        self.db.put_item(
            self.TABLE,
            {"product_id": product_id, "available_quantity": _to_attribute(quantity)},
        )

    def quantity_update_item(
        self,
        product_id: str,
        expected: int,
        new: int,
    ) -> dict[str, Any]:
        """Build a transaction item setting an absolute quantity.

        The update only applies while the stored quantity still equals
        ``expected`` (the value read during stock validation).
        """
        return {
            "Update": {
                "TableName": self.db.table_name(self.TABLE),
                "Key": self.db.serialize({"product_id": product_id}),
                "UpdateExpression": "SET available_quantity = :new",
                "ConditionExpression": "available_quantity = :seen",
                "ExpressionAttributeValues": self.db.serialize(
                    {":new": int(new), ":seen": int(expected)}
                ),
            }
        }
