"""Inventory record model."""

from typing import Literal

from pydantic import BaseModel, Field

UNLIMITED = "unlimited"


class InventoryRecord(BaseModel):
    """Available quantity for one product.

    ``available_quantity`` is either a non-negative integer or the
    ``"unlimited"`` sentinel for products that are never out of stock.
    """

    product_id: str
    available_quantity: int | Literal["unlimited"] = Field(...)

    @property
    def is_unlimited(self) -> bool:
        return self.available_quantity == UNLIMITED

    def can_fulfil(self, quantity: int) -> bool:
        """Whether ``quantity`` units can be taken from this record."""
        if self.is_unlimited:
            return True
        return quantity <= self.available_quantity  # type: ignore[operator]

    def quantity_after(self, quantity: int) -> int | Literal["unlimited"]:
        """Quantity left after taking ``quantity`` units, floored at zero."""
        if self.is_unlimited:
            return UNLIMITED
        return max(0, self.available_quantity - quantity)  # type: ignore[operator]
