"""Invoice model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class Invoice(BaseModel):
    """Invoice issued for a paid order (at most one per order)."""

    invoice_id: str = Field(..., description="Durable invoice identifier")
    order_id: str = Field(..., description="Order this invoice belongs to")
    number: str = Field(
        ...,
        description="Invoice number, suffixed with the order number",
        examples=["RC-20260115-AMG-0051"],
    )
    order_number: str
    total: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = "ARS"
    issued_at: datetime
    pdf_url: str | None = Field(
        default=None,
        description="Rendered PDF location, set once the document is rendered",
    )
    customer_id: str | None = None
    email: str | None = None
