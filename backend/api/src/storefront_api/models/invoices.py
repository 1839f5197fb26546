"""API models for invoice endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field

from storefront.models import Invoice


class InvoiceSummary(BaseModel):
    """Invoice row on the shopper's invoices page."""

    id: str
    number: str
    issued_at: str = Field(..., serialization_alias="issuedAt")
    total: Decimal
    currency: str
    pdf_url: str | None = Field(default=None, serialization_alias="pdfUrl")
    order_number: str = Field(..., serialization_alias="orderNumber")

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceSummary":
        return cls(
            id=invoice.invoice_id,
            number=invoice.number,
            issued_at=invoice.issued_at.isoformat(),
            total=invoice.total,
            currency=invoice.currency,
            pdf_url=invoice.pdf_url,
            order_number=invoice.order_number,
        )


class MyInvoicesResponse(BaseModel):
    invoices: list[InvoiceSummary]
