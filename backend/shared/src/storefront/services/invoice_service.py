"""Invoice service: one invoice per paid order.

Invoices live in the ``invoices`` table keyed by ``order_id`` so that
generation is naturally idempotent: the conditional put only succeeds for
the first call per order.
"""

import datetime as dt
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from storefront.models import ErrorCode, Invoice, Order, StorefrontError
from storefront.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


def attachment_url(pdf_url: str, base_url: str) -> str:
    """Make a PDF URL absolute and force a download disposition.

    CDN URLs containing ``/upload/`` get ``fl_attachment`` inserted so the
    browser downloads the file instead of rendering it.
    """
    url = pdf_url.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = f"{base_url}{url}" if url.startswith("/") else f"{base_url}/{url}"
    if "/upload/fl_attachment/" in url:
        return url
    return url.replace("/upload/", "/upload/fl_attachment/", 1)


class InvoiceService:
    """Service for invoice generation and lookup."""

    TABLE = "invoices"

    def __init__(self, db: "DynamoDBService", currency: str = "ARS") -> None:
        """Initialize invoice service.

        Args:
            db: DynamoDB service instance
            currency: Currency code recorded on new invoices
        """
        self.db = db
        self.currency = currency

    @staticmethod
    def invoice_number(order_number: str, issued_at: dt.datetime) -> str:
        """Build the invoice number, e.g. RC-20260115-AMG-0051."""
        return f"RC-{issued_at:%Y%m%d}-{order_number}"

    def generate_for_order(self, order: Order) -> Invoice:
        """Create the invoice for an order, or return the existing one.

        Safe to call repeatedly for the same order.
        """
        issued_at = dt.datetime.now(dt.UTC)
        invoice = Invoice(
            invoice_id=f"INV-{uuid.uuid4().hex[:12].upper()}",
            order_id=order.order_id,
            number=self.invoice_number(order.order_number, issued_at),
            order_number=order.order_number,
            total=order.total,
            currency=self.currency,
            issued_at=issued_at,
            customer_id=order.customer_id,
            email=order.email,
        )

        created = self.db.put_item(
            self.TABLE,
            self._invoice_to_item(invoice),
            condition_expression="attribute_not_exists(order_id)",
        )
        if created:
            logger.info("Invoice %s issued for order %s", invoice.number, order.order_id)
            return invoice

        existing = self.get_for_order(order.order_id)
        if existing is None:
            raise StorefrontError(
                code=ErrorCode.INVOICE_NOT_FOUND,
                details={"order_id": order.order_id},
            )
        logger.info("Invoice already exists for order %s: %s", order.order_id, existing.number)
        return existing

    def get_for_order(self, order_id: str) -> Invoice | None:
        """Get the invoice of an order."""
        item = self.db.get_item(self.TABLE, {"order_id": order_id})
        return self._item_to_invoice(item) if item else None

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        """Get an invoice by its ID."""
        items = self.db.query_by_gsi(self.TABLE, "invoice_id-index", "invoice_id", invoice_id)
        return self._item_to_invoice(items[0]) if items else None

    def list_for_orders(self, orders: list[Order]) -> list[Invoice]:
        """List invoices belonging to the given orders, newest first.

        An invoice counts only if its number ends with ``-{order number}``.
        """
        invoices = []
        for order in orders:
            invoice = self.get_for_order(order.order_id)
            if invoice and invoice.number.endswith(f"-{order.order_number}"):
                invoices.append(invoice)
        return sorted(invoices, key=lambda i: i.issued_at, reverse=True)

    def attach_pdf(self, order_id: str, pdf_url: str) -> Invoice | None:
        """Record the rendered PDF location on an invoice."""
        attrs = self.db.update_item(
            self.TABLE,
            {"order_id": order_id},
            "SET pdf_url = :url",
            {":url": pdf_url},
            condition_expression="attribute_exists(order_id)",
        )
        return self._item_to_invoice(attrs) if attrs else None

    @staticmethod
    def is_owner(
        invoice: Invoice,
        order: Order | None,
        user_id: str | None,
        user_email: str | None,
    ) -> bool:
        """Whether the caller owns the invoice.

        Ownership is decided by the owner id on the invoice or its order,
        falling back to the order email.
        """
        owner_id = invoice.customer_id or (order.customer_id if order else None)
        if owner_id is not None and user_id:
            return owner_id == user_id

        order_email = (order.email if order else None) or invoice.email
        if user_email and order_email:
            return user_email.strip().lower() == order_email.strip().lower()
        return False

    # Conversion helpers

    def _invoice_to_item(self, invoice: Invoice) -> dict[str, Any]:
        item: dict[str, Any] = {
            "order_id": invoice.order_id,
            "invoice_id": invoice.invoice_id,
            "number": invoice.number,
            "order_number": invoice.order_number,
            "total": invoice.total,
            "currency": invoice.currency,
            "issued_at": invoice.issued_at.isoformat(),
        }
        if invoice.pdf_url:
            item["pdf_url"] = invoice.pdf_url
        if invoice.customer_id:
            item["customer_id"] = invoice.customer_id
        if invoice.email:
            item["email"] = invoice.email
        return item

    def _item_to_invoice(self, item: dict[str, Any]) -> Invoice:
        return Invoice(
            invoice_id=item["invoice_id"],
            order_id=item["order_id"],
            number=item["number"],
            order_number=item["order_number"],
            total=Decimal(str(item.get("total", 0))),
            currency=item.get("currency", "ARS"),
            issued_at=dt.datetime.fromisoformat(item["issued_at"]),
            pdf_url=item.get("pdf_url"),
            customer_id=item.get("customer_id"),
            email=item.get("email"),
        )
