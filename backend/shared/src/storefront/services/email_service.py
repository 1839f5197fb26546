"""Order confirmation email via Amazon SES."""

import html
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import ClientError

from storefront.models import LineItem, Order
from storefront.utils.logging import get_logger

if TYPE_CHECKING:
    from storefront.config import Settings

logger = get_logger(__name__)


class EmailDeliveryError(Exception):
    """Raised when a confirmation email cannot be sent."""


def format_ars(amount: Decimal | int | float) -> str:
    """Format an amount the way es-AR prices are shown, e.g. ``$ 1.234,50``."""
    text = f"{Decimal(str(amount)):,.2f}"
    return "$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")


def _address_text(shipping_address: dict[str, Any] | None) -> str:
    if not shipping_address:
        return ""
    for key in ("text", "address"):
        value = shipping_address.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ", ".join(str(v) for v in shipping_address.values() if v not in (None, ""))


class EmailService:
    """Service for transactional emails.

    Usage:
        email_svc = EmailService(settings)
        email_svc.send_order_confirmation(
            email="ana@example.com",
            name="Ana",
            order_number="AMG-0051",
            total=Decimal("25000"),
            items=order.line_items,
        )
    """

    def __init__(self, settings: "Settings", ses_client: Any | None = None) -> None:
        """Initialize email service.

        Args:
            settings: Process settings (sender, test recipient, region)
            ses_client: Optional boto3 SES client
        """
        self._settings = settings
        self._ses = ses_client or boto3.client("ses", region_name=settings.aws_region)

    def send_for_order(self, order: Order) -> str | None:
        """Send the confirmation for an order.

        Returns:
            Recipient address, or None if the order has no email on file.
        """
        if not order.email:
            logger.warning(
                "Order %s has no email on file, skipping confirmation", order.order_id
            )
            return None

        return self.send_order_confirmation(
            email=order.email,
            name=order.customer_name,
            order_number=order.order_number,
            total=order.total,
            items=order.line_items,
            phone=order.phone,
            shipping_address=order.shipping_address,
        )

    def send_order_confirmation(
        self,
        *,
        email: str,
        name: str | None,
        order_number: str,
        total: Decimal,
        items: list[LineItem],
        phone: str | None = None,
        shipping_address: dict[str, Any] | None = None,
    ) -> str:
        """Send an order confirmation email.

        ``test_email_to`` in settings, when set, replaces the recipient.

        Returns:
            The address the email was sent to.

        Raises:
            EmailDeliveryError: If no sender is configured or SES rejects the send.
        """
        sender = self._settings.email_from
        if not sender:
            raise EmailDeliveryError("EMAIL_FROM is not configured")

        to = self._settings.test_email_to or email
        subject = f"Confirmación de pedido {order_number}"
        html_body = self._render_html(
            name=name,
            order_number=order_number,
            total=total,
            items=items,
            phone=phone,
            address=_address_text(shipping_address),
        )

        try:
            self._ses.send_email(
                Source=sender,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Html": {"Data": html_body, "Charset": "UTF-8"}},
                },
            )
        except ClientError as e:
            raise EmailDeliveryError(f"SES rejected confirmation for {order_number}: {e}") from e

        logger.info(
            "Sent confirmation for %s to %s... (forced=%s)",
            order_number,
            to[:20],
            bool(self._settings.test_email_to),
        )
        return to

    @staticmethod
    def _render_html(
        *,
        name: str | None,
        order_number: str,
        total: Decimal,
        items: list[LineItem],
        phone: str | None,
        address: str,
    ) -> str:
        esc = html.escape
        items_html = "".join(
            f"<li>{item.quantity} x {esc(item.title)} - {esc(format_ars(item.unit_price))}</li>"
            for item in items
        )
        greeting = f", {esc(name)}" if name else ""

        return f"""
    <div style="font-family:Arial,sans-serif;line-height:1.5">
        <h2>¡Gracias por tu compra{greeting}!</h2>
        <p>Confirmamos tu pedido <b>{esc(order_number)}</b>.</p>

        <h3>Dirección de envío</h3>
        <p>{esc(address or "-")}</p>

        <h3>Teléfono</h3>
        <p>{esc(phone or "-")}</p>

        <h3>Items</h3>
        <ul>{items_html or "<li>-</li>"}</ul>

        <h3>Total</h3>
        <p><b>{esc(format_ars(total))}</b></p>

        <p style="margin-top:24px;color:#666">
            Si tenés dudas, respondé este email.
        </p>
    </div>
    """
