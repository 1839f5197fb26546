"""Unit tests for the order confirmation email."""

from decimal import Decimal
from typing import Callable
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from storefront.config import Settings
from storefront.models import LineItem, Order
from storefront.services.email_service import EmailDeliveryError, EmailService, format_ars


@pytest.fixture
def ses_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def email_service(settings: Settings, ses_client: MagicMock) -> EmailService:
    return EmailService(settings, ses_client=ses_client)


def send(service: EmailService, **overrides) -> str:
    kwargs = {
        "email": "ana@example.com",
        "name": "Ana",
        "order_number": "AMG-0051",
        "total": Decimal("29500"),
        "items": [LineItem(product_id="p1", title="Mate <imperial>", quantity=2, unit_price=Decimal("12500"))],
        "phone": "+54 11 5555-0000",
        "shipping_address": {"text": "Av. Corrientes 1234, CABA"},
    }
    kwargs.update(overrides)
    return service.send_order_confirmation(**kwargs)


class TestSendOrderConfirmation:
    def test_sends_html_email(self, email_service: EmailService, ses_client: MagicMock):
        recipient = send(email_service)

        assert recipient == "ana@example.com"
        call = ses_client.send_email.call_args.kwargs
        assert call["Source"] == "ventas@tienda.example.com"
        assert call["Destination"] == {"ToAddresses": ["ana@example.com"]}
        assert call["Message"]["Subject"]["Data"] == "Confirmación de pedido AMG-0051"
        body = call["Message"]["Body"]["Html"]["Data"]
        assert "AMG-0051" in body
        assert "Mate &lt;imperial&gt;" in body
        assert "$ 29.500,00" in body
        assert "Av. Corrientes 1234, CABA" in body

    def test_test_recipient_override(self, settings: Settings, ses_client: MagicMock):
        service = EmailService(
            settings.model_copy(update={"test_email_to": "qa@tienda.example.com"}),
            ses_client=ses_client,
        )

        assert send(service) == "qa@tienda.example.com"
        assert ses_client.send_email.call_args.kwargs["Destination"] == {
            "ToAddresses": ["qa@tienda.example.com"]
        }

    def test_missing_sender(self, settings: Settings, ses_client: MagicMock):
        service = EmailService(settings.model_copy(update={"email_from": None}), ses_client=ses_client)

        with pytest.raises(EmailDeliveryError):
            send(service)
        ses_client.send_email.assert_not_called()

    def test_ses_rejection(self, email_service: EmailService, ses_client: MagicMock):
        ses_client.send_email.side_effect = ClientError(
            {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified."}},
            "SendEmail",
        )

        with pytest.raises(EmailDeliveryError, match="AMG-0051"):
            send(email_service)

    def test_address_without_text_key(self, email_service: EmailService, ses_client: MagicMock):
        send(email_service, shipping_address={"street": "Florida 100", "city": "CABA", "zip": None})

        body = ses_client.send_email.call_args.kwargs["Message"]["Body"]["Html"]["Data"]
        assert "Florida 100, CABA" in body


class TestSendForOrder:
    def test_uses_order_fields(
        self,
        email_service: EmailService,
        ses_client: MagicMock,
        make_order: Callable[..., Order],
    ):
        order = make_order()

        assert email_service.send_for_order(order) == "ana@example.com"
        subject = ses_client.send_email.call_args.kwargs["Message"]["Subject"]["Data"]
        assert subject == f"Confirmación de pedido {order.order_number}"

    def test_order_without_email_is_skipped(
        self,
        email_service: EmailService,
        ses_client: MagicMock,
        make_order: Callable[..., Order],
    ):
        order = make_order(email=None)

        assert email_service.send_for_order(order) is None
        ses_client.send_email.assert_not_called()


def test_sends_through_ses(settings: Settings, aws_credentials: None):
    """End-to-end against moto's SES with a verified sender."""
    with mock_aws():
        ses = boto3.client("ses", region_name="eu-west-1")
        ses.verify_email_identity(EmailAddress="ventas@tienda.example.com")

        service = EmailService(settings)

        assert send(service) == "ana@example.com"
        quota = ses.get_send_quota()
        assert quota["SentLast24Hours"] == 1


@pytest.mark.parametrize(
    "amount,expected",
    [
        (Decimal("1234.5"), "$ 1.234,50"),
        (Decimal("29500"), "$ 29.500,00"),
        (0, "$ 0,00"),
        (1234567.891, "$ 1.234.567,89"),
    ],
)
def test_format_ars(amount, expected):
    assert format_ars(amount) == expected
