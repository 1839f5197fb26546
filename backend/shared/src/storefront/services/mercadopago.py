"""Mercado Pago client for payment lookup and checkout sessions.

Thin wrapper over the Checkout Pro REST API:
- ``GET /v1/payments/{id}``: payment truth for reconciliation
- ``GET /merchant_orders/{id}``: order group listing payment attempts
- ``POST /checkout/preferences``: checkout session for a pending order

Provider JSON is decoded into strict models at this boundary.
"""

import hashlib
import hmac
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from storefront.models import CheckoutItem, CheckoutSession, OrderGroup, PaymentRecord
from storefront.utils.logging import get_logger

if TYPE_CHECKING:
    from storefront.config import Settings

logger = get_logger(__name__)


class PaymentProviderError(Exception):
    """Raised when a payment provider call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize with message and optional HTTP status.

        Args:
            message: Human-readable error message.
            status_code: Provider HTTP status code if a response was received.
        """
        super().__init__(message)
        self.status_code = status_code


class PaymentProviderNotConfiguredError(PaymentProviderError):
    """Raised when the provider access token is missing."""


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Pick the most descriptive error message from a provider error body."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback

    for key in ("message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value

    cause = body.get("cause")
    if isinstance(cause, list) and cause and isinstance(cause[0], dict):
        description = cause[0].get("description")
        if isinstance(description, str) and description:
            return description

    return fallback


class MercadoPagoClient:
    """Client for Mercado Pago payment operations.

    Usage:
        client = MercadoPagoClient(settings)
        payment = client.get_payment("1234567890")
        payment.idempotency_key  # order correlation key
    """

    def __init__(
        self,
        settings: "Settings",
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize client.

        Args:
            settings: Process settings (base URL, access token, site URL)
            http_client: Optional preconfigured httpx client (tests inject a
                MockTransport-backed client here)
        """
        self._settings = settings
        self._http = http_client

    def _get_http(self) -> httpx.Client:
        """Get or create the HTTP client (lazy initialization).

        Raises:
            PaymentProviderNotConfiguredError: If no access token is configured.
        """
        if not self._settings.mp_access_token:
            raise PaymentProviderNotConfiguredError("Mercado Pago access token is not configured")

        if self._http is None:
            kwargs: dict[str, Any] = {"base_url": self._settings.mp_api_base_url}
            if self._settings.http_timeout_seconds is not None:
                kwargs["timeout"] = self._settings.http_timeout_seconds
            self._http = httpx.Client(**kwargs)
        return self._http

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send an authenticated request and decode the JSON object body.

        Raises:
            PaymentProviderError: On transport error, non-2xx status or a body
                that is not a JSON object.
        """
        client = self._get_http()
        headers = {"Authorization": f"Bearer {self._settings.mp_access_token}"}

        try:
            response = client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise PaymentProviderError(f"Mercado Pago request failed: {e}") from e

        if not response.is_success:
            message = _error_message(
                response, f"Mercado Pago returned HTTP {response.status_code}"
            )
            raise PaymentProviderError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise PaymentProviderError(
                "Mercado Pago returned an invalid JSON body",
                status_code=response.status_code,
            ) from e

        if not isinstance(body, dict):
            raise PaymentProviderError(
                "Mercado Pago returned an unexpected body",
                status_code=response.status_code,
            )
        return body

    # =========================================================================
    # Reconciliation lookups
    # =========================================================================

    # Ids come from unauthenticated notifications; each is sent as exactly one
    # percent-encoded path segment.

    def get_payment(self, payment_id: str) -> PaymentRecord:
        """Fetch a payment by ID.

        Raises:
            PaymentProviderError: If the payment cannot be fetched.
        """
        body = self._request("GET", f"/v1/payments/{quote(payment_id, safe='')}")
        return PaymentRecord.from_provider(body, payment_id)

    def get_order_group(self, group_id: str) -> OrderGroup:
        """Fetch an order group (merchant order) by ID.

        Raises:
            PaymentProviderError: If the group cannot be fetched.
        """
        body = self._request("GET", f"/merchant_orders/{quote(group_id, safe='')}")
        return OrderGroup.from_provider(body, group_id)

    def resolve_payment_id(self, group_id: str) -> str | None:
        """Resolve an order group to the payment that should be reconciled.

        Returns:
            The approved payment's ID if any, else any payment ID, else None
            when the group has no payments yet.
        """
        return self.get_order_group(group_id).resolve_payment_id()

    # =========================================================================
    # Checkout
    # =========================================================================

    def create_checkout_session(
        self,
        *,
        items: list[CheckoutItem],
        external_reference: str,
        order_id: str,
        order_number: str | None = None,
    ) -> CheckoutSession:
        """Create a checkout session (preference) scoped to an order.

        Args:
            items: Normalised line items (positive quantity and unit price)
            external_reference: Order idempotency key, echoed back on payments
            order_id: Durable order ID, used in the return URLs
            order_number: Display number, sent as metadata when known

        Returns:
            CheckoutSession with the redirect URLs.

        Raises:
            PaymentProviderError: If the session cannot be created.
        """
        site_url = self._settings.site_url

        def back_url(status: str) -> str:
            return f"{site_url}/gracias?status={status}&orderId={quote(order_id, safe='')}"

        metadata = {
            "orderId": order_id,
            "orderNumber": order_number,
            "mpExternalReference": external_reference,
        }

        payload = {
            "items": [
                {
                    "title": item.title,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "currency_id": item.currency_id,
                }
                for item in items
            ],
            "external_reference": external_reference,
            "back_urls": {
                "success": back_url("success"),
                "failure": back_url("failure"),
                "pending": back_url("pending"),
            },
            "auto_return": "approved",
            "notification_url": self._settings.notification_url,
            "metadata": {k: v for k, v in metadata.items() if v not in (None, "")},
        }

        body = self._request("POST", "/checkout/preferences", json=payload)
        session = CheckoutSession.model_validate(
            {
                "id": str(body.get("id", "")),
                "init_point": body.get("init_point"),
                "sandbox_init_point": body.get("sandbox_init_point"),
            }
        )
        if not session.id:
            raise PaymentProviderError("Mercado Pago preference response has no id")

        logger.info(
            "Checkout session created: %s for order %s",
            session.id,
            order_id,
        )
        return session

    # =========================================================================
    # Webhook signature
    # =========================================================================

    def verify_signature(
        self,
        x_signature: str | None,
        x_request_id: str | None,
        data_id: str,
    ) -> bool:
        """Verify the ``x-signature`` header of a webhook delivery.

        The header has the form ``ts=<timestamp>,v1=<hex digest>``; the
        digest is HMAC-SHA256 of ``id:{data_id};request-id:{x_request_id};ts:{ts};``
        keyed with the webhook secret. Alphanumeric ids are signed in lowercase
        by Mercado Pago, so ``data_id`` is lowercased before hashing.

        Returns:
            True if valid or if no webhook secret is configured.

        Raises:
            PaymentProviderNotConfiguredError: If the secret could not be
                loaded and signatures are required.
        """
        secret = self._settings.mp_webhook_secret
        if not secret:
            if self._settings.signature_required:
                raise PaymentProviderNotConfiguredError(
                    "Webhook secret could not be loaded; refusing unverified delivery"
                )
            logger.debug("Webhook signature check skipped: no secret configured")
            return True

        if not x_signature or not x_request_id:
            logger.warning("Webhook delivery missing signature headers")
            return False

        parts: dict[str, str] = {}
        for part in x_signature.split(","):
            if "=" in part:
                key, value = part.split("=", 1)
                parts[key.strip()] = value.strip()

        ts = parts.get("ts")
        v1 = parts.get("v1")
        if not ts or not v1:
            logger.warning("Webhook signature header malformed: %s", x_signature)
            return False

        manifest = f"id:{data_id.lower()};request-id:{x_request_id};ts:{ts};"
        expected = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()

        if not hmac.compare_digest(expected, v1):
            logger.warning("Webhook signature mismatch for data id %s", data_id)
            return False
        return True
