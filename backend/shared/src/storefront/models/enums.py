"""Enumeration types for storefront data models."""

from enum import Enum


class OrderStatus(str, Enum):
    """Status of an order (one checkout attempt)."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Terminal statuses are never changed by a later payment notification."""
        return self is not OrderStatus.PENDING


class NotificationTopic(str, Enum):
    """Kind of payment notification received from the provider."""

    PAYMENT = "payment"
    ORDER_GROUP = "order-group"
    UNSUPPORTED = "unsupported"


class ProviderPaymentStatus(str, Enum):
    """Payment statuses the provider reports that map to a final order status.

    The provider vocabulary is open-ended (in_process, authorized, refunded,
    ...); anything not listed here maps to a pending order.
    """

    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ReconciliationOutcome(str, Enum):
    """How a single notification delivery ended."""

    PROCESSED = "processed"
    IGNORED = "ignored"
    NO_PAYMENT_YET = "no_payment_yet"
    UNSUPPORTED_TOPIC = "unsupported_topic"
    INVALID_SIGNATURE = "invalid_signature"
    MISCONFIGURED = "misconfigured"
    PAYMENT_FETCH_FAILED = "payment_fetch_failed"
    MISSING_EXTERNAL_REFERENCE = "missing_external_reference"
    ORDER_LOOKUP_FAILED = "order_lookup_failed"
    ORDER_NOT_FOUND = "order_not_found"
    UPDATE_FAILED = "update_failed"
    STOCK_REJECTED = "stock_rejected"
    STOCK_CHECK_FAILED = "stock_check_failed"
    STOCK_CONFLICT = "stock_conflict"
