"""Pydantic models for storefront data entities."""

from .enums import (
    NotificationTopic,
    OrderStatus,
    ProviderPaymentStatus,
    ReconciliationOutcome,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    ErrorCode,
    ErrorResponse,
    StorefrontError,
)
from .inventory import UNLIMITED, InventoryRecord
from .invoice import Invoice
from .notification import (
    OrderGroupNotification,
    PaymentNotification,
    PaymentTopicNotification,
    UnsupportedNotification,
    classify_topic,
    decode_notification,
)
from .order import LineItem, Order, OrderCreate, PaymentMeta
from .payment import (
    CheckoutItem,
    CheckoutSession,
    GroupPayment,
    OrderGroup,
    PaymentRecord,
    map_provider_status,
)
from .reconciliation import NotificationLog, ReconciliationResult

__all__ = [
    # Enums
    "NotificationTopic",
    "OrderStatus",
    "ProviderPaymentStatus",
    "ReconciliationOutcome",
    # Errors
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "ErrorCode",
    "ErrorResponse",
    "StorefrontError",
    # Inventory
    "UNLIMITED",
    "InventoryRecord",
    # Invoice
    "Invoice",
    # Notifications
    "OrderGroupNotification",
    "PaymentNotification",
    "PaymentTopicNotification",
    "UnsupportedNotification",
    "classify_topic",
    "decode_notification",
    # Order
    "LineItem",
    "Order",
    "OrderCreate",
    "PaymentMeta",
    # Payment provider
    "CheckoutItem",
    "CheckoutSession",
    "GroupPayment",
    "OrderGroup",
    "PaymentRecord",
    "map_provider_status",
    # Reconciliation
    "NotificationLog",
    "ReconciliationResult",
]
