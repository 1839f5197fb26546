"""Backend services for the storefront."""

from .checkout import CheckoutService
from .dynamodb import DynamoDBService
from .email_service import EmailDeliveryError, EmailService
from .inventory_store import InventoryStore
from .invoice_service import InvoiceService
from .mercadopago import (
    MercadoPagoClient,
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
)
from .order_store import OrderStore
from .reconciliation import ReconciliationEngine
from .side_effects import SideEffectDispatcher, SideEffectTask
from .ssm_service import SSMService, SSMServiceError

__all__ = [
    "CheckoutService",
    "DynamoDBService",
    "EmailDeliveryError",
    "EmailService",
    "InventoryStore",
    "InvoiceService",
    "MercadoPagoClient",
    "PaymentProviderError",
    "PaymentProviderNotConfiguredError",
    "OrderStore",
    "ReconciliationEngine",
    "SideEffectDispatcher",
    "SideEffectTask",
    "SSMService",
    "SSMServiceError",
]
