"""FastAPI dependency injection providers for storefront services.

Settings are loaded once (``get_settings``) and passed by reference into
every service constructor. Services are lazily instantiated and cached with
@lru_cache.

Usage in routes:
    from storefront_api.dependencies import get_order_store

    @router.get("/orders/{order_ref}")
    async def get_order(orders: OrderStore = Depends(get_order_store)):
        ...

Service Dependency Graph:
    Settings (get_settings)
        ├── DynamoDBService
        │       ├── OrderStore ─────────┐
        │       ├── InventoryStore      │
        │       └── InvoiceService      │
        ├── MercadoPagoClient ──────────┤
        ├── EmailService                ├── CheckoutService
        └── SideEffectDispatcher        └── ReconciliationEngine

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from storefront.config import Settings, load_settings
from storefront.services.checkout import CheckoutService
from storefront.services.dynamodb import DynamoDBService
from storefront.services.email_service import EmailService
from storefront.services.inventory_store import InventoryStore
from storefront.services.invoice_service import InvoiceService
from storefront.services.mercadopago import MercadoPagoClient
from storefront.services.order_store import OrderStore
from storefront.services.reconciliation import ReconciliationEngine
from storefront.services.side_effects import SideEffectDispatcher


@lru_cache
def get_settings() -> Settings:
    """Get process settings, loaded from the environment on first use."""
    return load_settings()


@lru_cache
def get_dynamodb_service() -> DynamoDBService:
    """Get cached DynamoDBService instance."""
    return DynamoDBService(get_settings())


@lru_cache
def get_order_store() -> OrderStore:
    """Get cached OrderStore instance."""
    return OrderStore(db=get_dynamodb_service())


@lru_cache
def get_inventory_store() -> InventoryStore:
    """Get cached InventoryStore instance."""
    return InventoryStore(db=get_dynamodb_service())


@lru_cache
def get_invoice_service() -> InvoiceService:
    """Get cached InvoiceService instance."""
    return InvoiceService(db=get_dynamodb_service(), currency=get_settings().currency)


@lru_cache
def get_payment_provider() -> MercadoPagoClient:
    """Get cached MercadoPagoClient instance."""
    return MercadoPagoClient(get_settings())


@lru_cache
def get_email_service() -> EmailService:
    """Get cached EmailService instance."""
    return EmailService(get_settings())


@lru_cache
def get_side_effect_dispatcher() -> SideEffectDispatcher:
    """Get cached SideEffectDispatcher instance."""
    return SideEffectDispatcher()


@lru_cache
def get_checkout_service() -> CheckoutService:
    """Get cached CheckoutService instance.

    Returns:
        CheckoutService configured with the order store and provider client.
    """
    return CheckoutService(
        orders=get_order_store(),
        provider=get_payment_provider(),
        settings=get_settings(),
    )


@lru_cache
def get_reconciliation_engine() -> ReconciliationEngine:
    """Get cached ReconciliationEngine instance.

    Returns:
        ReconciliationEngine wired to every store and side-effect service.
    """
    return ReconciliationEngine(
        provider=get_payment_provider(),
        orders=get_order_store(),
        inventory=get_inventory_store(),
        dispatcher=get_side_effect_dispatcher(),
        invoices=get_invoice_service(),
        emails=get_email_service(),
        db=get_dynamodb_service(),
    )


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.

    Example:
        @pytest.fixture(autouse=True)
        def reset_state():
            yield
            reset_services()
    """
    get_settings.cache_clear()
    get_dynamodb_service.cache_clear()
    get_order_store.cache_clear()
    get_inventory_store.cache_clear()
    get_invoice_service.cache_clear()
    get_payment_provider.cache_clear()
    get_email_service.cache_clear()
    get_side_effect_dispatcher.cache_clear()
    get_checkout_service.cache_clear()
    get_reconciliation_engine.cache_clear()
