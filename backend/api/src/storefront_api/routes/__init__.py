"""API routes package.

Routers are organized by domain:

- webhooks: Mercado Pago payment notifications
- orders: Order creation and status lookup
- checkout: Checkout session (preference) issuance
- invoices: Invoice listing and PDF download

All routers are registered in main.py with /api prefix.
"""

from storefront_api.routes.checkout import router as checkout_router
from storefront_api.routes.invoices import router as invoices_router
from storefront_api.routes.orders import router as orders_router
from storefront_api.routes.webhooks import router as webhooks_router

__all__ = [
    "checkout_router",
    "invoices_router",
    "orders_router",
    "webhooks_router",
]
