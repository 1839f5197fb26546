"""API-specific request/response models.

Domain models (Order, Invoice, ...) live in storefront.models and are
reused here where appropriate.

Modules:
- orders: Order creation and status models
- checkout: Checkout session request/response
- invoices: Invoice listing models
- webhooks: Webhook acknowledgement
"""

__all__: list[str] = []
