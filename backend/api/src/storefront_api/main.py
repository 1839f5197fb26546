"""FastAPI application for the storefront backend.

Routes (all under /api):
- /ping: health check
- /webhooks/mercadopago: payment notifications (order reconciliation)
- /orders: order creation and status lookup
- /checkout/preference: checkout session issuance
- /invoices: invoice listing and download

Deployed on Lambda behind API Gateway through Mangum; ``run_server`` serves
the same app with uvicorn for local development.
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from storefront.utils.logging import configure_logging
from storefront_api.exceptions import register_exception_handlers
from storefront_api.middleware.correlation import CorrelationIdMiddleware
from storefront_api.routes import (
    checkout_router,
    invoices_router,
    orders_router,
    webhooks_router,
)

API_PREFIX = "/api"
SERVICE_NAME = "storefront-api"

configure_logging()

app = FastAPI(
    title="Storefront API",
    description="Orders, Mercado Pago checkout and payment reconciliation",
    version="0.1.0",
)

# Local storefront frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

for router in (webhooks_router, orders_router, checkout_router, invoices_router):
    app.include_router(router, prefix=API_PREFIX)


@app.get(f"{API_PREFIX}/ping")
async def ping() -> dict[str, Any]:
    """Liveness probe."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": SERVICE_NAME,
    }


handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int | None = None, reload: bool = True) -> None:
    """Serve the API locally with uvicorn.

    Args:
        host: Interface to bind
        port: Port to listen on (default: $PORT or 8080)
        reload: Restart on source changes under backend/
    """
    import uvicorn

    port = port or int(os.environ.get("PORT", "8080"))
    if not reload:
        uvicorn.run(app, host=host, port=port)
        return

    # reload mode needs an import string, not the app object
    uvicorn.run(
        "storefront_api.main:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=["backend/api/src", "backend/shared/src"],
    )


if __name__ == "__main__":
    run_server()
