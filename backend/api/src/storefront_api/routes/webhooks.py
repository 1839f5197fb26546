"""Webhook endpoint for Mercado Pago payment notifications.

The provider posts notifications as query parameters, a JSON body, or both.
Every delivery is acknowledged with 200 ``{"ok": true, ...}`` whatever the
internal outcome, so provider retries are never amplified by our own
failures. Side effects queued by reconciliation run after the response.

This endpoint does NOT require authentication; deliveries are optionally
authenticated with the ``x-signature`` header when a webhook secret is
configured.
"""

import json
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from starlette.status import HTTP_200_OK

from storefront.services.reconciliation import ReconciliationEngine
from storefront.services.side_effects import SideEffectDispatcher
from storefront.utils.logging import get_logger
from storefront_api.dependencies import (
    get_reconciliation_engine,
    get_side_effect_dispatcher,
)
from storefront_api.models.webhooks import WebhookAck

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


async def _read_json_body(request: Request) -> Any:
    """Parse the request body as JSON, returning None if absent or invalid."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Webhook body is not valid JSON (%d bytes)", len(raw))
        return None


@router.api_route(
    "/webhooks/mercadopago",
    methods=["POST", "GET"],
    summary="Mercado Pago notification webhook",
    description="""
Receive a Mercado Pago payment notification and reconcile the order.

**Always returns 200** with `ok: true`. The `outcome` field reports what
happened (processed, order_not_found, no_payment_yet, ...).
""",
    response_model=WebhookAck,
    status_code=HTTP_200_OK,
)
async def mercadopago_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
    dispatcher: SideEffectDispatcher = Depends(get_side_effect_dispatcher),
) -> WebhookAck:
    """Handle a Mercado Pago webhook delivery."""
    body = await _read_json_body(request)

    try:
        result = engine.handle_delivery(
            request.query_params,
            body,
            x_signature=request.headers.get("x-signature"),
            x_request_id=request.headers.get("x-request-id"),
        )
    except Exception as e:
        logger.exception("Unexpected error reconciling webhook: %s", e)
        return WebhookAck(outcome="error")

    if dispatcher.pending:
        background_tasks.add_task(dispatcher.drain)

    return WebhookAck.from_result(result)
