"""Correlation ID middleware.

The ID for a request is taken from ``X-Correlation-ID`` when the caller sends
one, otherwise from Mercado Pago's ``X-Request-ID`` (so a webhook delivery
can be matched with the provider's delivery log), otherwise generated. It is
echoed back in ``X-Correlation-ID``.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from storefront.utils.logging import clear_correlation_id, set_correlation_id

CORRELATION_ID_HEADER = "X-Correlation-ID"
PROVIDER_REQUEST_ID_HEADER = "X-Request-ID"


def incoming_correlation_id(request: Request) -> str | None:
    for header in (CORRELATION_ID_HEADER, PROVIDER_REQUEST_ID_HEADER):
        value = request.headers.get(header, "").strip()
        if value:
            return value
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the correlation ID to the logging context for one request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = set_correlation_id(incoming_correlation_id(request))
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response
