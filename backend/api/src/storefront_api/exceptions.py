"""FastAPI exception handlers for converting StorefrontError to HTTP responses.

The ErrorCode-to-HTTP status mapping follows REST conventions:
- 400 Bad Request: Validation/business rule violations
- 401 Unauthorized: Authentication required
- 403 Forbidden: Authorization failures
- 404 Not Found: Resource not found
- 409 Conflict: Duplicate idempotency key
- 502 Bad Gateway: Payment provider failures
- 503 Service Unavailable: Store or provider not reachable/configured

The webhook route never raises; these handlers serve the order, checkout
and invoice endpoints.

Usage:
    from storefront_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from storefront.models.errors import ErrorCode, StorefrontError

# Map ErrorCode to HTTP status codes
ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Business validation errors -> 400 Bad Request
    ErrorCode.INVALID_ORDER: HTTP_400_BAD_REQUEST,
    ErrorCode.NO_VALID_ITEMS: HTTP_400_BAD_REQUEST,
    # Authentication errors -> 401 Unauthorized
    ErrorCode.AUTH_REQUIRED: HTTP_401_UNAUTHORIZED,
    # Authorization errors -> 403 Forbidden
    ErrorCode.FORBIDDEN: HTTP_403_FORBIDDEN,
    # Not found errors -> 404 Not Found
    ErrorCode.ORDER_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.INVOICE_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.INVOICE_PDF_MISSING: HTTP_404_NOT_FOUND,
    # Idempotency -> 409 Conflict
    ErrorCode.DUPLICATE_IDEMPOTENCY_KEY: HTTP_409_CONFLICT,
    # Upstream errors
    ErrorCode.PAYMENT_PROVIDER_ERROR: HTTP_502_BAD_GATEWAY,
    ErrorCode.PAYMENT_PROVIDER_NOT_CONFIGURED: HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.ORDER_STORE_ERROR: HTTP_503_SERVICE_UNAVAILABLE,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode.

    Args:
        code: The ErrorCode to map

    Returns:
        HTTP status code, defaults to 400 if not explicitly mapped.
    """
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Handle StorefrontError exceptions and convert to JSON response.

    Args:
        request: The incoming request (unused but required by FastAPI)
        exc: The StorefrontError exception

    Returns:
        JSONResponse with ErrorResponse body and appropriate status code.
    """
    return JSONResponse(
        status_code=get_http_status_for_error(exc.code),
        content=exc.to_error_response().model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(StorefrontError, storefront_error_handler)  # type: ignore[arg-type]
