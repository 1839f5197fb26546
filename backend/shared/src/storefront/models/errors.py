"""Standard error codes for the storefront backend.

All services raise StorefrontError with one of these codes; the API layer
converts them to HTTP responses with a consistent ErrorResponse body.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes."""

    # Order error codes (ERR_ORDER_001-ERR_ORDER_004)
    ORDER_NOT_FOUND = "ERR_ORDER_001"
    INVALID_ORDER = "ERR_ORDER_002"
    DUPLICATE_IDEMPOTENCY_KEY = "ERR_ORDER_003"
    ORDER_STORE_ERROR = "ERR_ORDER_004"

    # Checkout error codes (ERR_CHECKOUT_001-ERR_CHECKOUT_003)
    NO_VALID_ITEMS = "ERR_CHECKOUT_001"
    PAYMENT_PROVIDER_ERROR = "ERR_CHECKOUT_002"
    PAYMENT_PROVIDER_NOT_CONFIGURED = "ERR_CHECKOUT_003"

    # Invoice error codes (ERR_INVOICE_001-ERR_INVOICE_004)
    AUTH_REQUIRED = "ERR_INVOICE_001"
    FORBIDDEN = "ERR_INVOICE_002"
    INVOICE_NOT_FOUND = "ERR_INVOICE_003"
    INVOICE_PDF_MISSING = "ERR_INVOICE_004"


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.ORDER_NOT_FOUND: "Order not found",
    ErrorCode.INVALID_ORDER: "Order data is invalid",
    ErrorCode.DUPLICATE_IDEMPOTENCY_KEY: "An order already exists for this idempotency key",
    ErrorCode.ORDER_STORE_ERROR: "The order store could not complete the request",
    ErrorCode.NO_VALID_ITEMS: "No valid items to create a checkout session",
    ErrorCode.PAYMENT_PROVIDER_ERROR: "The payment provider rejected the request",
    ErrorCode.PAYMENT_PROVIDER_NOT_CONFIGURED: "Payment provider credentials are not configured",
    ErrorCode.AUTH_REQUIRED: "Authentication required",
    ErrorCode.FORBIDDEN: "Not allowed to access this invoice",
    ErrorCode.INVOICE_NOT_FOUND: "Invoice not found",
    ErrorCode.INVOICE_PDF_MISSING: "This invoice has no PDF yet",
}

# Recovery suggestions for API clients
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.ORDER_NOT_FOUND: "Verify the order ID or order number",
    ErrorCode.INVALID_ORDER: "Check the order payload and try again",
    ErrorCode.DUPLICATE_IDEMPOTENCY_KEY: "Reuse the existing order or omit the idempotency key",
    ErrorCode.ORDER_STORE_ERROR: "Try again later",
    ErrorCode.NO_VALID_ITEMS: "Include at least one item with positive quantity and price",
    ErrorCode.PAYMENT_PROVIDER_ERROR: "Try again or use a different payment method",
    ErrorCode.PAYMENT_PROVIDER_NOT_CONFIGURED: "Configure the Mercado Pago access token",
    ErrorCode.AUTH_REQUIRED: "Log in and try again",
    ErrorCode.FORBIDDEN: "Use the account that placed the order",
    ErrorCode.INVOICE_NOT_FOUND: "Verify the invoice ID",
    ErrorCode.INVOICE_PDF_MISSING: "Try again once the invoice has been issued",
}


class ErrorResponse(BaseModel):
    """Standard error response body."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            An ErrorResponse with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class StorefrontError(Exception):
    """Exception raised by storefront operations.

    Caught by the API layer and converted to an ErrorResponse.
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ):
        self.code = code
        self.message = ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = details
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse.from_code(self.code, self.details)
