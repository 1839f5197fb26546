"""Invoice endpoints.

Caller identity comes from gateway-injected headers (``x-user-sub`` and
``x-user-email``); both endpoints answer 401 without them.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from starlette.status import HTTP_302_FOUND

from storefront.config import Settings
from storefront.models.errors import ErrorCode, StorefrontError
from storefront.services.invoice_service import InvoiceService, attachment_url
from storefront.services.order_store import OrderStore
from storefront_api.dependencies import (
    get_invoice_service,
    get_order_store,
    get_settings,
)
from storefront_api.models.invoices import InvoiceSummary, MyInvoicesResponse

router = APIRouter(tags=["invoices"])


def _caller_identity(request: Request) -> tuple[str | None, str | None]:
    """Extract (user_id, email) from request headers.

    Raises:
        StorefrontError: AUTH_REQUIRED if neither is present.
    """
    user_id = request.headers.get("x-user-sub") or None
    email = request.headers.get("x-user-email")
    email = email.strip().lower() if email and email.strip() else None
    if not user_id and not email:
        raise StorefrontError(code=ErrorCode.AUTH_REQUIRED)
    return user_id, email


@router.get(
    "/invoices/my",
    summary="List my invoices",
    response_model=MyInvoicesResponse,
    responses={401: {"description": "Authentication required"}},
)
async def list_my_invoices(
    request: Request,
    orders: OrderStore = Depends(get_order_store),
    invoices: InvoiceService = Depends(get_invoice_service),
) -> MyInvoicesResponse:
    """List invoices for the caller's orders, newest first."""
    user_id, email = _caller_identity(request)
    my_orders = orders.list_by_customer(user_id, email)
    return MyInvoicesResponse(
        invoices=[InvoiceSummary.from_invoice(i) for i in invoices.list_for_orders(my_orders)]
    )


@router.get(
    "/invoices/{invoice_id}/download",
    summary="Download invoice PDF",
    description="Redirect (302) to the invoice PDF with a download disposition.",
    status_code=HTTP_302_FOUND,
    response_class=RedirectResponse,
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Invoice belongs to another customer"},
        404: {"description": "Invoice not found or has no PDF"},
    },
)
async def download_invoice(
    invoice_id: str,
    request: Request,
    orders: OrderStore = Depends(get_order_store),
    invoices: InvoiceService = Depends(get_invoice_service),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Redirect the owner of an invoice to its PDF."""
    user_id, email = _caller_identity(request)

    invoice = invoices.get_invoice(invoice_id)
    if invoice is None:
        raise StorefrontError(code=ErrorCode.INVOICE_NOT_FOUND, details={"invoice_id": invoice_id})

    order = orders.get_by_id(invoice.order_id)
    if not InvoiceService.is_owner(invoice, order, user_id, email):
        raise StorefrontError(code=ErrorCode.FORBIDDEN, details={"invoice_id": invoice_id})

    if not invoice.pdf_url:
        raise StorefrontError(
            code=ErrorCode.INVOICE_PDF_MISSING, details={"invoice_id": invoice_id}
        )

    return RedirectResponse(
        attachment_url(invoice.pdf_url, settings.site_url),
        status_code=HTTP_302_FOUND,
    )
