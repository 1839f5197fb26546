"""Logging with a per-request correlation ID.

The correlation ID lives in a ContextVar set by the API middleware (from
``X-Correlation-ID``, else Mercado Pago's ``X-Request-ID``, else a fresh
UUID) so every line logged while handling a webhook delivery can be grepped
together.

Usage:
    from storefront.utils.logging import get_logger

    logger = get_logger(__name__)
    log_reconciliation_step(logger, "payment", "1320000001", result="processed")
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

NO_CORRELATION_ID = "no-correlation-id"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Outcomes where a delivery was acknowledged without acting on any order
_WARNING_RESULTS = frozenset(
    {
        "ignored",
        "no_payment_yet",
        "unsupported_topic",
        "missing_external_reference",
        "order_not_found",
        "stock_rejected",
        "invalid_signature",
    }
)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current context, generating one if needed.

    Returns:
        The correlation ID now in effect
    """
    cid = correlation_id or str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` from the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes each line with ``[correlation_id]``."""

    def format(self, record: logging.LogRecord) -> str:
        cid = getattr(record, "correlation_id", None) or get_correlation_id()
        return f"[{cid or NO_CORRELATION_ID}] {super().format(record)}"


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with the correlation filter attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def configure_logging(level: int = logging.INFO) -> None:
    """Install the structured formatter on the root logger.

    Safe to call more than once; only the first call adds a handler.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)


def _emit(logger: logging.Logger, headline: str, context: dict[str, Any], level: int) -> None:
    """Log ``headline | key=value | ...`` with the context also passed as extra."""
    fields = {k: v for k, v in context.items() if v is not None}
    message = " | ".join([headline, *(f"{k}={v}" for k, v in fields.items())])
    logger.log(level, message, extra=fields)


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    order_id: str | None = None,
    idempotency_key: str | None = None,
    payment_id: str | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log an order or checkout operation (ERROR when ``error`` is given)."""
    context = {
        "order_id": order_id,
        "idempotency_key": idempotency_key,
        "payment_id": payment_id,
        "status": status,
        "error": error,
        **extra,
    }
    level = logging.ERROR if error else logging.INFO
    _emit(logger, f"Payment operation: {operation}", {"operation": operation, **context}, level)


def log_reconciliation_step(
    logger: logging.Logger,
    topic: str | None,
    reference_id: str | None,
    *,
    result: str,
    order_id: str | None = None,
    payment_id: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log how a notification delivery ended.

    Level: ERROR when ``error`` is set, WARNING for outcomes that left every
    order untouched (order_not_found, stock_rejected, ...), INFO otherwise.

    Args:
        logger: Logger instance
        topic: Notification topic (payment, order-group, unsupported)
        reference_id: Notification reference ID
        result: Outcome name
        order_id: Durable order ID if resolved
        payment_id: Provider payment ID if resolved
        error: Error message if processing failed
        **extra: Additional context fields
    """
    if error:
        level = logging.ERROR
    elif result in _WARNING_RESULTS:
        level = logging.WARNING
    else:
        level = logging.INFO

    context = {
        "result": result,
        "order_id": order_id,
        "payment_id": payment_id,
        "error": error,
        **extra,
    }
    _emit(
        logger,
        f"Payment notification: {topic} ({reference_id})",
        {**context, "topic": topic, "reference_id": reference_id},
        level,
    )
