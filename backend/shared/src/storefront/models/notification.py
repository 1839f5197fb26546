"""Payment notification models and boundary decoding.

The provider posts notifications in several shapes: identifiers and topics
may arrive as query parameters (``type``/``topic``/``action`` and
``data.id``/``id``/``payment_id``/``collection_id``) or in a JSON body
(``{type|topic|action, data: {id} | id}``). ``decode_notification`` folds all
of them into the strict ``PaymentNotification`` union; nothing past the
webhook route handles raw payloads.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .enums import NotificationTopic

_QUERY_TOPIC_KEYS = ("type", "topic", "action")
_QUERY_ID_KEYS = ("data.id", "id", "data[id]", "payment_id", "collection_id")
_GROUP_TOPIC_MARKERS = ("merchant_order", "order-group", "order_group")


class _NotificationBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    reference_id: str = Field(..., min_length=1)
    raw_topic: str | None = Field(
        default=None,
        description="Topic exactly as sent by the provider",
    )


class PaymentTopicNotification(_NotificationBase):
    """Notification whose reference ID is the payment ID itself."""

    topic: Literal["payment"] = NotificationTopic.PAYMENT.value


class OrderGroupNotification(_NotificationBase):
    """Notification referencing an order group that must be resolved to a payment."""

    topic: Literal["order-group"] = NotificationTopic.ORDER_GROUP.value


class UnsupportedNotification(_NotificationBase):
    """Notification for a topic this system does not act on."""

    topic: Literal["unsupported"] = NotificationTopic.UNSUPPORTED.value


PaymentNotification = Annotated[
    Union[PaymentTopicNotification, OrderGroupNotification, UnsupportedNotification],
    Field(discriminator="topic"),
]

_notification_adapter: TypeAdapter[Any] = TypeAdapter(PaymentNotification)


def classify_topic(raw_topic: str | None) -> NotificationTopic:
    """Map a provider topic string to a NotificationTopic.

    A missing topic is treated as a payment notification, matching the
    provider's legacy IPN format which carries only ``id``.
    """
    if not raw_topic:
        return NotificationTopic.PAYMENT

    topic = raw_topic.lower()
    if any(marker in topic for marker in _GROUP_TOPIC_MARKERS):
        return NotificationTopic.ORDER_GROUP
    if "payment" in topic:
        return NotificationTopic.PAYMENT
    return NotificationTopic.UNSUPPORTED


def _first_present(values: list[Any]) -> str | None:
    for value in values:
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def decode_notification(
    query_params: Mapping[str, str],
    body: Any = None,
) -> PaymentTopicNotification | OrderGroupNotification | UnsupportedNotification | None:
    """Decode a raw provider notification into a PaymentNotification.

    Query parameters take precedence over body fields.

    Args:
        query_params: Request query parameters
        body: Parsed JSON body, or None if absent/unparseable

    Returns:
        The decoded notification, or None when no identifier can be found.
    """
    payload = body if isinstance(body, dict) else {}
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

    raw_topic = _first_present(
        [query_params.get(key) for key in _QUERY_TOPIC_KEYS]
        + [payload.get(key) for key in _QUERY_TOPIC_KEYS]
    )
    reference_id = _first_present(
        [query_params.get(key) for key in _QUERY_ID_KEYS]
        + [data.get("id"), payload.get("id")]
    )

    if reference_id is None:
        return None

    return _notification_adapter.validate_python(
        {
            "topic": classify_topic(raw_topic).value,
            "reference_id": reference_id,
            "raw_topic": raw_topic,
        }
    )
