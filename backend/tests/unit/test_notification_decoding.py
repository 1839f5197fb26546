"""Unit tests for boundary decoding of provider payloads.

Test categories:
- Webhook notification shapes (query parameters and JSON bodies)
- Topic classification
- Payment and order-group decoding
- Provider status mapping
"""

import pytest

from storefront.models import (
    NotificationTopic,
    OrderGroup,
    OrderGroupNotification,
    OrderStatus,
    PaymentRecord,
    PaymentTopicNotification,
    UnsupportedNotification,
    classify_topic,
    decode_notification,
    map_provider_status,
)


class TestDecodeNotification:
    """All provider notification shapes fold into one union."""

    @pytest.mark.parametrize(
        "query",
        [
            {"type": "payment", "data.id": "123"},
            {"topic": "payment", "id": "123"},
            {"data[id]": "123"},
            {"payment_id": "123"},
            {"collection_id": "123"},
            {"action": "payment.updated", "data.id": "123"},
        ],
    )
    def test_query_parameter_shapes(self, query: dict):
        notification = decode_notification(query, None)

        assert isinstance(notification, PaymentTopicNotification)
        assert notification.reference_id == "123"

    def test_json_body_shape(self):
        notification = decode_notification({}, {"type": "payment", "data": {"id": 123}})

        assert isinstance(notification, PaymentTopicNotification)
        assert notification.reference_id == "123"
        assert notification.raw_topic == "payment"

    def test_body_with_top_level_id(self):
        notification = decode_notification({}, {"topic": "merchant_order", "id": "29000000001"})

        assert isinstance(notification, OrderGroupNotification)
        assert notification.reference_id == "29000000001"

    def test_query_takes_precedence_over_body(self):
        notification = decode_notification(
            {"type": "payment", "data.id": "from-query"},
            {"type": "merchant_order", "data": {"id": "from-body"}},
        )

        assert isinstance(notification, PaymentTopicNotification)
        assert notification.reference_id == "from-query"

    def test_blank_identifiers_are_skipped(self):
        notification = decode_notification({"data.id": "  ", "id": "456"}, None)

        assert notification.reference_id == "456"

    @pytest.mark.parametrize(
        "query,body",
        [
            ({}, None),
            ({}, "not-json"),
            ({}, ["list"]),
            ({"type": "payment"}, {"data": {}}),
            ({}, {"data": {"id": {"nested": True}}}),
        ],
    )
    def test_undecodable_payloads(self, query: dict, body):
        assert decode_notification(query, body) is None

    def test_unsupported_topic(self):
        notification = decode_notification({"type": "chargebacks", "data.id": "9"}, None)

        assert isinstance(notification, UnsupportedNotification)
        assert notification.topic == "unsupported"
        assert notification.raw_topic == "chargebacks"


class TestClassifyTopic:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, NotificationTopic.PAYMENT),
            ("", NotificationTopic.PAYMENT),
            ("payment", NotificationTopic.PAYMENT),
            ("payment.created", NotificationTopic.PAYMENT),
            ("merchant_order", NotificationTopic.ORDER_GROUP),
            ("MERCHANT_ORDER", NotificationTopic.ORDER_GROUP),
            ("topic_merchant_order_wh", NotificationTopic.ORDER_GROUP),
            ("order-group", NotificationTopic.ORDER_GROUP),
            ("plan", NotificationTopic.UNSUPPORTED),
        ],
    )
    def test_classification(self, raw, expected):
        assert classify_topic(raw) is expected


class TestPaymentRecord:
    """Decoding GET /v1/payments/{id}."""

    def test_full_payload(self):
        payment = PaymentRecord.from_provider(
            {
                "id": 1320000001,
                "status": "approved",
                "status_detail": "accredited",
                "external_reference": "key-A",
                "order": {"id": 29000000001, "type": "mercadopago"},
            },
            "1320000001",
        )

        assert payment.payment_id == "1320000001"
        assert payment.status_detail == "accredited"
        assert payment.idempotency_key == "key-A"
        assert payment.group_id == "29000000001"
        assert payment.order_status is OrderStatus.PAID

    @pytest.mark.parametrize(
        "metadata",
        [
            {"mpExternalReference": "key-meta"},
            {"mp_external_reference": "key-meta"},
            {"external_reference": "key-meta"},
        ],
    )
    def test_reference_from_metadata(self, metadata: dict):
        payment = PaymentRecord.from_provider({"status": "approved", "metadata": metadata}, "1")

        assert payment.idempotency_key == "key-meta"

    def test_external_reference_wins_over_metadata(self):
        payment = PaymentRecord.from_provider(
            {"external_reference": "key-A", "metadata": {"mp_external_reference": "key-B"}},
            "1",
        )

        assert payment.idempotency_key == "key-A"

    def test_sparse_payload(self):
        payment = PaymentRecord.from_provider({"metadata": None, "order": "x"}, "77")

        assert payment.payment_id == "77"
        assert payment.status is None
        assert payment.idempotency_key is None
        assert payment.group_id is None
        assert payment.order_status is OrderStatus.PENDING


class TestOrderGroup:
    """Decoding GET /merchant_orders/{id} and picking the payment."""

    def test_prefers_approved_payment(self):
        group = OrderGroup.from_provider(
            {
                "id": 29000000001,
                "payments": [
                    {"id": 1, "status": "rejected"},
                    {"id": 2, "status": "approved"},
                ],
            },
            "29000000001",
        )

        assert group.resolve_payment_id() == "2"

    def test_falls_back_to_first_payment_with_id(self):
        group = OrderGroup.from_provider(
            {"payments": [{"status": "rejected"}, {"id": 5, "status": "in_process"}]},
            "g",
        )

        assert group.group_id == "g"
        assert group.resolve_payment_id() == "5"

    @pytest.mark.parametrize("payments", [[], None, "x", [{"status": "approved"}]])
    def test_no_payment_yet(self, payments):
        group = OrderGroup.from_provider({"payments": payments}, "g")

        assert group.resolve_payment_id() is None


@pytest.mark.parametrize(
    "provider_status,expected",
    [
        ("approved", OrderStatus.PAID),
        ("rejected", OrderStatus.FAILED),
        ("cancelled", OrderStatus.CANCELLED),
        ("in_process", OrderStatus.PENDING),
        ("authorized", OrderStatus.PENDING),
        ("refunded", OrderStatus.PENDING),
        (None, OrderStatus.PENDING),
        ("", OrderStatus.PENDING),
    ],
)
def test_map_provider_status(provider_status, expected):
    assert map_provider_status(provider_status) is expected
