"""Unit tests for the DynamoDB-backed order and inventory stores.

Test categories:
- Creation and idempotency-key uniqueness
- Lookups by id, display number, legacy id and key
- Conditional status and stock writes
- Inventory records
"""

from decimal import Decimal
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from storefront.models import (
    ErrorCode,
    InventoryRecord,
    Order,
    OrderStatus,
    PaymentMeta,
    StorefrontError,
)
from storefront.services.inventory_store import InventoryStore
from storefront.services.order_store import OrderStore

META = PaymentMeta(payment_id="1320000001", provider_status="approved")


class TestCreateOrder:
    """Creating orders and guarding idempotency keys."""

    def test_create_and_read_back(self, make_order: Callable[..., Order], order_store: OrderStore):
        order = make_order(email="  Ana@Example.COM ", phone="+54 11 5555-0000")

        stored = order_store.get_by_id(order.order_id)

        assert stored is not None
        assert stored.idempotency_key == "key-A"
        assert stored.status is OrderStatus.PENDING
        assert stored.stock_adjusted is False
        assert stored.email == "ana@example.com"
        assert stored.total == Decimal("29500")
        assert [li.product_id for li in stored.line_items] == ["mate-imperial", "bombilla-alpaca"]
        assert stored.line_items[0].unit_price == Decimal("12500")

    def test_duplicate_idempotency_key_is_rejected(self, make_order: Callable[..., Order]):
        make_order(idempotency_key="key-dup")

        with pytest.raises(StorefrontError) as exc_info:
            make_order(idempotency_key="key-dup")

        assert exc_info.value.code is ErrorCode.DUPLICATE_IDEMPOTENCY_KEY

    def test_duplicate_key_writes_nothing(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        make_order(idempotency_key="key-dup")

        with pytest.raises(StorefrontError):
            make_order(idempotency_key="key-dup", order_id="ORD-SECOND")

        assert order_store.get_by_id("ORD-SECOND") is None

    def test_order_id_format(self):
        order_id = OrderStore.generate_order_id()

        assert order_id.startswith("ORD-")
        assert len(order_id) == 16
        assert order_id[4:] == order_id[4:].upper()


class TestLookups:
    """Resolving orders by their different identifiers."""

    def test_sequence_numbers_increase(self, order_store: OrderStore):
        assert order_store.next_sequence_number() == 1
        assert order_store.next_sequence_number() == 2
        assert order_store.next_sequence_number() == 3

    def test_find_by_id_display_number_and_legacy_id(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        order = make_order()
        order_store.assign_display_number(order.order_id, 51, "AMG-0051")

        by_id = order_store.find(order.order_id)
        by_number = order_store.find("AMG-0051")
        by_legacy = order_store.find("51")

        assert by_id.order_id == order.order_id
        assert by_number.order_id == order.order_id
        assert by_legacy.order_id == order.order_id
        assert by_legacy.legacy_id == 51
        assert by_legacy.order_number == "AMG-0051"

    def test_find_unknown_returns_none(self, order_store: OrderStore):
        assert order_store.find("AMG-9999") is None
        assert order_store.find("9999") is None
        assert order_store.find("   ") is None

    @pytest.mark.parametrize("ref", ["²", "٣", "１２"])
    def test_find_non_ascii_digits_returns_none(self, order_store: OrderStore, ref: str):
        assert order_store.find(ref) is None

    def test_find_wraps_store_errors(self, order_store: OrderStore, monkeypatch: pytest.MonkeyPatch):
        error = ClientError({"Error": {"Code": "InternalServerError", "Message": "boom"}}, "GetItem")
        monkeypatch.setattr(order_store, "get_by_id", MagicMock(side_effect=error))

        with pytest.raises(StorefrontError) as exc_info:
            order_store.find("ORD-X")

        assert exc_info.value.code is ErrorCode.ORDER_STORE_ERROR

    def test_order_number_falls_back_to_order_id(self, make_order: Callable[..., Order]):
        order = make_order()

        assert order.display_number is None
        assert order.order_number == order.order_id

    def test_get_by_idempotency_key(self, make_order: Callable[..., Order], order_store: OrderStore):
        order = make_order(idempotency_key="key-lookup")

        assert order_store.get_by_idempotency_key("key-lookup").order_id == order.order_id
        assert order_store.get_by_idempotency_key("key-missing") is None

    def test_list_by_status(self, make_order: Callable[..., Order], order_store: OrderStore):
        make_order(idempotency_key="k1")
        paid = make_order(idempotency_key="k2", status=OrderStatus.PAID)

        listed = order_store.list_by_status(OrderStatus.PAID)

        assert [o.order_id for o in listed] == [paid.order_id]

    def test_list_by_customer_prefers_owner_id(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        owned = make_order(idempotency_key="k1", customer_id="sub-ana")
        make_order(idempotency_key="k2", customer_id=None)

        by_owner = order_store.list_by_customer("sub-ana", "ana@example.com")
        by_email = order_store.list_by_customer("sub-unknown", "ANA@example.com")

        assert [o.order_id for o in by_owner] == [owned.order_id]
        assert len(by_email) == 2
        assert order_store.list_by_customer(None, None) == []


class TestConditionalWrites:
    """Status and stock writes guarded by DynamoDB conditions."""

    def test_update_status_from_pending(self, make_order: Callable[..., Order], order_store: OrderStore):
        order = make_order()

        updated = order_store.update_status(order.order_id, OrderStatus.PAID, META)

        assert updated.status is OrderStatus.PAID
        assert updated.payment_meta == META

    def test_update_status_to_same_terminal_status(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        order = make_order(status=OrderStatus.PAID)

        assert order_store.update_status(order.order_id, OrderStatus.PAID, META) is not None

    def test_update_status_never_replaces_other_terminal_status(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        order = make_order(status=OrderStatus.PAID)

        assert order_store.update_status(order.order_id, OrderStatus.FAILED, META) is None
        assert order_store.get_by_id(order.order_id).status is OrderStatus.PAID

    def test_update_status_of_missing_order(self, order_store: OrderStore, mock_dynamodb: Any):
        assert order_store.update_status("ORD-MISSING", OrderStatus.PAID, META) is None
        assert order_store.get_by_id("ORD-MISSING") is None

    def test_update_payment_meta_keeps_status(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        order = make_order(status=OrderStatus.CANCELLED)

        updated = order_store.update_payment_meta(order.order_id, META)

        assert updated.status is OrderStatus.CANCELLED
        assert updated.payment_meta.payment_id == "1320000001"

    def test_commit_stock_adjustment_requires_paid(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        order = make_order()

        assert order_store.commit_stock_adjustment(order.order_id, []) is False
        assert order_store.get_by_id(order.order_id).stock_adjusted is False

    def test_commit_stock_adjustment_happens_once(
        self,
        make_order: Callable[..., Order],
        order_store: OrderStore,
        inventory_store: InventoryStore,
    ):
        order = make_order(status=OrderStatus.PAID)
        inventory_store.set_available_quantity("mate-imperial", 10)

        first = order_store.commit_stock_adjustment(
            order.order_id, [inventory_store.quantity_update_item("mate-imperial", 10, 8)]
        )
        second = order_store.commit_stock_adjustment(
            order.order_id, [inventory_store.quantity_update_item("mate-imperial", 8, 6)]
        )

        assert first is True
        assert second is False
        assert order_store.get_by_id(order.order_id).stock_adjusted is True
        assert inventory_store.get("mate-imperial").available_quantity == 8

    def test_commit_aborts_when_inventory_changed(
        self,
        make_order: Callable[..., Order],
        order_store: OrderStore,
        inventory_store: InventoryStore,
    ):
        order = make_order(status=OrderStatus.PAID)
        inventory_store.set_available_quantity("mate-imperial", 9)

        committed = order_store.commit_stock_adjustment(
            order.order_id, [inventory_store.quantity_update_item("mate-imperial", 10, 8)]
        )

        assert committed is False
        assert order_store.get_by_id(order.order_id).stock_adjusted is False
        assert inventory_store.get("mate-imperial").available_quantity == 9

    def test_mark_stock_rejected(self, make_order: Callable[..., Order], order_store: OrderStore):
        order = make_order(status=OrderStatus.PAID)

        assert order_store.mark_stock_rejected(order.order_id) is True
        assert order_store.get_by_id(order.order_id).status is OrderStatus.FAILED

    def test_mark_stock_rejected_after_adjustment_is_refused(
        self, make_order: Callable[..., Order], order_store: OrderStore
    ):
        order = make_order(status=OrderStatus.PAID, stock_adjusted=True)

        assert order_store.mark_stock_rejected(order.order_id) is False
        assert order_store.get_by_id(order.order_id).status is OrderStatus.PAID


class TestInventoryStore:
    """Inventory rows and the unlimited sentinel."""

    def test_missing_product(self, inventory_store: InventoryStore):
        assert inventory_store.get("nope") is None

    def test_round_trip_quantities(self, inventory_store: InventoryStore):
        inventory_store.set_available_quantity("mate-imperial", 3)
        inventory_store.set_available_quantity("yerba", "unlimited")

        assert inventory_store.get("mate-imperial") == InventoryRecord(
            product_id="mate-imperial", available_quantity=3
        )
        assert inventory_store.get("yerba").is_unlimited

    @pytest.mark.parametrize(
        "available,requested,can_fulfil,after",
        [
            (5, 5, True, 0),
            (5, 2, True, 3),
            (1, 2, False, 0),
            (0, 1, False, 0),
            ("unlimited", 1000, True, "unlimited"),
        ],
    )
    def test_record_arithmetic(self, available, requested, can_fulfil, after):
        record = InventoryRecord(product_id="p", available_quantity=available)

        assert record.can_fulfil(requested) is can_fulfil
        assert record.quantity_after(requested) == after
