"""Pytest configuration and fixtures for storefront backend tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (all storefront tables)
- Settings and service instances wired to the mocked tables
- Sample order and inventory data
"""

import json
import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Generator

import boto3
import httpx
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-storefront")
os.environ.setdefault("MP_ACCESS_TOKEN", "TEST-0000000000000000-token")
os.environ.setdefault("SITE_URL", "https://tienda.example.com")
os.environ.setdefault("EMAIL_FROM", "ventas@tienda.example.com")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from storefront.config import Settings  # noqa: E402
from storefront.models import LineItem, Order, OrderStatus  # noqa: E402
from storefront.services.dynamodb import DynamoDBService  # noqa: E402
from storefront.services.inventory_store import InventoryStore  # noqa: E402
from storefront.services.invoice_service import InvoiceService  # noqa: E402
from storefront.services.mercadopago import MercadoPagoClient  # noqa: E402
from storefront.services.order_store import OrderStore  # noqa: E402
from storefront.services.ssm_service import SSMService  # noqa: E402

TABLE_PREFIX = "test-storefront"
REGION = "eu-west-1"


def _gsi(attribute: str) -> dict[str, Any]:
    return {
        "IndexName": f"{attribute}-index",
        "KeySchema": [{"AttributeName": attribute, "KeyType": "HASH"}],
        "Projection": {"ProjectionType": "ALL"},
    }


def _string_attributes(*names: str) -> list[dict[str, str]]:
    return [{"AttributeName": name, "AttributeType": "S"} for name in names]


TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {
        "TableName": f"{TABLE_PREFIX}-orders",
        "KeySchema": [{"AttributeName": "order_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attributes(
            "order_id",
            "idempotency_key",
            "display_number",
            "legacy_id",
            "status",
            "customer_id",
            "email",
        ),
        "GlobalSecondaryIndexes": [
            _gsi("idempotency_key"),
            _gsi("display_number"),
            _gsi("legacy_id"),
            _gsi("status"),
            _gsi("customer_id"),
            _gsi("email"),
        ],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": f"{TABLE_PREFIX}-order-keys",
        "KeySchema": [{"AttributeName": "idempotency_key", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attributes("idempotency_key"),
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": f"{TABLE_PREFIX}-counters",
        "KeySchema": [{"AttributeName": "counter_name", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attributes("counter_name"),
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": f"{TABLE_PREFIX}-inventory",
        "KeySchema": [{"AttributeName": "product_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attributes("product_id"),
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": f"{TABLE_PREFIX}-invoices",
        "KeySchema": [{"AttributeName": "order_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attributes("order_id", "invoice_id"),
        "GlobalSecondaryIndexes": [_gsi("invoice_id")],
        "BillingMode": "PAY_PER_REQUEST",
    },
    {
        "TableName": f"{TABLE_PREFIX}-payment-notifications",
        "KeySchema": [{"AttributeName": "notification_id", "KeyType": "HASH"}],
        "AttributeDefinitions": _string_attributes("notification_id"),
        "BillingMode": "PAY_PER_REQUEST",
    },
]


def create_storefront_tables(client: Any) -> None:
    """Create every storefront table in the (mocked) account."""
    for definition in TABLE_DEFINITIONS:
        client.create_table(**definition)


# === Settings and AWS Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = REGION


@pytest.fixture(autouse=True)
def clear_ssm_cache() -> Generator[None, None, None]:
    """SSM values are cached per process; start every test empty."""
    SSMService._cache.clear()
    yield
    SSMService._cache.clear()


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at the mocked tables."""
    return Settings(
        environment="test",
        aws_region=REGION,
        table_prefix=TABLE_PREFIX,
        mp_access_token="TEST-0000000000000000-token",
        site_url="https://tienda.example.com",
        email_from="ventas@tienda.example.com",
    )


@pytest.fixture
def mock_dynamodb(aws_credentials: None) -> Generator[Any, None, None]:
    """Mocked AWS account with all storefront tables created."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name=REGION)
        create_storefront_tables(client)
        yield client


@pytest.fixture
def db(mock_dynamodb: Any, settings: Settings) -> DynamoDBService:
    return DynamoDBService(settings)


@pytest.fixture
def order_store(db: DynamoDBService) -> OrderStore:
    return OrderStore(db)


@pytest.fixture
def inventory_store(db: DynamoDBService) -> InventoryStore:
    return InventoryStore(db)


@pytest.fixture
def invoice_service(db: DynamoDBService) -> InvoiceService:
    return InvoiceService(db)


# === Sample Data Fixtures ===


@pytest.fixture
def sample_line_items() -> list[LineItem]:
    """Two in-stock products."""
    return [
        LineItem(product_id="mate-imperial", title="Mate imperial", quantity=2, unit_price=Decimal("12500")),
        LineItem(product_id="bombilla-alpaca", title="Bombilla", quantity=1, unit_price=Decimal("4500")),
    ]


@pytest.fixture
def make_order(
    order_store: OrderStore,
    sample_line_items: list[LineItem],
) -> Callable[..., Order]:
    """Factory persisting a pending order through the order store."""

    def _make(
        idempotency_key: str = "key-A",
        line_items: list[LineItem] | None = None,
        status: OrderStatus = OrderStatus.PENDING,
        stock_adjusted: bool = False,
        email: str | None = "ana@example.com",
        **fields: Any,
    ) -> Order:
        items = line_items or sample_line_items
        now = datetime.now(timezone.utc)
        order = Order(
            order_id=fields.pop("order_id", OrderStore.generate_order_id()),
            idempotency_key=idempotency_key,
            status=status,
            stock_adjusted=stock_adjusted,
            line_items=items,
            email=email,
            customer_name=fields.pop("customer_name", "Ana"),
            total=sum((i.subtotal for i in items), Decimal("0")),
            created_at=now,
            updated_at=now,
            **fields,
        )
        return order_store.create_order(order)

    return _make


@pytest.fixture
def stocked_inventory(inventory_store: InventoryStore) -> dict[str, int]:
    """Inventory rows for the sample line items."""
    stock = {"mate-imperial": 10, "bombilla-alpaca": 5}
    for product_id, quantity in stock.items():
        inventory_store.set_available_quantity(product_id, quantity)
    return stock


# === Mercado Pago Fake ===


class FakeMercadoPagoAPI:
    """In-memory Mercado Pago API served through httpx.MockTransport.

    Payments and order groups are stored as raw provider JSON so tests
    exercise the same decoding as production.
    """

    def __init__(self) -> None:
        self.payments: dict[str, dict[str, Any]] = {}
        self.groups: dict[str, dict[str, Any]] = {}
        self.preferences: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def add_payment(
        self,
        payment_id: str,
        status: str,
        external_reference: str | None = "key-A",
        **fields: Any,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": int(payment_id) if payment_id.isdigit() else payment_id,
            "status": status,
            "status_detail": fields.pop("status_detail", f"{status}_detail"),
            "external_reference": external_reference,
            **fields,
        }
        self.payments[payment_id] = payload
        return payload

    def add_group(self, group_id: str, payments: list[dict[str, Any]]) -> None:
        self.groups[group_id] = {"id": int(group_id), "payments": payments}

    def requests_to(self, path_prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith(path_prefix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "provider unavailable"})

        path = request.url.path
        if request.method == "GET" and path.startswith("/v1/payments/"):
            payment = self.payments.get(path.rsplit("/", 1)[-1])
            if payment is None:
                return httpx.Response(404, json={"message": "Payment not found"})
            return httpx.Response(200, json=payment)

        if request.method == "GET" and path.startswith("/merchant_orders/"):
            group = self.groups.get(path.rsplit("/", 1)[-1])
            if group is None:
                return httpx.Response(404, json={"error": "not_found"})
            return httpx.Response(200, json=group)

        if request.method == "POST" and path == "/checkout/preferences":
            body = json.loads(request.content)
            self.preferences.append(body)
            pref_id = f"pref-{len(self.preferences)}"
            return httpx.Response(
                201,
                json={
                    "id": pref_id,
                    "init_point": f"https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id={pref_id}",
                    "sandbox_init_point": f"https://sandbox.mercadopago.com.ar/checkout/v1/redirect?pref_id={pref_id}",
                },
            )

        return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})

    def client(self, settings: Settings) -> MercadoPagoClient:
        http_client = httpx.Client(
            base_url=settings.mp_api_base_url,
            transport=httpx.MockTransport(self.handler),
        )
        return MercadoPagoClient(settings, http_client=http_client)


@pytest.fixture
def mp_api() -> FakeMercadoPagoAPI:
    return FakeMercadoPagoAPI()


@pytest.fixture
def provider(mp_api: FakeMercadoPagoAPI, settings: Settings) -> MercadoPagoClient:
    """MercadoPagoClient talking to the in-memory API."""
    return mp_api.client(settings)


@pytest.fixture(autouse=True)
def reset_api_services() -> Generator[None, None, None]:
    """Drop cached API service singletons between tests."""
    from storefront_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()
