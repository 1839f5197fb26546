"""Fixtures for HTTP contract tests.

The FastAPI app runs against moto (DynamoDB, SSM, SES) with the real
dependency providers; only the payment provider is swapped for the
in-memory Mercado Pago API, by overriding the services that use it.
"""

from typing import Any, Callable, Generator

import boto3
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.config import Settings
from storefront.services.checkout import CheckoutService
from storefront.services.reconciliation import ReconciliationEngine
from storefront.services.side_effects import SideEffectDispatcher
from storefront_api.dependencies import (
    get_checkout_service,
    get_dynamodb_service,
    get_email_service,
    get_inventory_store,
    get_invoice_service,
    get_order_store,
    get_reconciliation_engine,
    get_settings,
    get_side_effect_dispatcher,
)

SENDER = "ventas@tienda.example.com"


@pytest.fixture
def api_env(mock_dynamodb: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment read by load_settings() inside the app."""
    monkeypatch.setenv("DYNAMODB_TABLE_PREFIX", "test-storefront")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    monkeypatch.setenv("MP_ACCESS_TOKEN", "TEST-0000000000000000-token")
    monkeypatch.setenv("SITE_URL", "https://tienda.example.com")
    monkeypatch.setenv("EMAIL_FROM", SENDER)
    monkeypatch.delenv("MP_WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("TEST_EMAIL_TO", raising=False)
    boto3.client("ses", region_name="eu-west-1").verify_email_identity(EmailAddress=SENDER)


@pytest.fixture
def api_dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher(sleep=lambda _: None)


@pytest.fixture
def wire_app(
    api_env: None,
    mp_api: Any,
    api_dispatcher: SideEffectDispatcher,
) -> Generator[Callable[[Settings | None], FastAPI], None, None]:
    """Install provider-backed services on the app for the given settings."""
    from storefront_api.main import app

    def _wire(settings: Settings | None = None) -> FastAPI:
        settings = settings or get_settings()
        provider = mp_api.client(settings)
        engine = ReconciliationEngine(
            provider=provider,
            orders=get_order_store(),
            inventory=get_inventory_store(),
            dispatcher=api_dispatcher,
            invoices=get_invoice_service(),
            emails=get_email_service(),
            db=get_dynamodb_service(),
        )
        checkout = CheckoutService(orders=get_order_store(), provider=provider, settings=settings)

        app.dependency_overrides[get_reconciliation_engine] = lambda: engine
        app.dependency_overrides[get_checkout_service] = lambda: checkout
        app.dependency_overrides[get_side_effect_dispatcher] = lambda: api_dispatcher
        return app

    yield _wire
    app.dependency_overrides.clear()


@pytest.fixture
def client(wire_app: Callable[[Settings | None], FastAPI]) -> TestClient:
    """Test client for the app wired with default settings."""
    return TestClient(wire_app(None))
