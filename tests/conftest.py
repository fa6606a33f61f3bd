"""Test configuration and fixtures."""

import os

# Must be set before core.logging is imported so JSON logs and test capture are on
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DISABLE_TRACING", "true")
os.environ.setdefault("SQUARE_ACCESS_TOKEN", "EAAA_test_token")

from typing import Any  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from core import logging as app_logging  # noqa: E402
from core.dependencies import get_gateway  # noqa: E402
from core.settings import Settings  # noqa: E402
from main import app  # noqa: E402
from payments.gateway import PaymentGateway  # noqa: E402
from payments.square_client import SquareClient  # noqa: E402


class FakeSquareClient(SquareClient):
    """In-memory stand-in for the Square API."""

    def __init__(
        self,
        locations: list[dict[str, Any]] | None = None,
        payment: dict[str, Any] | None = None,
        order: dict[str, Any] | None = None,
        order_total: dict[str, Any] | None = None,
        error: Exception | None = None,
    ):
        self.locations = (
            locations if locations is not None else [{"id": "L1"}, {"id": "L2"}]
        )
        self.payment = payment or {"id": "pay_123", "status": "COMPLETED"}
        self.order = order or {"id": "order_123", "state": "OPEN"}
        self.order_total = (
            order_total
            if order_total is not None
            else {"amount": 1000, "currency": "USD"}
        )
        self.error = error
        self.payment_calls: list[dict[str, Any]] = []
        self.order_calls: list[dict[str, Any]] = []
        self.retrieved_orders: list[str] = []

    def list_locations(self):
        if self.error:
            raise self.error
        return self.locations

    def create_payment(self, body):
        self.payment_calls.append(body)
        if self.error:
            raise self.error
        return self.payment

    def create_order(self, body):
        self.order_calls.append(body)
        if self.error:
            raise self.error
        return self.order

    def retrieve_order(self, order_id):
        self.retrieved_orders.append(order_id)
        if self.error:
            raise self.error
        order = {"id": order_id, "state": "OPEN"}
        if self.order_total:
            order["total_money"] = self.order_total
        return order


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Setup test environment variables before each test."""
    original_env = dict(os.environ)

    os.environ.update(
        {
            "SQUARE_ACCESS_TOKEN": "EAAA_test_token",
            "SQUARE_ENVIRONMENT": "sandbox",
            "APP_NAME": "Test Gateway",
            "ENVIRONMENT": "test",
            "DISABLE_TRACING": "true",
        }
    )
    app_logging.test_output.clear()

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_settings():
    return Settings(
        SQUARE_ACCESS_TOKEN="EAAA_mock_token",
        SQUARE_ENVIRONMENT="sandbox",
        APP_NAME="Test Gateway",
        ENVIRONMENT="test",
    )


@pytest.fixture
def fake_square():
    return FakeSquareClient()


@pytest.fixture
def gateway(fake_square, mock_settings):
    return PaymentGateway(fake_square, mock_settings)


@pytest.fixture
def client(gateway):
    """App client with the Square gateway swapped for the in-memory fake."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def log_events():
    """Structured log events captured during the test."""
    return app_logging.test_output


@pytest.fixture
def make_gateway(mock_settings):
    """Build a gateway around a fake client configured per test."""

    def _make(**kwargs):
        fake = FakeSquareClient(**kwargs)
        return PaymentGateway(fake, mock_settings), fake

    return _make
