"""
Pytest configuration and fixtures.
"""
from decimal import Decimal
from typing import Any

import pytest

from card_checkout.config import Settings
from card_checkout.core.saga import CustomerData, DeliveryData, PurchaseRequest
from card_checkout.domain.entities import Product
from card_checkout.domain.ports import CardData

from .fakes import (
    FakeGateway,
    InMemoryCustomerRepository,
    InMemoryDeliveryRepository,
    InMemoryProductRepository,
    InMemoryTransactionRepository,
)


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "integration: tests that touch a database or the ASGI app")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        gateway_api_url="https://gateway.test/v1",
        gateway_public_key="pub_test_key",
        gateway_private_key="prv_test_key",
        gateway_integrity_key="test_integrity_secret",
        base_fee=Decimal("500000"),
        delivery_fee=Decimal("1000000"),
        database_url="sqlite+aiosqlite:///:memory:",
        app_name="card-checkout-test",
        app_env="test",
        log_level="DEBUG",
        seed_products=False,
    )


@pytest.fixture
def product() -> Product:
    return Product(
        id="prod-1",
        name="Wireless Headphones",
        description="Over-ear, noise cancelling",
        price=Decimal("50000"),
        stock=10,
    )


@pytest.fixture
def product_repository(product: Product) -> InMemoryProductRepository:
    return InMemoryProductRepository([product])


@pytest.fixture
def customer_repository() -> InMemoryCustomerRepository:
    return InMemoryCustomerRepository()


@pytest.fixture
def delivery_repository() -> InMemoryDeliveryRepository:
    return InMemoryDeliveryRepository()


@pytest.fixture
def transaction_repository() -> InMemoryTransactionRepository:
    return InMemoryTransactionRepository()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def purchase_request() -> PurchaseRequest:
    """Sample purchase of one unit of the `product` fixture."""
    return PurchaseRequest(
        product_id="prod-1",
        quantity=1,
        customer=CustomerData(
            email="john@example.com", full_name="John Doe", phone="+573001234567"
        ),
        delivery=DeliveryData(
            address="Calle 123 #45-67",
            city="Bogota",
            department="Cundinamarca",
            zip_code="110111",
        ),
        card=CardData(
            number="4242424242424242",
            cvc="123",
            exp_month="12",
            exp_year="28",
            card_holder="JOHN DOE",
        ),
    )
