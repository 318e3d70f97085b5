"""
Unit tests for the payment saga.
"""
import re
from dataclasses import replace
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from card_checkout.config import Settings
from card_checkout.core.saga import PaymentSaga, PurchaseRequest
from card_checkout.domain.aggregates import TransactionStatus
from card_checkout.domain.entities import Customer
from card_checkout.domain.errors import InsufficientStockError, ProductNotFoundError
from card_checkout.domain.ports import GatewayStatus

from .fakes import (
    FakeGateway,
    InMemoryCustomerRepository,
    InMemoryDeliveryRepository,
    InMemoryProductRepository,
    InMemoryTransactionRepository,
    StorageUnavailable,
    gateway_failure,
    gateway_success,
)


@pytest.fixture
def saga(
    product_repository: InMemoryProductRepository,
    customer_repository: InMemoryCustomerRepository,
    delivery_repository: InMemoryDeliveryRepository,
    transaction_repository: InMemoryTransactionRepository,
    gateway: FakeGateway,
    test_settings: Settings,
) -> PaymentSaga:
    return PaymentSaga(
        product_repository=product_repository,
        customer_repository=customer_repository,
        delivery_repository=delivery_repository,
        transaction_repository=transaction_repository,
        payment_gateway=gateway,
        settings=test_settings,
    )


def stored_transaction(repository: InMemoryTransactionRepository):
    assert len(repository.transactions) == 1
    return next(iter(repository.transactions.values()))


class TestHappyPath:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_approved_payment(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        product_repository: InMemoryProductRepository,
        transaction_repository: InMemoryTransactionRepository,
        gateway: FakeGateway,
    ) -> None:
        """Price 50000 x 1 plus both fees is charged as 155000000 cents."""
        result = await saga.execute(purchase_request)

        assert result.is_success
        outcome = result.value
        transaction = outcome.transaction
        assert transaction.status is TransactionStatus.APPROVED
        assert transaction.product_amount == Decimal("50000")
        assert transaction.base_fee == Decimal("500000")
        assert transaction.delivery_fee == Decimal("1000000")
        assert transaction.total_amount == Decimal("1550000")
        assert transaction.gateway_transaction_id == "gw-txn-1"
        assert transaction.gateway_reference == "TXN-ABCDEF12"
        assert transaction.payment_method == "CARD"
        assert transaction.card_last_four == "4242"
        assert transaction.delivery_id == outcome.delivery.id
        assert outcome.customer.email == "john@example.com"

        assert product_repository.products["prod-1"].stock == 9
        assert stored_transaction(transaction_repository).status is TransactionStatus.APPROVED

        [(_, payment_request, acceptance_token)] = gateway.called("create_payment")
        assert acceptance_token == "acc_token_123"
        assert payment_request.amount_in_cents == 155000000
        assert payment_request.currency == "COP"
        assert payment_request.customer_email == "john@example.com"
        assert re.fullmatch(r"TXN-[0-9A-F]{8}", payment_request.reference)
        assert payment_request.payment_method.type == "CARD"
        assert payment_request.payment_method.token == "tok_test_123"
        assert payment_request.payment_method.installments == 1
        assert payment_request.customer_data.full_name == "John Doe"
        assert payment_request.customer_data.phone_number == "+573001234567"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_installments_forwarded(
        self, saga: PaymentSaga, purchase_request: PurchaseRequest, gateway: FakeGateway
    ) -> None:
        await saga.execute(replace(purchase_request, installments=6))

        [(_, payment_request, _)] = gateway.called("create_payment")
        assert payment_request.payment_method.installments == 6

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_existing_customer_reused(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        customer_repository: InMemoryCustomerRepository,
    ) -> None:
        existing = Customer(email="john@example.com", full_name="John Doe")
        customer_repository.customers[existing.id] = existing

        result = await saga.execute(purchase_request)

        assert result.value.customer.id == existing.id
        assert len(customer_repository.customers) == 1
        assert "save" not in customer_repository.calls

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_quantity_multiplies_price(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        product_repository: InMemoryProductRepository,
    ) -> None:
        result = await saga.execute(replace(purchase_request, quantity=3))

        assert result.value.transaction.product_amount == Decimal("150000")
        assert result.value.transaction.total_amount == Decimal("1650000")
        assert product_repository.products["prod-1"].stock == 7


class TestValidationFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_insufficient_stock_writes_nothing(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        customer_repository: InMemoryCustomerRepository,
        delivery_repository: InMemoryDeliveryRepository,
        transaction_repository: InMemoryTransactionRepository,
        gateway: FakeGateway,
    ) -> None:
        result = await saga.execute(replace(purchase_request, quantity=11))

        assert result.is_failure
        assert isinstance(result.error, InsufficientStockError)
        assert result.error.requested == 11
        assert result.error.available == 10
        assert customer_repository.customers == {}
        assert delivery_repository.deliveries == {}
        assert transaction_repository.transactions == {}
        assert gateway.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_product(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        transaction_repository: InMemoryTransactionRepository,
    ) -> None:
        result = await saga.execute(replace(purchase_request, product_id="missing"))

        assert isinstance(result.error, ProductNotFoundError)
        assert result.error.product_id == "missing"
        assert transaction_repository.transactions == {}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_customer_storage_failure_is_a_failed_result(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        customer_repository: InMemoryCustomerRepository,
        transaction_repository: InMemoryTransactionRepository,
    ) -> None:
        customer_repository.failing.add("save")

        result = await saga.execute(purchase_request)

        assert isinstance(result.error, StorageUnavailable)
        assert transaction_repository.transactions == {}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pending_save_failure_has_nothing_to_record(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        transaction_repository: InMemoryTransactionRepository,
        gateway: FakeGateway,
    ) -> None:
        transaction_repository.failing.add("save")

        result = await saga.execute(purchase_request)

        assert isinstance(result.error, StorageUnavailable)
        assert "update" not in transaction_repository.calls
        assert gateway.calls == []


class TestGatewayFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_acceptance_token_failure_records_error(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        transaction_repository: InMemoryTransactionRepository,
        product_repository: InMemoryProductRepository,
        gateway: FakeGateway,
    ) -> None:
        gateway.acceptance_result = gateway_failure("Failed to get acceptance token: timeout")

        result = await saga.execute(purchase_request)

        assert result.is_failure
        assert str(result.error) == "Failed to get acceptance token: timeout"
        transaction = stored_transaction(transaction_repository)
        assert transaction.status is TransactionStatus.ERROR
        assert transaction.error_message == "Failed to get acceptance token: timeout"
        assert gateway.called("tokenize_card") == []
        assert gateway.called("create_payment") == []
        assert product_repository.products["prod-1"].stock == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tokenization_failure_records_error(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        transaction_repository: InMemoryTransactionRepository,
        gateway: FakeGateway,
    ) -> None:
        gateway.tokenize_result = gateway_failure("Card tokenization failed: invalid number")

        result = await saga.execute(purchase_request)

        assert str(result.error) == "Card tokenization failed: invalid number"
        assert stored_transaction(transaction_repository).status is TransactionStatus.ERROR
        assert gateway.called("create_payment") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_payment_failure_keeps_card_details(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        transaction_repository: InMemoryTransactionRepository,
        gateway: FakeGateway,
    ) -> None:
        gateway.payment_result = gateway_failure("Payment failed: signature mismatch")

        result = await saga.execute(purchase_request)

        assert result.is_failure
        transaction = stored_transaction(transaction_repository)
        assert transaction.status is TransactionStatus.ERROR
        assert transaction.error_message == "Payment failed: signature mismatch"
        assert transaction.payment_method == "CARD"
        assert transaction.card_last_four == "4242"
        assert transaction.gateway_transaction_id is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_marking_failure_returns_original_error(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        transaction_repository: InMemoryTransactionRepository,
        gateway: FakeGateway,
    ) -> None:
        gateway.acceptance_result = gateway_failure("Failed to get acceptance token: down")
        transaction_repository.failing.add("update")

        result = await saga.execute(purchase_request)

        assert str(result.error) == "Failed to get acceptance token: down"
        assert stored_transaction(transaction_repository).status is TransactionStatus.PENDING


class TestOutcomes:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_declined_uses_fallback_message(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        product_repository: InMemoryProductRepository,
        gateway: FakeGateway,
    ) -> None:
        gateway.payment_result = gateway_success(status=GatewayStatus.DECLINED)

        result = await saga.execute(purchase_request)

        assert result.is_success
        transaction = result.value.transaction
        assert transaction.status is TransactionStatus.DECLINED
        assert transaction.error_message == "Payment declined by issuer"
        assert transaction.gateway_transaction_id == "gw-txn-1"
        assert product_repository.products["prod-1"].stock == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_declined_keeps_gateway_message(
        self, saga: PaymentSaga, purchase_request: PurchaseRequest, gateway: FakeGateway
    ) -> None:
        gateway.payment_result = gateway_success(
            status=GatewayStatus.DECLINED, status_message="Insufficient funds"
        )

        result = await saga.execute(purchase_request)

        assert result.value.transaction.error_message == "Insufficient funds"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pending_at_gateway_stays_pending(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        product_repository: InMemoryProductRepository,
        transaction_repository: InMemoryTransactionRepository,
        gateway: FakeGateway,
    ) -> None:
        gateway.payment_result = gateway_success(status=GatewayStatus.PENDING)

        result = await saga.execute(purchase_request)

        transaction = result.value.transaction
        assert transaction.status is TransactionStatus.PENDING
        assert transaction.gateway_transaction_id == "gw-txn-1"
        assert stored_transaction(transaction_repository).gateway_transaction_id == "gw-txn-1"
        assert product_repository.products["prod-1"].stock == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stock_race_does_not_fail_approved_payment(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        product_repository: InMemoryProductRepository,
        transaction_repository: InMemoryTransactionRepository,
    ) -> None:
        """Another buyer drains the stock between validation and approval."""
        original_find = product_repository.find_by_id

        async def find_then_drain(product_id: str):
            product = await original_find(product_id)
            product_repository.products[product_id].stock = 0
            return product

        product_repository.find_by_id = find_then_drain

        result = await saga.execute(purchase_request)

        assert result.value.transaction.status is TransactionStatus.APPROVED
        assert product_repository.products["prod-1"].stock == 0
        assert product_repository.stock_updates == []
        assert stored_transaction(transaction_repository).status is TransactionStatus.APPROVED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stock_write_failure_does_not_fail_approved_payment(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        product_repository: InMemoryProductRepository,
    ) -> None:
        product_repository.failing.add("update_stock")

        result = await saga.execute(purchase_request)

        assert result.value.transaction.status is TransactionStatus.APPROVED
        assert product_repository.products["prod-1"].stock == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_final_persist_failure_keeps_gateway_verdict(
        self,
        saga: PaymentSaga,
        purchase_request: PurchaseRequest,
        transaction_repository: InMemoryTransactionRepository,
    ) -> None:
        transaction_repository.failing.add("update")

        result = await saga.execute(purchase_request)

        assert isinstance(result.error, StorageUnavailable)
        assert transaction_repository.calls.count("update") == 1
        assert stored_transaction(transaction_repository).status is TransactionStatus.PENDING


class TestWithMockGateway:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_gateway_exception_becomes_failure_and_is_recorded(
        self,
        product_repository: InMemoryProductRepository,
        customer_repository: InMemoryCustomerRepository,
        delivery_repository: InMemoryDeliveryRepository,
        transaction_repository: InMemoryTransactionRepository,
        purchase_request: PurchaseRequest,
        test_settings: Settings,
    ) -> None:
        """A gateway that raises instead of returning a Result is still contained."""
        gateway = AsyncMock()
        gateway.get_acceptance_token.side_effect = RuntimeError("connection reset")

        saga = PaymentSaga(
            product_repository,
            customer_repository,
            delivery_repository,
            transaction_repository,
            gateway,
            settings=test_settings,
        )
        result = await saga.execute(purchase_request)

        assert isinstance(result.error, RuntimeError)
        assert stored_transaction(transaction_repository).error_message == "connection reset"
        gateway.tokenize_card.assert_not_awaited()
