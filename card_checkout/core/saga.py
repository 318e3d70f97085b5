"""
Payment saga: the checkout workflow as a fixed pipeline of named steps.

    validate_product → ensure_customer → create_delivery → compute_amounts
        → persist_pending_transaction → acquire_acceptance_token
        → tokenize_card → create_payment → resolve_outcome
        → persist_final_state

Each step takes the current SagaState and returns a Result carrying the next
one; the steps are folded with flat_map_async, so the first failure skips
everything after it.

Compensation is recording, not undoing: once the PENDING transaction is
stored, a failing step marks it ERROR (with the failure message) and persists
that before the original failure is returned. Customers and deliveries are
never rolled back.
"""
import time
import uuid
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional

import structlog

from card_checkout.config import Settings, get_settings
from card_checkout.core.inventory import decrement_stock
from card_checkout.domain.aggregates import Transaction
from card_checkout.domain.entities import Customer, Delivery, Product
from card_checkout.domain.errors import InsufficientStockError, ProductNotFoundError
from card_checkout.domain.ports import (
    AcceptanceToken,
    CardData,
    CardToken,
    CreatePaymentRequest,
    CustomerRepository,
    DeliveryRepository,
    GatewayCustomerData,
    GatewayPayment,
    GatewayStatus,
    PaymentGateway,
    PaymentMethodData,
    ProductRepository,
    TransactionRepository,
)
from card_checkout.domain.value_objects import PaymentAmounts
from card_checkout.monitoring.metrics import metrics
from card_checkout.result import Result

logger = structlog.get_logger(__name__)

DECLINED_FALLBACK_MESSAGE = "Payment declined by issuer"


@dataclass(frozen=True)
class CustomerData:
    email: str
    full_name: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class DeliveryData:
    address: str
    city: str
    department: str
    zip_code: Optional[str] = None


@dataclass(frozen=True)
class PurchaseRequest:
    """Everything a buyer submits for one checkout."""

    product_id: str
    quantity: int
    customer: CustomerData
    delivery: DeliveryData
    card: CardData
    installments: Optional[int] = None


@dataclass(frozen=True)
class PaymentOutcome:
    transaction: Transaction
    customer: Customer
    delivery: Delivery


@dataclass(frozen=True)
class SagaState:
    """
    Accumulated context of one saga run.

    Steps never mutate the state; they return a copy with their output filled
    in. The Transaction inside is the one mutable aggregate and is shared by
    every copy.
    """

    request: PurchaseRequest
    product: Optional[Product] = None
    customer: Optional[Customer] = None
    delivery: Optional[Delivery] = None
    amounts: Optional[PaymentAmounts] = None
    transaction: Optional[Transaction] = None
    acceptance_token: Optional[AcceptanceToken] = None
    card_token: Optional[CardToken] = None
    payment: Optional[GatewayPayment] = None


StepAction = Callable[[SagaState], Awaitable[Result[SagaState, Exception]]]
Compensation = Callable[[SagaState, Exception], Awaitable[None]]


class SagaStep:
    """
    A single named step of the payment saga.

    Each step has:
    - Forward action (returns a Result, may also raise)
    - Optional compensation, run with the pre-step state when the action fails
    """

    def __init__(
        self,
        name: str,
        action: StepAction,
        compensation: Optional[Compensation] = None,
    ):
        self.name = name
        self.action = action
        self.compensation = compensation

    async def execute(self, state: SagaState) -> Result[SagaState, Exception]:
        """
        Run the forward action.

        An exception escaping the action is converted into a failed Result,
        so repository errors travel the same track as domain failures.
        """
        logger.info("saga_step_executing", step=self.name)

        try:
            result = await self.action(state)
        except Exception as e:
            result = Result.fail(e)

        if result.is_failure:
            logger.warning(
                "saga_step_failed",
                step=self.name,
                error=str(result.error),
                error_type=type(result.error).__name__,
            )
            metrics.record_saga_step_failure(self.name)
        else:
            logger.debug("saga_step_completed", step=self.name)
        return result

    async def compensate(self, state: SagaState, error: Exception) -> None:
        if self.compensation is None:
            return
        await self.compensation(state, error)


class PaymentSaga:
    """
    Process a card payment for a single-product purchase.

    Validation failures return before anything is written. From the moment
    the PENDING transaction exists, every failure is recorded on it before it
    propagates.
    """

    def __init__(
        self,
        product_repository: ProductRepository,
        customer_repository: CustomerRepository,
        delivery_repository: DeliveryRepository,
        transaction_repository: TransactionRepository,
        payment_gateway: PaymentGateway,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the saga.

        Args:
            product_repository: Product storage
            customer_repository: Customer storage
            delivery_repository: Delivery storage
            transaction_repository: Transaction storage
            payment_gateway: External payment gateway
            settings: Fee and currency configuration (defaults to the app settings)
        """
        self.products = product_repository
        self.customers = customer_repository
        self.deliveries = delivery_repository
        self.transactions = transaction_repository
        self.gateway = payment_gateway
        self.settings = settings or get_settings()

        self.steps: List[SagaStep] = [
            SagaStep("validate_product", self._validate_product),
            SagaStep("ensure_customer", self._ensure_customer),
            SagaStep("create_delivery", self._create_delivery),
            SagaStep("compute_amounts", self._compute_amounts),
            SagaStep("persist_pending_transaction", self._persist_pending_transaction),
            SagaStep("acquire_acceptance_token", self._acquire_acceptance_token, self._record_error),
            SagaStep("tokenize_card", self._tokenize_card, self._record_error),
            SagaStep("create_payment", self._create_payment, self._record_error),
            SagaStep("resolve_outcome", self._resolve_outcome, self._record_error),
            SagaStep("persist_final_state", self._persist_final_state, self._record_error),
        ]

    async def execute(self, request: PurchaseRequest) -> Result[PaymentOutcome, Exception]:
        """
        Run the whole checkout.

        Args:
            request: Purchase details submitted by the buyer

        Returns:
            Result[PaymentOutcome, Exception]: The persisted transaction with
            its customer and delivery, or the first failure
        """
        start_time = time.time()
        logger.info(
            "payment_saga_started",
            product_id=request.product_id,
            quantity=request.quantity,
            customer_email=request.customer.email,
        )

        result: Result[SagaState, Exception] = Result.ok(SagaState(request=request))
        for step in self.steps:
            previous = result.value
            result = await result.flat_map_async(step.execute)
            if result.is_failure:
                await step.compensate(previous, result.error)
                break

        duration = time.time() - start_time
        metrics.record_checkout_duration(duration)

        if result.is_failure:
            metrics.record_checkout("failed")
            logger.warning(
                "payment_saga_failed",
                product_id=request.product_id,
                error=str(result.error),
                duration_seconds=duration,
            )
            return Result.fail(result.error)

        state = result.value
        metrics.record_checkout(state.transaction.status.value, state.amounts.amount_in_cents)
        logger.info(
            "payment_saga_completed",
            transaction_id=state.transaction.id,
            status=state.transaction.status.value,
            duration_seconds=duration,
        )
        return Result.ok(
            PaymentOutcome(
                transaction=state.transaction,
                customer=state.customer,
                delivery=state.delivery,
            )
        )

    # Steps

    async def _validate_product(self, state: SagaState) -> Result[SagaState, Exception]:
        request = state.request
        product = await self.products.find_by_id(request.product_id)
        if product is None:
            return Result.fail(ProductNotFoundError(request.product_id))
        if not product.has_stock(request.quantity):
            return Result.fail(
                InsufficientStockError(request.product_id, request.quantity, product.stock)
            )
        return Result.ok(replace(state, product=product))

    async def _ensure_customer(self, state: SagaState) -> Result[SagaState, Exception]:
        data = state.request.customer
        customer = await self.customers.find_by_email(data.email)
        if customer is None:
            customer = await self.customers.save(
                Customer(email=data.email, full_name=data.full_name, phone=data.phone)
            )
            logger.info("customer_created", customer_id=customer.id)
        return Result.ok(replace(state, customer=customer))

    async def _create_delivery(self, state: SagaState) -> Result[SagaState, Exception]:
        data = state.request.delivery
        delivery = await self.deliveries.save(
            Delivery(
                customer_id=state.customer.id,
                address=data.address,
                city=data.city,
                department=data.department,
                zip_code=data.zip_code,
            )
        )
        return Result.ok(replace(state, delivery=delivery))

    async def _compute_amounts(self, state: SagaState) -> Result[SagaState, Exception]:
        amounts = PaymentAmounts.calculate(
            unit_price=state.product.price,
            quantity=state.request.quantity,
            base_fee=self.settings.base_fee,
            delivery_fee=self.settings.delivery_fee,
        )
        logger.info(
            "payment_amounts_calculated",
            product_amount=str(amounts.product_amount),
            total_amount=str(amounts.total_amount),
            amount_in_cents=amounts.amount_in_cents,
        )
        return Result.ok(replace(state, amounts=amounts))

    async def _persist_pending_transaction(self, state: SagaState) -> Result[SagaState, Exception]:
        amounts = state.amounts
        transaction = await self.transactions.save(
            Transaction.open(
                customer_id=state.customer.id,
                product_id=state.product.id,
                delivery_id=state.delivery.id,
                quantity=state.request.quantity,
                product_amount=amounts.product_amount,
                base_fee=amounts.base_fee,
                delivery_fee=amounts.delivery_fee,
            )
        )
        logger.info("pending_transaction_created", transaction_id=transaction.id)
        return Result.ok(replace(state, transaction=transaction))

    async def _acquire_acceptance_token(self, state: SagaState) -> Result[SagaState, Exception]:
        result = await self.gateway.get_acceptance_token()
        return result.map(lambda token: replace(state, acceptance_token=token))

    async def _tokenize_card(self, state: SagaState) -> Result[SagaState, Exception]:
        result = await self.gateway.tokenize_card(state.request.card)
        return result.map(lambda card_token: replace(state, card_token=card_token))

    async def _create_payment(self, state: SagaState) -> Result[SagaState, Exception]:
        transaction = state.transaction
        customer = state.customer
        method_type = self.settings.payment_method_type

        transaction.set_payment_details(method_type, state.card_token.last_four)

        payment_request = CreatePaymentRequest(
            amount_in_cents=state.amounts.amount_in_cents,
            currency=self.settings.gateway_currency,
            customer_email=customer.email,
            reference=new_reference(),
            payment_method=PaymentMethodData(
                type=method_type,
                token=state.card_token.token,
                installments=state.request.installments or 1,
            ),
            customer_data=GatewayCustomerData(
                full_name=customer.full_name,
                phone_number=customer.phone,
            ),
        )
        logger.info(
            "gateway_payment_requested",
            transaction_id=transaction.id,
            reference=payment_request.reference,
            amount_in_cents=payment_request.amount_in_cents,
        )

        result = await self.gateway.create_payment(
            payment_request, state.acceptance_token.acceptance_token
        )
        if result.is_failure:
            return Result.fail(result.error)

        payment = result.value
        transaction.set_payment_details(
            method_type, state.card_token.last_four, payment.transaction_id
        )
        return Result.ok(replace(state, payment=payment))

    async def _resolve_outcome(self, state: SagaState) -> Result[SagaState, Exception]:
        transaction = state.transaction
        payment = state.payment

        if payment.status is GatewayStatus.APPROVED:
            transaction.approve(payment.transaction_id, payment.reference)
            await decrement_stock(
                self.products, transaction.product_id, transaction.quantity, transaction.id
            )
        elif payment.status is GatewayStatus.DECLINED:
            transaction.decline(payment.status_message or DECLINED_FALLBACK_MESSAGE)
        else:
            # Settles asynchronously; reconciled on the next read
            logger.info(
                "payment_pending_at_gateway",
                transaction_id=transaction.id,
                gateway_status=payment.status.value,
            )
        return Result.ok(state)

    async def _persist_final_state(self, state: SagaState) -> Result[SagaState, Exception]:
        transaction = await self.transactions.update(state.transaction)
        return Result.ok(replace(state, transaction=transaction))

    # Compensation

    async def _record_error(self, state: SagaState, error: Exception) -> None:
        """
        Mark the in-flight transaction ERROR and persist it.

        Only a still-PENDING transaction is marked: a payment the gateway
        already approved or declined keeps its verdict even if storing it
        failed. A failure while persisting the mark is logged and dropped so
        the caller still sees the original error.
        """
        transaction = state.transaction
        if transaction is None or not transaction.is_pending:
            return

        transaction.set_error(str(error))
        try:
            await self.transactions.update(transaction)
        except Exception as e:
            logger.error(
                "transaction_error_not_persisted",
                transaction_id=transaction.id,
                original_error=str(error),
                error=str(e),
            )
            return
        logger.error("transaction_marked_error", transaction_id=transaction.id, error=str(error))


def new_reference() -> str:
    """Merchant reference sent to the gateway: TXN- plus 8 upper-case hex chars."""
    return f"TXN-{uuid.uuid4().hex[:8].upper()}"
