"""
Outbound ports.

The core talks to storage and to the payment gateway only through these
contracts. Concrete adapters live in card_checkout.database and
card_checkout.integrations; tests use in-memory fakes.

Repository methods may raise infrastructure exceptions; callers in the core
convert them to failed Results at the call site. Gateway methods never raise:
every call resolves to a Result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol

from card_checkout.domain.aggregates import Transaction
from card_checkout.domain.entities import Customer, Delivery, Product
from card_checkout.result import Result


class ProductRepository(Protocol):
    """Interface for product storage."""

    async def find_all(self) -> List[Product]:
        ...

    async def find_by_id(self, product_id: str) -> Optional[Product]:
        ...

    async def find_by_id_with_lock(self, product_id: str) -> Optional[Product]:
        """
        Read a product holding an exclusive row lock.

        The lock must stay held until the following update_stock call is
        committed, so the read-modify-write of stock is atomic.
        """
        ...

    async def save(self, product: Product) -> Product:
        ...

    async def update_stock(self, product_id: str, stock: int) -> None:
        ...


class CustomerRepository(Protocol):
    """Interface for customer storage."""

    async def find_by_id(self, customer_id: str) -> Optional[Customer]:
        ...

    async def find_by_email(self, email: str) -> Optional[Customer]:
        ...

    async def save(self, customer: Customer) -> Customer:
        ...


class DeliveryRepository(Protocol):
    """Interface for delivery storage."""

    async def find_by_id(self, delivery_id: str) -> Optional[Delivery]:
        ...

    async def find_by_customer_id(self, customer_id: str) -> List[Delivery]:
        ...

    async def save(self, delivery: Delivery) -> Delivery:
        ...


class TransactionRepository(Protocol):
    """Interface for transaction storage."""

    async def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        ...

    async def find_by_customer_id(self, customer_id: str) -> List[Transaction]:
        ...

    async def save(self, transaction: Transaction) -> Transaction:
        """Insert a new transaction."""
        ...

    async def update(self, transaction: Transaction) -> Transaction:
        """Full overwrite by id."""
        ...


# Gateway records


class GatewayStatus(str, Enum):
    """Status values the gateway reports for a payment."""

    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    PENDING = "PENDING"
    VOIDED = "VOIDED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class AcceptanceToken:
    acceptance_token: str
    permalink: str
    type: str


@dataclass(frozen=True)
class CardData:
    """Raw card fields, only ever forwarded to the gateway for tokenization."""

    number: str
    cvc: str
    exp_month: str
    exp_year: str
    card_holder: str

    def __repr__(self) -> str:
        return f"CardData(card_holder={self.card_holder!r}, number='****{self.number[-4:]}')"


@dataclass(frozen=True)
class CardToken:
    token: str
    brand: str
    last_four: str
    expires_at: str


@dataclass(frozen=True)
class PaymentMethodData:
    type: str
    token: str
    installments: int = 1


@dataclass(frozen=True)
class GatewayCustomerData:
    full_name: str
    phone_number: Optional[str] = None


@dataclass(frozen=True)
class CreatePaymentRequest:
    amount_in_cents: int
    currency: str
    customer_email: str
    reference: str
    payment_method: PaymentMethodData
    customer_data: Optional[GatewayCustomerData] = None


@dataclass(frozen=True)
class GatewayPayment:
    """Gateway view of a payment (create_payment and get_transaction)."""

    transaction_id: str
    reference: str
    status: GatewayStatus
    payment_method_type: str
    amount_in_cents: int
    currency: str
    status_message: Optional[str] = None


class PaymentGateway(Protocol):
    """Interface for the external payment gateway."""

    async def get_acceptance_token(self) -> Result[AcceptanceToken, Exception]:
        ...

    async def tokenize_card(self, card: CardData) -> Result[CardToken, Exception]:
        ...

    async def create_payment(
        self, request: CreatePaymentRequest, acceptance_token: str
    ) -> Result[GatewayPayment, Exception]:
        ...

    async def get_transaction(
        self, gateway_transaction_id: str
    ) -> Result[GatewayPayment, Exception]:
        ...
