"""
Transaction aggregate.

The Transaction owns the payment state machine:

    PENDING ──approve()──▶ APPROVED
       │
       ├──decline()──▶ DECLINED
       │
       └──set_error()─▶ ERROR

    (VOIDED is only ever reported by the gateway and is terminal too.)

Every status other than PENDING is terminal. Asking a terminal transaction to
move again raises InvalidTransitionError and leaves the record untouched, so
a late reconciliation can never flip an APPROVED payment to ERROR.

Amounts are fixed at creation: total_amount is the sum of the three components
and is never recomputed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from card_checkout.domain.entities import new_id, utcnow
from card_checkout.domain.errors import InvalidTransitionError

logger = structlog.get_logger(__name__)


class TransactionStatus(str, Enum):
    """Transaction lifecycle states."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    VOIDED = "VOIDED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


@dataclass
class Transaction:
    """
    Transaction aggregate root.

    Created PENDING by the payment saga; mutated afterwards only through the
    transition methods below, either by the saga itself or by reconciliation.
    """

    customer_id: str
    product_id: str
    quantity: int
    product_amount: Decimal
    base_fee: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    delivery_id: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING
    gateway_transaction_id: Optional[str] = None
    gateway_reference: Optional[str] = None
    payment_method: Optional[str] = None
    card_last_four: Optional[str] = None
    error_message: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def open(
        cls,
        customer_id: str,
        product_id: str,
        delivery_id: Optional[str],
        quantity: int,
        product_amount: Decimal,
        base_fee: Decimal,
        delivery_fee: Decimal,
    ) -> Transaction:
        """
        Factory method: start a new PENDING transaction.

        total_amount is derived here, once, from the three components.
        """
        return cls(
            customer_id=customer_id,
            product_id=product_id,
            delivery_id=delivery_id,
            quantity=quantity,
            product_amount=product_amount,
            base_fee=base_fee,
            delivery_fee=delivery_fee,
            total_amount=product_amount + base_fee + delivery_fee,
            status=TransactionStatus.PENDING,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is TransactionStatus.PENDING

    @property
    def is_approved(self) -> bool:
        return self.status is TransactionStatus.APPROVED

    @property
    def is_declined(self) -> bool:
        return self.status is TransactionStatus.DECLINED

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _ensure_pending(self, target: TransactionStatus) -> None:
        if not self.is_pending:
            raise InvalidTransitionError(self.id, self.status.value, target.value)

    def approve(self, gateway_transaction_id: str, gateway_reference: str) -> None:
        """PENDING → APPROVED, recording the gateway correlation fields."""
        self._ensure_pending(TransactionStatus.APPROVED)
        self.status = TransactionStatus.APPROVED
        self.gateway_transaction_id = gateway_transaction_id
        self.gateway_reference = gateway_reference
        self.updated_at = utcnow()
        logger.info(
            "transaction_approved",
            transaction_id=self.id,
            gateway_transaction_id=gateway_transaction_id,
        )

    def decline(self, reason: str) -> None:
        """PENDING → DECLINED."""
        self._ensure_pending(TransactionStatus.DECLINED)
        self.status = TransactionStatus.DECLINED
        self.error_message = reason
        self.updated_at = utcnow()
        logger.info("transaction_declined", transaction_id=self.id, reason=reason)

    def set_error(self, reason: str) -> None:
        """PENDING → ERROR, used when a step fails before any gateway verdict."""
        self._ensure_pending(TransactionStatus.ERROR)
        self.status = TransactionStatus.ERROR
        self.error_message = reason
        self.updated_at = utcnow()
        logger.info("transaction_errored", transaction_id=self.id, reason=reason)

    def set_delivery(self, delivery_id: str) -> None:
        self.delivery_id = delivery_id
        self.updated_at = utcnow()

    def set_payment_details(
        self,
        payment_method: str,
        card_last_four: str,
        gateway_transaction_id: Optional[str] = None,
    ) -> None:
        """
        Attach payment method metadata.

        Independent of status. A supplied gateway id overwrites the stored
        one; without it the existing id is kept.
        """
        self.payment_method = payment_method
        self.card_last_four = card_last_four
        if gateway_transaction_id:
            self.gateway_transaction_id = gateway_transaction_id
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "delivery_id": self.delivery_id,
            "quantity": self.quantity,
            "product_amount": str(self.product_amount),
            "base_fee": str(self.base_fee),
            "delivery_fee": str(self.delivery_fee),
            "total_amount": str(self.total_amount),
            "status": self.status.value,
            "gateway_transaction_id": self.gateway_transaction_id,
            "gateway_reference": self.gateway_reference,
            "payment_method": self.payment_method,
            "card_last_four": self.card_last_four,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
