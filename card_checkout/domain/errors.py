"""
Domain error taxonomy.

Closed set of named failure conditions. Each carries a stable machine-readable
code plus structured fields, so the HTTP boundary can branch on `code` and
`http_status` instead of on class identity.

Anything that is not a DomainError (repository failures, gateway transport
errors) is a generic error and maps to a catch-all response.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict


class DomainErrorCode(str, Enum):
    """Discriminant for domain errors."""

    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    INVALID_CARD = "INVALID_CARD"
    PAYMENT_FAILED = "PAYMENT_FAILED"


class DomainError(Exception):
    """
    Base class for all domain errors.

    Every subclass pins:
    - code: stable discriminant (for client handling)
    - http_status: externally visible outcome (404 for not-found kinds)
    """

    code: ClassVar[DomainErrorCode]
    http_status: ClassVar[int] = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "type": self.__class__.__name__,
            }
        }


class InsufficientStockError(DomainError):
    """Requested quantity exceeds available stock."""

    code = DomainErrorCode.INSUFFICIENT_STOCK

    def __init__(self, product_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Requested: {requested}, Available: {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ProductNotFoundError(DomainError):
    code = DomainErrorCode.PRODUCT_NOT_FOUND
    http_status = 404

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product with id {product_id} not found")
        self.product_id = product_id


class TransactionNotFoundError(DomainError):
    code = DomainErrorCode.TRANSACTION_NOT_FOUND
    http_status = 404

    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction with id {transaction_id} not found")
        self.transaction_id = transaction_id


class CustomerNotFoundError(DomainError):
    code = DomainErrorCode.CUSTOMER_NOT_FOUND
    http_status = 404

    def __init__(self, customer_id: str) -> None:
        super().__init__(f"Customer with id {customer_id} not found")
        self.customer_id = customer_id


class InvalidCardError(DomainError):
    code = DomainErrorCode.INVALID_CARD

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid card: {reason}")
        self.reason = reason


class PaymentFailedError(DomainError):
    code = DomainErrorCode.PAYMENT_FAILED

    def __init__(self, reason: str) -> None:
        super().__init__(f"Payment failed: {reason}")
        self.reason = reason


class InvalidTransitionError(Exception):
    """
    Raised when a Transaction is asked to leave a terminal status.

    Not a DomainError: correct callers never trigger it, so it surfaces as a
    programming error rather than a user-facing outcome.
    """

    def __init__(self, transaction_id: str, current_status: str, target_status: str) -> None:
        super().__init__(
            f"Transaction {transaction_id} cannot move from {current_status} to {target_status}"
        )
        self.transaction_id = transaction_id
        self.current_status = current_status
        self.target_status = target_status
