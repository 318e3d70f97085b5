"""Core use cases: checkout saga, reconciling reads and catalog queries."""
from .catalog import ProductCatalog
from .reconciliation import TransactionReconciler
from .saga import (
    CustomerData,
    DeliveryData,
    PaymentOutcome,
    PaymentSaga,
    PurchaseRequest,
)

__all__ = [
    "CustomerData",
    "DeliveryData",
    "PaymentOutcome",
    "PaymentSaga",
    "ProductCatalog",
    "PurchaseRequest",
    "TransactionReconciler",
]
