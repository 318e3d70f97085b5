"""Database package for card checkout."""
from .connection import close_db, get_db, get_session_factory, init_db
from .models import (
    Base,
    CustomerRecord,
    DeliveryRecord,
    ProductRecord,
    TransactionRecord,
)
from .repositories import (
    SqlCustomerRepository,
    SqlDeliveryRepository,
    SqlProductRepository,
    SqlTransactionRepository,
)

__all__ = [
    "Base",
    "CustomerRecord",
    "DeliveryRecord",
    "ProductRecord",
    "TransactionRecord",
    "SqlCustomerRepository",
    "SqlDeliveryRepository",
    "SqlProductRepository",
    "SqlTransactionRepository",
    "close_db",
    "get_db",
    "get_session_factory",
    "init_db",
]
