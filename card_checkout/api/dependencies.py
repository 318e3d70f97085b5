"""
FastAPI dependency providers.

Repositories are built per request on the request's AsyncSession; the
gateway client is shared by the whole process.
"""
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from card_checkout.config import get_settings
from card_checkout.core.catalog import ProductCatalog
from card_checkout.core.reconciliation import TransactionReconciler
from card_checkout.core.saga import PaymentSaga
from card_checkout.database.connection import get_db
from card_checkout.database.repositories import (
    SqlCustomerRepository,
    SqlDeliveryRepository,
    SqlProductRepository,
    SqlTransactionRepository,
)
from card_checkout.integrations.gateway_client import GatewayClient
from card_checkout.monitoring.health import HealthCheck

_gateway_client: Optional[GatewayClient] = None


def get_gateway() -> GatewayClient:
    """Get or create the process-wide gateway client."""
    global _gateway_client
    if _gateway_client is None:
        _gateway_client = GatewayClient(get_settings())
    return _gateway_client


async def close_gateway() -> None:
    global _gateway_client
    if _gateway_client is not None:
        await _gateway_client.close()
        _gateway_client = None


def get_payment_saga(
    db: AsyncSession = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway),
) -> PaymentSaga:
    return PaymentSaga(
        product_repository=SqlProductRepository(db),
        customer_repository=SqlCustomerRepository(db),
        delivery_repository=SqlDeliveryRepository(db),
        transaction_repository=SqlTransactionRepository(db),
        payment_gateway=gateway,
        settings=get_settings(),
    )


def get_reconciler(
    db: AsyncSession = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway),
) -> TransactionReconciler:
    return TransactionReconciler(
        transaction_repository=SqlTransactionRepository(db),
        product_repository=SqlProductRepository(db),
        payment_gateway=gateway,
    )


def get_catalog(db: AsyncSession = Depends(get_db)) -> ProductCatalog:
    return ProductCatalog(SqlProductRepository(db))


def get_health_check() -> HealthCheck:
    return HealthCheck()
