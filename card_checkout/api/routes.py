"""
API routes for products, transactions and monitoring.
"""
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from card_checkout.core.catalog import ProductCatalog
from card_checkout.core.reconciliation import TransactionReconciler
from card_checkout.core.saga import PaymentSaga
from card_checkout.domain.errors import DomainError
from card_checkout.monitoring.health import HealthCheck

from .dependencies import get_catalog, get_health_check, get_payment_saga, get_reconciler
from .schemas import (
    CheckoutResponse,
    CreateTransactionRequest,
    HealthCheckResponse,
    ProductDetailResponse,
    ProductListResponse,
    TransactionDetailResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
product_router = APIRouter(prefix="/api/products", tags=["products"])
transaction_router = APIRouter(prefix="/api/transactions", tags=["transactions"])
monitoring_router = APIRouter(tags=["monitoring"])


def _http_error(error: Exception, fallback_status: int) -> HTTPException:
    """
    Translate a failed Result into an HTTPException.

    Domain errors carry their own status. Anything else gets fallback_status;
    its message is exposed only for 4xx responses.
    """
    if isinstance(error, DomainError):
        return HTTPException(status_code=error.http_status, detail=error.to_dict()["error"])

    if fallback_status >= 500:
        message = "An unexpected error occurred"
    else:
        message = str(error)
    return HTTPException(
        status_code=fallback_status,
        detail={"code": "REQUEST_FAILED", "message": message, "type": type(error).__name__},
    )


@product_router.get(
    "",
    response_model=ProductListResponse,
    summary="List products",
    description="All products, most recently added first",
)
async def list_products(catalog: ProductCatalog = Depends(get_catalog)) -> Dict[str, Any]:
    result = await catalog.list_products()
    if result.is_failure:
        logger.error("api_list_products_error", error=str(result.error))
        raise _http_error(result.error, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True, "data": [product.to_dict() for product in result.value]}


@product_router.get(
    "/{product_id}",
    response_model=ProductDetailResponse,
    summary="Get a product",
)
async def get_product(
    product_id: str,
    catalog: ProductCatalog = Depends(get_catalog),
) -> Dict[str, Any]:
    result = await catalog.get_product(product_id)
    if result.is_failure:
        raise _http_error(result.error, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True, "data": result.value.to_dict()}


@transaction_router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a transaction",
    description="Validate stock, charge the card and record the transaction",
)
async def create_transaction(
    request: CreateTransactionRequest,
    saga: PaymentSaga = Depends(get_payment_saga),
) -> Dict[str, Any]:
    """
    Run the checkout.

    A 201 means the transaction was recorded; its status says whether the
    card was approved, declined or is still pending at the gateway.
    """
    logger.info(
        "api_create_transaction_request",
        product_id=request.product_id,
        quantity=request.quantity,
    )

    result = await saga.execute(request.to_purchase())
    if result.is_failure:
        logger.warning(
            "api_create_transaction_failed",
            error=str(result.error),
            error_type=type(result.error).__name__,
        )
        raise _http_error(result.error, status.HTTP_400_BAD_REQUEST)

    outcome = result.value
    return {
        "success": True,
        "data": {
            "transaction": outcome.transaction.to_dict(),
            "customer": outcome.customer.to_dict(),
            "delivery": outcome.delivery.to_dict(),
        },
    }


@transaction_router.get(
    "/{transaction_id}",
    response_model=TransactionDetailResponse,
    summary="Get a transaction",
    description="Returns the transaction; a PENDING one is first refreshed from the gateway",
)
async def get_transaction(
    transaction_id: str,
    reconciler: TransactionReconciler = Depends(get_reconciler),
) -> Dict[str, Any]:
    result = await reconciler.get_transaction(transaction_id)
    if result.is_failure:
        raise _http_error(result.error, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"success": True, "data": result.value.to_dict()}


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    return await health_check.check_all()


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
)
async def readiness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Readiness probe endpoint. 503 until the database answers."""
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,  # Don't include in OpenAPI docs
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
