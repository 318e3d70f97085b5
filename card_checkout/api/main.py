"""
Card checkout API.

Serves the product catalog and the transaction endpoints, plus health probes
and Prometheus metrics. Every response carries an X-Request-ID that also
appears in each log line of the request.
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from card_checkout import __version__
from card_checkout.config import Settings, get_settings
from card_checkout.database.connection import close_db, get_session_factory, init_db
from card_checkout.database.seed import seed_products
from card_checkout.monitoring.logging import setup_logging

from .dependencies import close_gateway
from .routes import monitoring_router, product_router, transaction_router

setup_logging()
logger = structlog.get_logger(__name__)

settings = get_settings()

REQUEST_ID_HEADER = "X-Request-ID"

# Probe traffic is not logged per request.
UNLOGGED_PATHS = frozenset({"/health/live", "/health/ready", "/metrics"})


async def prepare_database(settings: Settings) -> int:
    """Create the schema and seed an empty catalog. Returns the number of products seeded."""
    await init_db()
    if not settings.seed_products:
        return 0
    async with get_session_factory()() as session:
        return await seed_products(session)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        env=settings.app_env,
        gateway_api_url=settings.gateway_api_url,
        database=settings.database_url.split("://", 1)[0],
    )

    missing = settings.missing_gateway_credentials()
    if missing:
        logger.warning("gateway_credentials_missing", missing=missing)

    try:
        seeded = await prepare_database(settings)
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e))
        raise
    logger.info("database_ready", products_seeded=seeded)

    yield

    logger.info("application_shutdown")
    await close_gateway()
    await close_db()


app = FastAPI(
    title="Card Checkout",
    description=(
        "Single-product card checkout: stock validation, gateway tokenization and "
        "payment, and read-time reconciliation of pending transactions."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next: Any) -> Response:
    """
    Bind a request id to the structlog context and echo it back.

    A client-supplied X-Request-ID is reused so the storefront can correlate
    a checkout with the server logs.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    quiet = request.url.path in UNLOGGED_PATHS
    start_time = time.time()

    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        if not quiet:
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
        return response
    finally:
        structlog.contextvars.clear_contextvars()


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything a route did not turn into a Result failure; details stay in the logs."""
    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "type": type(exc).__name__,
            },
        },
    )


app.include_router(product_router)
app.include_router(transaction_router)
app.include_router(monitoring_router)


@app.get("/", tags=["root"])
async def root() -> dict[str, Any]:
    return {
        "service": settings.app_name,
        "version": __version__,
        "environment": settings.app_env,
        "endpoints": {
            "products": product_router.prefix,
            "transactions": transaction_router.prefix,
            "health": "/health",
            "metrics": "/metrics",
        },
    }


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "card_checkout.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
