"""
Structured logging configuration.

structlog events and plain stdlib records (uvicorn, SQLAlchemy, httpx) share one
JSON handler on stdout. The request id bound by the API middleware is merged
into every event through contextvars, and raw card data never reaches a log
line.
"""
import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from card_checkout.config import get_settings

# Event keys whose values are card data.
CARD_NUMBER_KEYS = frozenset({"card_number", "number", "pan"})
CARD_SECRET_KEYS = frozenset({"cvc", "cvv", "card", "gateway_private_key", "gateway_integrity_key"})

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def mask_card_number(number: str) -> str:
    """Keep the last four digits only."""
    digits = "".join(ch for ch in str(number) if ch.isdigit())
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]


def redact_card_data(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor: mask card numbers and drop card secrets."""
    for key in CARD_NUMBER_KEYS.intersection(event_dict):
        event_dict[key] = mask_card_number(event_dict[key])
    for key in CARD_SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "[REDACTED]"
    return event_dict


def add_app_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    settings = get_settings()
    event_dict["app_name"] = settings.app_name
    event_dict["app_env"] = settings.app_env
    return event_dict


def setup_logging() -> None:
    """
    Configure structlog and the root logger.

    Debug mode renders events for a terminal; every other mode emits JSON.
    """
    settings = get_settings()

    if settings.debug:
        renderer: Any = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            redact_card_data,
            add_app_context,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "@timestamp", "levelname": "level", "name": "logger"},
        )
    )
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        app_env=settings.app_env,
        renderer=type(renderer).__name__,
    )
