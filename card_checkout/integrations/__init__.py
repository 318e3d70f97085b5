"""External service integrations."""
from .gateway_client import (
    CircuitBreaker,
    CircuitOpenError,
    GatewayClient,
    GatewayError,
    GatewayErrorType,
)

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "GatewayClient",
    "GatewayError",
    "GatewayErrorType",
]
