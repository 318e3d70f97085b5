"""
Payment gateway HTTP client with retry logic and error classification.

Implements:
- The four-call card payment protocol (acceptance token, card token, payment, status)
- Integrity signature for payment creation
- Exponential backoff for idempotent reads (never for POSTs)
- Circuit breaker pattern

Every public method resolves to a Result; transport and protocol errors come
back as a failed Result carrying a GatewayError, never as an exception.
"""
import hashlib
import json
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from card_checkout.config import Settings, get_settings
from card_checkout.domain.ports import (
    AcceptanceToken,
    CardData,
    CardToken,
    CreatePaymentRequest,
    GatewayPayment,
    GatewayStatus,
)
from card_checkout.monitoring.metrics import metrics
from card_checkout.result import Result

logger = structlog.get_logger(__name__)


class GatewayErrorType(Enum):
    """Classification of gateway errors for retry logic."""

    TRANSIENT = "transient"  # Retry these
    PERMANENT = "permanent"  # Don't retry these
    RATE_LIMIT = "rate_limit"  # Retry with longer backoff


class GatewayError(Exception):
    """Failure talking to the payment gateway."""

    def __init__(
        self,
        message: str,
        error_type: GatewayErrorType,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize gateway error.

        Args:
            message: Error message
            error_type: Classification of error
            status_code: HTTP status returned by the gateway, if any
            original_error: Underlying exception
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.original_error = original_error

    @property
    def retryable(self) -> bool:
        return self.error_type in (GatewayErrorType.TRANSIENT, GatewayErrorType.RATE_LIMIT)


class CircuitOpenError(GatewayError):
    """Raised without calling the gateway while the circuit is open."""

    def __init__(self) -> None:
        super().__init__("Circuit breaker is open", GatewayErrorType.TRANSIENT)

    @property
    def retryable(self) -> bool:
        return False


class CircuitBreaker:
    """
    Circuit breaker for gateway calls.

    Prevents cascading failures by temporarily stopping requests
    when consecutive failures exceed a threshold.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        success_threshold: int = 2,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            timeout: Seconds before attempting to close circuit
            success_threshold: Successful calls needed to close circuit
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.success_threshold = success_threshold
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time: Optional[float] = None
        self.state = "closed"  # closed, open, half_open

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Await func with circuit breaker protection.

        Only transient failures count against the circuit: a declined card or
        a validation error says nothing about gateway health.

        Raises:
            CircuitOpenError: If circuit is open
        """
        if self.state == "open":
            if self.last_failure_time and time.time() - self.last_failure_time > self.timeout:
                self._set_state("half_open")
                self.success_count = 0
                logger.info("circuit_breaker_half_open")
            else:
                raise CircuitOpenError()

        try:
            result = await func(*args, **kwargs)
        except GatewayError as e:
            if e.retryable:
                self.on_failure()
            raise
        self.on_success()
        return result

    def on_success(self) -> None:
        """Record successful call."""
        self.failure_count = 0
        if self.state == "half_open":
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self._set_state("closed")
                logger.info("circuit_breaker_closed")

    def on_failure(self) -> None:
        """Record failed call."""
        self.failure_count += 1
        self.last_failure_time = time.time()
        if self.state == "half_open" or self.failure_count >= self.failure_threshold:
            self._set_state("open")
            logger.warning("circuit_breaker_opened", failure_count=self.failure_count)

    def _set_state(self, state: str) -> None:
        self.state = state
        metrics.set_circuit_breaker_state(state)


class GatewayClient:
    """
    Payment gateway adapter over httpx.

    Features:
    - Automatic retry with exponential backoff on GETs
    - Circuit breaker pattern
    - HTTP status based error classification
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        max_attempts: int = 3,
        retry_wait: Optional[wait_base] = None,
    ) -> None:
        """
        Initialize gateway client.

        Args:
            settings: Gateway keys and URL (defaults to the app settings)
            http_client: Preconfigured client (tests pass one over a MockTransport)
            circuit_breaker: Shared circuit breaker
            max_attempts: Attempts for idempotent reads
            retry_wait: Backoff between read attempts
        """
        self.settings = settings or get_settings()
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=self.settings.gateway_api_url,
            timeout=self.settings.gateway_timeout_seconds,
            headers={"Content-Type": "application/json"},
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)

        logger.info("gateway_client_initialized", base_url=str(self.http_client.base_url))

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    # Port implementation

    async def get_acceptance_token(self) -> Result[AcceptanceToken, Exception]:
        """Fetch the merchant's presigned acceptance token."""
        try:
            body = await self._get(
                "acceptance_token", f"/merchants/{self.settings.gateway_public_key}"
            )
            acceptance = body["data"]["presigned_acceptance"]
            return Result.ok(
                AcceptanceToken(
                    acceptance_token=acceptance["acceptance_token"],
                    permalink=acceptance["permalink"],
                    type=acceptance["type"],
                )
            )
        except (GatewayError, KeyError, TypeError) as e:
            return Result.fail(self._failure("Failed to get acceptance token", e))

    async def tokenize_card(self, card: CardData) -> Result[CardToken, Exception]:
        """Exchange raw card data for a single-use card token."""
        try:
            body = await self._request(
                "tokenize_card",
                "POST",
                "/tokens/cards",
                payload={
                    "number": card.number,
                    "cvc": card.cvc,
                    "exp_month": card.exp_month,
                    "exp_year": card.exp_year,
                    "card_holder": card.card_holder,
                },
                bearer=self.settings.gateway_public_key,
            )
            data = body["data"]
            return Result.ok(
                CardToken(
                    token=data["id"],
                    brand=data["brand"],
                    last_four=data["last_four"],
                    expires_at=data["expires_at"],
                )
            )
        except (GatewayError, KeyError, TypeError) as e:
            return Result.fail(self._failure("Card tokenization failed", e))

    async def create_payment(
        self, request: CreatePaymentRequest, acceptance_token: str
    ) -> Result[GatewayPayment, Exception]:
        """
        Create a payment. Never retried: a repeated POST could charge twice.
        """
        payload: Dict[str, Any] = {
            "amount_in_cents": request.amount_in_cents,
            "currency": request.currency,
            "customer_email": request.customer_email,
            "reference": request.reference,
            "signature": self.signature(
                request.reference, request.amount_in_cents, request.currency
            ),
            "acceptance_token": acceptance_token,
            "payment_method": {
                "type": request.payment_method.type,
                "token": request.payment_method.token,
                "installments": request.payment_method.installments,
            },
        }
        if request.customer_data is not None:
            payload["customer_data"] = {
                "full_name": request.customer_data.full_name,
                "phone_number": request.customer_data.phone_number,
            }

        try:
            body = await self._request(
                "create_payment",
                "POST",
                "/transactions",
                payload=payload,
                bearer=self.settings.gateway_private_key,
            )
            payment = self._to_payment(body["data"])
        except (GatewayError, KeyError, TypeError) as e:
            return Result.fail(self._failure("Payment failed", e))

        logger.info(
            "gateway_payment_created",
            gateway_transaction_id=payment.transaction_id,
            reference=payment.reference,
            status=payment.status.value,
        )
        return Result.ok(payment)

    async def get_transaction(self, gateway_transaction_id: str) -> Result[GatewayPayment, Exception]:
        """Query the gateway's current view of a payment."""
        try:
            body = await self._get("get_transaction", f"/transactions/{gateway_transaction_id}")
            return Result.ok(self._to_payment(body["data"]))
        except (GatewayError, KeyError, TypeError) as e:
            return Result.fail(self._failure("Failed to get transaction", e))

    # Helpers

    def signature(self, reference: str, amount_in_cents: int, currency: str) -> str:
        """SHA-256 hex of reference + amount_in_cents + currency + integrity key."""
        raw = f"{reference}{amount_in_cents}{currency}{self.settings.gateway_integrity_key}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    @staticmethod
    def map_status(status: Optional[str]) -> GatewayStatus:
        """Gateway status string to GatewayStatus; unknown values are ERROR."""
        try:
            return GatewayStatus(status)
        except ValueError:
            return GatewayStatus.ERROR

    @classmethod
    def _to_payment(cls, data: Dict[str, Any]) -> GatewayPayment:
        return GatewayPayment(
            transaction_id=data["id"],
            reference=data["reference"],
            status=cls.map_status(data.get("status")),
            status_message=data.get("status_message"),
            payment_method_type=data.get("payment_method_type", ""),
            amount_in_cents=data.get("amount_in_cents", 0),
            currency=data.get("currency", ""),
        )

    @staticmethod
    def _classify_status(status_code: int) -> GatewayErrorType:
        """
        Classify an HTTP error status for retry logic.

        Args:
            status_code: HTTP status code

        Returns:
            GatewayErrorType: Error classification
        """
        if status_code == 429:
            return GatewayErrorType.RATE_LIMIT
        if status_code >= 500 or status_code == 408:
            return GatewayErrorType.TRANSIENT
        return GatewayErrorType.PERMANENT

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        """Prefer the gateway's error.reason, then the raw body, then the status."""
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"

        error = body.get("error") if isinstance(body, dict) else None
        reason = error.get("reason") if isinstance(error, dict) else None
        if reason:
            return reason if isinstance(reason, str) else json.dumps(reason)
        return json.dumps(body)

    def _failure(self, prefix: str, error: Exception) -> GatewayError:
        if isinstance(error, GatewayError):
            failure = GatewayError(
                f"{prefix}: {error.message}",
                error.error_type,
                status_code=error.status_code,
                original_error=error,
            )
        else:
            failure = GatewayError(
                f"{prefix}: malformed gateway response",
                GatewayErrorType.PERMANENT,
                original_error=error,
            )
        logger.error(
            "gateway_request_failed",
            error=failure.message,
            error_type=failure.error_type.value,
            status_code=failure.status_code,
        )
        metrics.record_gateway_error(failure.error_type.value)
        return failure

    async def _get(self, operation: str, path: str) -> Dict[str, Any]:
        """GET with retries on transient and rate-limit failures."""
        body: Dict[str, Any] = {}
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(
                lambda e: isinstance(e, GatewayError) and e.retryable
            ),
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "gateway_request_retrying",
                        operation=operation,
                        attempt=attempt.retry_state.attempt_number,
                    )
                body = await self._request(operation, "GET", path)
        return body

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        bearer: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one HTTP request through the circuit breaker.

        Raises:
            GatewayError: On transport failure, error status or non-JSON body
        """
        headers = {"Authorization": f"Bearer {bearer}"} if bearer else None

        async def _send() -> Dict[str, Any]:
            try:
                response = await self.http_client.request(
                    method, path, json=payload, headers=headers
                )
            except httpx.HTTPError as e:
                raise GatewayError(
                    str(e) or e.__class__.__name__,
                    GatewayErrorType.TRANSIENT,
                    original_error=e,
                ) from e

            if response.is_error:
                raise GatewayError(
                    self._error_reason(response),
                    self._classify_status(response.status_code),
                    status_code=response.status_code,
                )

            try:
                return response.json()
            except ValueError as e:
                raise GatewayError(
                    "Invalid JSON in gateway response",
                    GatewayErrorType.PERMANENT,
                    status_code=response.status_code,
                    original_error=e,
                ) from e

        start_time = time.time()
        try:
            body = await self.circuit_breaker.call(_send)
        except GatewayError:
            metrics.record_gateway_call(operation, "error", time.time() - start_time)
            raise
        metrics.record_gateway_call(operation, "success", time.time() - start_time)
        return body
