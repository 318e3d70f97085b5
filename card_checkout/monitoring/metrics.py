"""
Prometheus metrics for checkout monitoring.

Tracks:
- Checkout outcomes by final transaction status
- Saga duration and failing steps
- Gateway request counts, latency and errors
- Reconciliation outcomes
- Skipped stock decrements (payments captured without an inventory write)
"""
from prometheus_client import Counter, Gauge, Histogram

# Checkout metrics
checkout_requests_total = Counter(
    "checkout_requests_total",
    "Total number of checkout attempts",
    ["status"],  # APPROVED, DECLINED, PENDING, failed
)

checkout_duration_seconds = Histogram(
    "checkout_duration_seconds",
    "Checkout saga duration in seconds",
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, 15.0),
)

checkout_amount_cents = Histogram(
    "checkout_amount_cents",
    "Checkout totals in minor units",
    buckets=(1_000_000, 10_000_000, 50_000_000, 100_000_000, 500_000_000, 1_000_000_000),
)

saga_step_failures_total = Counter(
    "saga_step_failures_total",
    "Total saga step failures",
    ["step"],
)

# Gateway metrics
gateway_requests_total = Counter(
    "gateway_requests_total",
    "Total payment gateway requests",
    ["operation", "status"],  # operation: acceptance_token, tokenize_card, ...
)

gateway_errors_total = Counter(
    "gateway_errors_total",
    "Total payment gateway errors",
    ["error_type"],  # transient, permanent, rate_limit
)

gateway_duration_seconds = Histogram(
    "gateway_duration_seconds",
    "Payment gateway call duration in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

gateway_circuit_breaker_state = Gauge(
    "gateway_circuit_breaker_state",
    "Gateway circuit breaker state (0=closed, 1=open, 2=half_open)",
)

# Reconciliation metrics
reconciliation_total = Counter(
    "reconciliation_total",
    "Transaction reads that consulted the gateway, by outcome",
    ["outcome"],  # approved, declined, unchanged, gateway_unavailable
)

# Inventory metrics
stock_decrement_skipped_total = Counter(
    "stock_decrement_skipped_total",
    "Approved payments whose stock decrement was skipped",
    ["reason"],  # product_missing, insufficient_stock, repository_error
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_checkout(status: str, amount_cents: int = 0) -> None:
        """Record a finished checkout attempt."""
        checkout_requests_total.labels(status=status).inc()
        if amount_cents > 0:
            checkout_amount_cents.observe(amount_cents)

    @staticmethod
    def record_checkout_duration(duration_seconds: float) -> None:
        checkout_duration_seconds.observe(duration_seconds)

    @staticmethod
    def record_saga_step_failure(step: str) -> None:
        saga_step_failures_total.labels(step=step).inc()

    @staticmethod
    def record_gateway_call(operation: str, status: str, duration_seconds: float) -> None:
        """Record a gateway API call."""
        gateway_requests_total.labels(operation=operation, status=status).inc()
        gateway_duration_seconds.labels(operation=operation).observe(duration_seconds)

    @staticmethod
    def record_gateway_error(error_type: str) -> None:
        gateway_errors_total.labels(error_type=error_type).inc()

    @staticmethod
    def set_circuit_breaker_state(state: str) -> None:
        """Set circuit breaker state."""
        state_map = {"closed": 0, "open": 1, "half_open": 2}
        gateway_circuit_breaker_state.set(state_map.get(state, 0))

    @staticmethod
    def record_reconciliation(outcome: str) -> None:
        reconciliation_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_stock_decrement_skipped(reason: str) -> None:
        stock_decrement_skipped_total.labels(reason=reason).inc()


# Export singleton instance
metrics = MetricsCollector()
