"""
Read-path reconciliation of transactions against the payment gateway.

A payment the gateway has not settled when the saga finishes stays PENDING
locally. Every read of such a transaction asks the gateway for its current
status and converges the local record:

- gateway APPROVED → approve, decrement stock, persist
- gateway DECLINED → decline, persist
- anything else, or the gateway is unreachable → return as stored

Terminal transactions and transactions the gateway never acknowledged are
returned without any gateway call, which makes repeated reads idempotent.
"""
import structlog

from card_checkout.core.inventory import decrement_stock
from card_checkout.core.saga import DECLINED_FALLBACK_MESSAGE
from card_checkout.domain.aggregates import Transaction
from card_checkout.domain.errors import TransactionNotFoundError
from card_checkout.domain.ports import (
    GatewayStatus,
    PaymentGateway,
    ProductRepository,
    TransactionRepository,
)
from card_checkout.monitoring.metrics import metrics
from card_checkout.result import Result

logger = structlog.get_logger(__name__)


class TransactionReconciler:
    """Serve transaction reads, reconciling PENDING ones with the gateway."""

    def __init__(
        self,
        transaction_repository: TransactionRepository,
        product_repository: ProductRepository,
        payment_gateway: PaymentGateway,
    ):
        self.transactions = transaction_repository
        self.products = product_repository
        self.gateway = payment_gateway

    async def get_transaction(self, transaction_id: str) -> Result[Transaction, Exception]:
        """
        Load a transaction, first syncing it with the gateway if still PENDING.

        Args:
            transaction_id: Local transaction id

        Returns:
            Result[Transaction, Exception]: The (possibly updated) transaction,
            TransactionNotFoundError, or a repository failure
        """
        try:
            transaction = await self.transactions.find_by_id(transaction_id)
            if transaction is None:
                return Result.fail(TransactionNotFoundError(transaction_id))

            if not transaction.is_pending or not transaction.gateway_transaction_id:
                return Result.ok(transaction)

            return Result.ok(await self._reconcile(transaction))
        except Exception as e:
            logger.error("transaction_read_failed", transaction_id=transaction_id, error=str(e))
            return Result.fail(e)

    async def _reconcile(self, transaction: Transaction) -> Transaction:
        gateway_id = transaction.gateway_transaction_id
        logger.info(
            "transaction_reconciling",
            transaction_id=transaction.id,
            gateway_transaction_id=gateway_id,
        )

        result = await self.gateway.get_transaction(gateway_id)
        if result.is_failure:
            logger.warning(
                "transaction_reconciliation_skipped",
                transaction_id=transaction.id,
                error=str(result.error),
            )
            metrics.record_reconciliation("gateway_unavailable")
            return transaction

        payment = result.value
        if payment.status is GatewayStatus.APPROVED:
            transaction.approve(gateway_id, payment.reference)
            await decrement_stock(
                self.products, transaction.product_id, transaction.quantity, transaction.id
            )
            outcome = "approved"
        elif payment.status is GatewayStatus.DECLINED:
            transaction.decline(payment.status_message or DECLINED_FALLBACK_MESSAGE)
            outcome = "declined"
        else:
            metrics.record_reconciliation("unchanged")
            return transaction

        transaction = await self.transactions.update(transaction)
        metrics.record_reconciliation(outcome)
        logger.info(
            "transaction_reconciled",
            transaction_id=transaction.id,
            status=transaction.status.value,
        )
        return transaction
