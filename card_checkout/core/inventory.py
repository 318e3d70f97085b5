"""
Best-effort stock decrement after an approved payment.

By the time this runs the money is already captured, so nothing here may fail
the caller. Every skipped write is logged as `stock_decrement_skipped` and
counted, leaving the inventory discrepancy visible for manual review.
"""
import structlog

from card_checkout.domain.ports import ProductRepository
from card_checkout.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


async def decrement_stock(
    product_repository: ProductRepository,
    product_id: str,
    quantity: int,
    transaction_id: str,
) -> bool:
    """
    Remove `quantity` units of a product after its payment was approved.

    The product is re-read under a row lock so the decrement is computed from
    the current stock, not from the value seen during validation.

    Args:
        product_repository: Product storage
        product_id: Product that was paid for
        quantity: Units to remove
        transaction_id: Approved transaction (log correlation only)

    Returns:
        bool: True if the new stock was written
    """
    try:
        product = await product_repository.find_by_id_with_lock(product_id)
        if product is None:
            _skipped(product_id, transaction_id, "product_missing")
            return False

        previous_stock = product.stock
        try:
            product.decrease_stock(quantity)
        except ValueError:
            # A concurrent buyer took the last units between validation and approval
            _skipped(
                product_id,
                transaction_id,
                "insufficient_stock",
                requested=quantity,
                available=previous_stock,
            )
            return False

        await product_repository.update_stock(product_id, product.stock)
    except Exception as e:
        _skipped(product_id, transaction_id, "repository_error", error=str(e))
        return False

    logger.info(
        "stock_decremented",
        product_id=product_id,
        transaction_id=transaction_id,
        previous_stock=previous_stock,
        new_stock=product.stock,
    )
    return True


def _skipped(product_id: str, transaction_id: str, reason: str, **context) -> None:
    logger.warning(
        "stock_decrement_skipped",
        product_id=product_id,
        transaction_id=transaction_id,
        reason=reason,
        **context,
    )
    metrics.record_stock_decrement_skipped(reason)
