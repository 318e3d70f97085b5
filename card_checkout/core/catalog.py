"""Product catalog queries."""
from typing import List

import structlog

from card_checkout.domain.entities import Product
from card_checkout.domain.errors import ProductNotFoundError
from card_checkout.domain.ports import ProductRepository
from card_checkout.result import Result

logger = structlog.get_logger(__name__)


class ProductCatalog:
    """Read-only access to the products on sale."""

    def __init__(self, product_repository: ProductRepository):
        self.products = product_repository

    async def list_products(self) -> Result[List[Product], Exception]:
        """All products, most recently created first."""
        try:
            return Result.ok(await self.products.find_all())
        except Exception as e:
            logger.error("product_listing_failed", error=str(e))
            return Result.fail(e)

    async def get_product(self, product_id: str) -> Result[Product, Exception]:
        try:
            product = await self.products.find_by_id(product_id)
        except Exception as e:
            logger.error("product_lookup_failed", product_id=product_id, error=str(e))
            return Result.fail(e)

        if product is None:
            return Result.fail(ProductNotFoundError(product_id))
        return Result.ok(product)
