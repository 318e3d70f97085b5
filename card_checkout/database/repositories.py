"""
SQLAlchemy implementations of the storage ports.

Every repository works on the AsyncSession it is given and commits after each
write, so each step of a checkout is durable on its own.
"""
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from card_checkout.database.mappers import (
    apply_transaction,
    customer_to_domain,
    customer_to_record,
    delivery_to_domain,
    delivery_to_record,
    product_to_domain,
    product_to_record,
    transaction_to_domain,
)
from card_checkout.database.models import (
    CustomerRecord,
    DeliveryRecord,
    ProductRecord,
    TransactionRecord,
)
from card_checkout.domain.aggregates import Transaction
from card_checkout.domain.entities import Customer, Delivery, Product, utcnow

logger = structlog.get_logger(__name__)


class RecordNotFoundError(Exception):
    """Raised when a write targets a row that does not exist."""

    pass


class SqlProductRepository:
    """Product storage with row-locked stock updates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_all(self) -> List[Product]:
        stmt = select(ProductRecord).order_by(ProductRecord.created_at.desc())
        result = await self.session.execute(stmt)
        return [product_to_domain(record) for record in result.scalars().all()]

    async def find_by_id(self, product_id: str) -> Optional[Product]:
        record = await self.session.get(ProductRecord, product_id)
        return product_to_domain(record) if record else None

    async def find_by_id_with_lock(self, product_id: str) -> Optional[Product]:
        """
        SELECT ... FOR UPDATE on the product row.

        The lock lives in the session's open transaction and is released by
        the commit in update_stock. SQLite has no row locks and ignores the
        clause.
        """
        stmt = (
            select(ProductRecord)
            .where(ProductRecord.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        return product_to_domain(record) if record else None

    async def save(self, product: Product) -> Product:
        record = product_to_record(product)
        self.session.add(record)
        await self.session.commit()
        return product_to_domain(record)

    async def update_stock(self, product_id: str, stock: int) -> None:
        """
        Overwrite the stock of a product.

        Raises:
            ValueError: If stock is negative (nothing is written)
            RecordNotFoundError: If the product does not exist
        """
        if stock < 0:
            await self.session.rollback()
            raise ValueError(f"Refusing to store negative stock {stock} for product {product_id}")

        record = await self.session.get(ProductRecord, product_id)
        if record is None:
            await self.session.rollback()
            raise RecordNotFoundError(f"Product {product_id} not found")

        previous = record.stock
        record.stock = stock
        record.updated_at = utcnow()
        await self.session.commit()
        logger.debug("product_stock_updated", product_id=product_id, previous=previous, stock=stock)


class SqlCustomerRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, customer_id: str) -> Optional[Customer]:
        record = await self.session.get(CustomerRecord, customer_id)
        return customer_to_domain(record) if record else None

    async def find_by_email(self, email: str) -> Optional[Customer]:
        stmt = select(CustomerRecord).where(CustomerRecord.email == email)
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        return customer_to_domain(record) if record else None

    async def save(self, customer: Customer) -> Customer:
        record = customer_to_record(customer)
        self.session.add(record)
        await self.session.commit()
        return customer_to_domain(record)


class SqlDeliveryRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, delivery_id: str) -> Optional[Delivery]:
        record = await self.session.get(DeliveryRecord, delivery_id)
        return delivery_to_domain(record) if record else None

    async def find_by_customer_id(self, customer_id: str) -> List[Delivery]:
        stmt = (
            select(DeliveryRecord)
            .where(DeliveryRecord.customer_id == customer_id)
            .order_by(DeliveryRecord.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [delivery_to_domain(record) for record in result.scalars().all()]

    async def save(self, delivery: Delivery) -> Delivery:
        record = delivery_to_record(delivery)
        self.session.add(record)
        await self.session.commit()
        return delivery_to_domain(record)


class SqlTransactionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        record = await self.session.get(TransactionRecord, transaction_id)
        return transaction_to_domain(record) if record else None

    async def find_by_customer_id(self, customer_id: str) -> List[Transaction]:
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.customer_id == customer_id)
            .order_by(TransactionRecord.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [transaction_to_domain(record) for record in result.scalars().all()]

    async def save(self, transaction: Transaction) -> Transaction:
        record = apply_transaction(TransactionRecord(), transaction)
        self.session.add(record)
        await self.session.commit()
        return transaction_to_domain(record)

    async def update(self, transaction: Transaction) -> Transaction:
        """
        Overwrite the stored transaction with the aggregate's state.

        Raises:
            RecordNotFoundError: If the transaction was never saved
        """
        record = await self.session.get(TransactionRecord, transaction.id)
        if record is None:
            raise RecordNotFoundError(f"Transaction {transaction.id} not found")

        apply_transaction(record, transaction)
        await self.session.commit()
        return transaction_to_domain(record)
