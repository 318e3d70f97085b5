"""SQLAlchemy database models for the checkout system."""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Ids are uuid4 strings generated by the domain, so String(36) keeps the schema
# portable between PostgreSQL and SQLite.
ID_LENGTH = 36


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class ProductRecord(Base):
    """Products on sale with their remaining stock."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="non_negative_stock"),
        CheckConstraint("price >= 0", name="non_negative_price"),
    )

    def __repr__(self) -> str:
        return f"<ProductRecord(id={self.id}, name={self.name}, stock={self.stock})>"


class CustomerRecord(Base):
    """Buyers, unique by email."""

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<CustomerRecord(id={self.id}, email={self.email})>"


class DeliveryRecord(Base):
    """Shipping addresses, one per checkout attempt."""

    __tablename__ = "deliveries"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    customer_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("customers.id"), nullable=False, index=True
    )
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<DeliveryRecord(id={self.id}, customer_id={self.customer_id})>"


class TransactionRecord(Base):
    """
    Payment transactions.

    Amounts are stored as given at creation; total_amount is never
    recomputed from the components.
    """

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    customer_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("customers.id"), nullable=False, index=True
    )
    product_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("products.id"), nullable=False
    )
    delivery_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH), ForeignKey("deliveries.id"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    product_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    base_fee: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gateway_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    card_last_four: Mapped[str | None] = mapped_column(String(4), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="positive_quantity"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'DECLINED', 'VOIDED', 'ERROR')",
            name="valid_transaction_status",
        ),
        Index("idx_transactions_gateway_id", "gateway_transaction_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<TransactionRecord(id={self.id}, status={self.status}, "
            f"total={self.total_amount})>"
        )
