"""
Conversion between ORM records and domain entities.

SQLite hands back naive datetimes even for timezone-aware columns; they were
written as UTC, so they are re-tagged as UTC on the way out.
"""
from datetime import datetime, timezone
from decimal import Decimal

from card_checkout.database.models import (
    CustomerRecord,
    DeliveryRecord,
    ProductRecord,
    TransactionRecord,
)
from card_checkout.domain.aggregates import Transaction, TransactionStatus
from card_checkout.domain.entities import Customer, Delivery, Product


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _decimal(value) -> Decimal:
    return Decimal(str(value))


def product_to_domain(record: ProductRecord) -> Product:
    return Product(
        id=record.id,
        name=record.name,
        description=record.description,
        price=_decimal(record.price),
        stock=record.stock,
        image_url=record.image_url,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


def product_to_record(product: Product) -> ProductRecord:
    return ProductRecord(
        id=product.id,
        name=product.name,
        description=product.description,
        price=product.price,
        stock=product.stock,
        image_url=product.image_url,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def customer_to_domain(record: CustomerRecord) -> Customer:
    return Customer(
        id=record.id,
        email=record.email,
        full_name=record.full_name,
        phone=record.phone,
        created_at=_aware(record.created_at),
    )


def customer_to_record(customer: Customer) -> CustomerRecord:
    return CustomerRecord(
        id=customer.id,
        email=customer.email,
        full_name=customer.full_name,
        phone=customer.phone,
        created_at=customer.created_at,
    )


def delivery_to_domain(record: DeliveryRecord) -> Delivery:
    return Delivery(
        id=record.id,
        customer_id=record.customer_id,
        address=record.address,
        city=record.city,
        department=record.department,
        zip_code=record.zip_code,
        created_at=_aware(record.created_at),
    )


def delivery_to_record(delivery: Delivery) -> DeliveryRecord:
    return DeliveryRecord(
        id=delivery.id,
        customer_id=delivery.customer_id,
        address=delivery.address,
        city=delivery.city,
        department=delivery.department,
        zip_code=delivery.zip_code,
        created_at=delivery.created_at,
    )


def transaction_to_domain(record: TransactionRecord) -> Transaction:
    return Transaction(
        id=record.id,
        customer_id=record.customer_id,
        product_id=record.product_id,
        delivery_id=record.delivery_id,
        quantity=record.quantity,
        product_amount=_decimal(record.product_amount),
        base_fee=_decimal(record.base_fee),
        delivery_fee=_decimal(record.delivery_fee),
        total_amount=_decimal(record.total_amount),
        status=TransactionStatus(record.status),
        gateway_transaction_id=record.gateway_transaction_id,
        gateway_reference=record.gateway_reference,
        payment_method=record.payment_method,
        card_last_four=record.card_last_four,
        error_message=record.error_message,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


def apply_transaction(record: TransactionRecord, transaction: Transaction) -> TransactionRecord:
    """Copy every field of the aggregate onto a (new or loaded) record."""
    record.id = transaction.id
    record.customer_id = transaction.customer_id
    record.product_id = transaction.product_id
    record.delivery_id = transaction.delivery_id
    record.quantity = transaction.quantity
    record.product_amount = transaction.product_amount
    record.base_fee = transaction.base_fee
    record.delivery_fee = transaction.delivery_fee
    record.total_amount = transaction.total_amount
    record.status = transaction.status.value
    record.gateway_transaction_id = transaction.gateway_transaction_id
    record.gateway_reference = transaction.gateway_reference
    record.payment_method = transaction.payment_method
    record.card_last_four = transaction.card_last_four
    record.error_message = transaction.error_message
    record.created_at = transaction.created_at
    record.updated_at = transaction.updated_at
    return record
