"""
Catalog and customer entities.

Product is mutable only through its stock methods. Customer and Delivery are
immutable once created: a customer is reused by email, a delivery is created
fresh for every checkout attempt.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    """Timezone-aware current time; every entity timestamp goes through here."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Product:
    """
    Sellable product with tracked inventory.

    Invariant: stock is never negative. A decrement that would break this is
    rejected, not clamped.
    """

    name: str
    description: str
    price: Decimal
    stock: int
    image_url: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.stock < 0:
            raise ValueError(f"Stock cannot be negative, got {self.stock}")
        self.price = Decimal(str(self.price))

    def has_stock(self, quantity: int) -> bool:
        return self.stock >= quantity

    def decrease_stock(self, quantity: int) -> None:
        """Remove units from stock; raises ValueError if not enough are left."""
        if not self.has_stock(quantity):
            raise ValueError("Insufficient stock")
        self.stock -= quantity
        self.updated_at = utcnow()

    def increase_stock(self, quantity: int) -> None:
        self.stock += quantity
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "stock": self.stock,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Customer:
    """Buyer identified by email (upsert-by-email, never duplicated)."""

    email: str
    full_name: str
    phone: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "phone": self.phone,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Delivery:
    """Shipping destination for one checkout attempt."""

    customer_id: str
    address: str
    city: str
    department: str
    zip_code: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def full_address(self) -> str:
        suffix = f" - {self.zip_code}" if self.zip_code else ""
        return f"{self.address}, {self.city}, {self.department}{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "address": self.address,
            "city": self.city,
            "department": self.department,
            "zip_code": self.zip_code,
            "created_at": self.created_at.isoformat(),
        }
