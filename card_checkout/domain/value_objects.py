"""
Value objects for checkout amounts.

CRITICAL: money is always Decimal here. Floats never enter the amount math,
so 50000 x 1 + 500000 + 1000000 is exactly 1550000, and the gateway receives
exactly 155000000 minor units.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, field_validator

MINOR_UNITS_PER_UNIT = Decimal("100")


def to_minor_units(amount: Decimal | int | str) -> int:
    """
    Convert an amount to integer minor units (cents).

    Rounds half away from zero: Decimal's ROUND_HALF_UP rounds on magnitude,
    so 0.005 -> 1 and -0.005 -> -1.
    """
    scaled = Decimal(str(amount)) * MINOR_UNITS_PER_UNIT
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentAmounts(BaseModel):
    """
    Breakdown of what a checkout charges.

    total_amount is always the sum of the three components.
    """

    product_amount: Decimal
    base_fee: Decimal
    delivery_fee: Decimal

    model_config = {"frozen": True}

    @field_validator("product_amount", "base_fee", "delivery_fee")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Amounts cannot be negative")
        return v

    @classmethod
    def calculate(
        cls,
        unit_price: Decimal,
        quantity: int,
        base_fee: Decimal,
        delivery_fee: Decimal,
    ) -> PaymentAmounts:
        """Price the purchase of `quantity` units plus both fees."""
        return cls(
            product_amount=Decimal(str(unit_price)) * quantity,
            base_fee=Decimal(str(base_fee)),
            delivery_fee=Decimal(str(delivery_fee)),
        )

    @property
    def total_amount(self) -> Decimal:
        return self.product_amount + self.base_fee + self.delivery_fee

    @property
    def amount_in_cents(self) -> int:
        return to_minor_units(self.total_amount)
