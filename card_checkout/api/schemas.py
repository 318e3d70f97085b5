"""
Pydantic schemas for API request/response models.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from card_checkout.core.saga import CustomerData, DeliveryData, PurchaseRequest
from card_checkout.domain.ports import CardData

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CustomerIn(BaseModel):
    email: str = Field(..., pattern=EMAIL_PATTERN, description="Buyer email (customer identity)")
    full_name: str = Field(..., min_length=1, description="Buyer full name")
    phone: Optional[str] = Field(default=None, description="Contact phone")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class DeliveryIn(BaseModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    zip_code: Optional[str] = None


class CardIn(BaseModel):
    """Raw card data; forwarded to the gateway for tokenization and never stored."""

    number: str = Field(..., pattern=r"^\d{12,19}$", description="Card number (digits only)")
    cvc: str = Field(..., pattern=r"^\d{3,4}$")
    exp_month: str = Field(..., pattern=r"^\d{2}$", description="Two-digit month")
    exp_year: str = Field(..., pattern=r"^\d{2}$", description="Two-digit year")
    card_holder: str = Field(..., min_length=5)

    @field_validator("number", mode="before")
    @classmethod
    def strip_separators(cls, v: str) -> str:
        """Accept numbers typed with spaces or dashes."""
        if isinstance(v, str):
            return v.replace(" ", "").replace("-", "")
        return v


class CreateTransactionRequest(BaseModel):
    """Request schema for creating a transaction (one product, one card payment)."""

    product_id: str = Field(..., min_length=1, description="Product identifier")
    quantity: int = Field(..., ge=1, description="Units to buy")
    customer: CustomerIn
    delivery: DeliveryIn
    card: CardIn
    installments: Optional[int] = Field(default=None, ge=1, description="Card installments")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "123e4567-e89b-12d3-a456-426614174000",
                    "quantity": 1,
                    "customer": {
                        "email": "john@example.com",
                        "full_name": "John Doe",
                        "phone": "+573001234567",
                    },
                    "delivery": {
                        "address": "Calle 123 #45-67",
                        "city": "Bogota",
                        "department": "Cundinamarca",
                        "zip_code": "110111",
                    },
                    "card": {
                        "number": "4242424242424242",
                        "cvc": "123",
                        "exp_month": "12",
                        "exp_year": "28",
                        "card_holder": "JOHN DOE",
                    },
                    "installments": 1,
                }
            ]
        }
    }

    def to_purchase(self) -> PurchaseRequest:
        return PurchaseRequest(
            product_id=self.product_id,
            quantity=self.quantity,
            customer=CustomerData(
                email=self.customer.email,
                full_name=self.customer.full_name,
                phone=self.customer.phone,
            ),
            delivery=DeliveryData(
                address=self.delivery.address,
                city=self.delivery.city,
                department=self.delivery.department,
                zip_code=self.delivery.zip_code,
            ),
            card=CardData(
                number=self.card.number,
                cvc=self.card.cvc,
                exp_month=self.card.exp_month,
                exp_year=self.card.exp_year,
                card_holder=self.card.card_holder,
            ),
            installments=self.installments,
        )


class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    price: Decimal
    stock: int
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CustomerResponse(BaseModel):
    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    created_at: datetime


class DeliveryResponse(BaseModel):
    id: str
    customer_id: str
    address: str
    city: str
    department: str
    zip_code: Optional[str] = None
    created_at: datetime


class TransactionResponse(BaseModel):
    """Transaction as returned to clients. Amounts are decimal strings."""

    id: str
    customer_id: str
    product_id: str
    delivery_id: Optional[str] = None
    quantity: int
    product_amount: Decimal
    base_fee: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    status: str = Field(..., description="PENDING, APPROVED, DECLINED, VOIDED or ERROR")
    gateway_transaction_id: Optional[str] = None
    gateway_reference: Optional[str] = None
    payment_method: Optional[str] = None
    card_last_four: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CheckoutData(BaseModel):
    transaction: TransactionResponse
    customer: CustomerResponse
    delivery: DeliveryResponse


class ProductListResponse(BaseModel):
    success: bool = True
    data: List[ProductResponse]


class ProductDetailResponse(BaseModel):
    success: bool = True
    data: ProductResponse


class CheckoutResponse(BaseModel):
    success: bool = True
    data: CheckoutData


class TransactionDetailResponse(BaseModel):
    success: bool = True
    data: TransactionResponse


class HealthCheckResponse(BaseModel):
    """Response schema for health check."""

    status: str = Field(..., description="Overall health status")
    checks: Optional[dict] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
