from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentProductIn(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=3)


class PaymentCreate(BaseModel):
    customer_id: str = Field(min_length=1, max_length=36)
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    payment_method: str = Field(min_length=1, max_length=30)
    notes: str | None = Field(default=None, max_length=255)
    products: list[PaymentProductIn] = Field(default_factory=list)

    @field_validator("payment_method")
    @classmethod
    def validate_payment_method(cls, value: str) -> str:
        cleaned = value.strip().lower()
        if not cleaned:
            raise ValueError("payment_method is required")
        return cleaned

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customer_id": "customer-id-here",
                "amount": 1500.0,
                "payment_method": "cash",
                "notes": "Spring deposit",
                "products": [{"id": "product-id-here", "quantity": 100}],
            }
        }
    )


class PaymentLineOut(BaseModel):
    id: str
    quantity: float
    balance: float | None = None


class PaymentOut(BaseModel):
    id: str
    customer_id: str
    amount: float
    payment_method: str
    notes: str | None = None
    receipt_number: str
    created_at: datetime | None = None
    products: list[PaymentLineOut]


class PaymentCreateOut(BaseModel):
    payment: PaymentOut
    message: str
