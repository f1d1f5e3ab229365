from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeliveryCreate(CamelModel):
    customer_id: str = Field(min_length=1, max_length=36)
    product_id: str = Field(min_length=1, max_length=36)
    product_name: str | None = Field(default=None, max_length=255)
    quantity: Decimal = Field(gt=0, max_digits=14, decimal_places=3)
    unit: str | None = Field(default=None, max_length=20)
    delivery_date: date
    note: str | None = Field(default=None, max_length=255)

    @field_validator("product_name", "unit", "note")
    @classmethod
    def normalize_optional_strings(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "customerId": "customer-id-here",
                "productId": "product-id-here",
                "productName": "Wheat Seed",
                "quantity": 25,
                "unit": "kg",
                "deliveryDate": "2026-05-20",
                "note": "First delivery",
            }
        },
    )


class DeliveryOut(CamelModel):
    id: str
    customer_id: str
    product_id: str
    product_name: str
    unit: str
    quantity: float
    unit_price: float
    total_amount: float
    delivery_date: date
    note: str | None = None
    document_number: str
    created_at: datetime | None = None


class DeliveryCreateOut(CamelModel):
    delivery: DeliveryOut
    remaining_stock: float
    message: str
