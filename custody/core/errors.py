"""
Typed failures raised by the stock ledger and its processors.

Every error carries a machine-readable ``code``, the HTTP status the
router answers with, and structured ``extra`` data that is merged into
the JSON error body. Callers catch by type, never by message.

    CustodyError
    +-- ValidationError          VALIDATION_ERROR     422
    +-- StockError
    |   +-- NoStockError         NO_STOCK             400
    |   +-- InsufficientStockError INSUFFICIENT_STOCK 400
    |   +-- StockNotFoundError   STOCK_NOT_FOUND      404
    +-- NotFoundError
    |   +-- ProductNotFoundError PRODUCT_NOT_FOUND    404
    |   +-- CustomerNotFoundError CUSTOMER_NOT_FOUND  404
    +-- StorageError             STORAGE_ERROR        503
    +-- IdempotencyConflictError IDEMPOTENCY_KEY_REUSED 409
"""

from decimal import Decimal
from typing import Any


class CustodyError(Exception):
    code: str = "CUSTODY_ERROR"
    status_code: int = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for key, value in self.extra.items():
            payload[key] = float(value) if isinstance(value, Decimal) else value
        return payload


class ValidationError(CustodyError):
    code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, *, field: str | None = None, **extra: Any):
        super().__init__(message, **extra)
        self.field = field


class StockError(CustodyError):
    status_code = 400

    def __init__(self, message: str, *, customer_id: str, product_id: str, **extra: Any):
        super().__init__(message, **extra)
        self.customer_id = customer_id
        self.product_id = product_id


class NoStockError(StockError):
    code = "NO_STOCK"

    def __init__(
        self,
        *,
        customer_id: str,
        product_id: str,
        requested: Decimal,
        unit: str | None = None,
    ):
        super().__init__(
            f"No stock held for product {product_id}",
            customer_id=customer_id,
            product_id=product_id,
            available=Decimal("0"),
            requested=requested,
            unit=unit,
        )
        self.requested = requested


class InsufficientStockError(StockError):
    code = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        *,
        customer_id: str,
        product_id: str,
        available: Decimal,
        requested: Decimal,
        unit: str | None = None,
    ):
        super().__init__(
            f"Insufficient stock. Available: {available}, requested: {requested}",
            customer_id=customer_id,
            product_id=product_id,
            available=available,
            requested=requested,
            unit=unit,
        )
        self.available = available
        self.requested = requested


class StockNotFoundError(StockError):
    code = "STOCK_NOT_FOUND"
    status_code = 404

    def __init__(self, *, customer_id: str, product_id: str):
        super().__init__(
            "No stock record for this customer and product",
            customer_id=customer_id,
            product_id=product_id,
        )


class NotFoundError(CustodyError):
    status_code = 404


class ProductNotFoundError(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class CustomerNotFoundError(NotFoundError):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


class StorageError(CustodyError):
    code = "STORAGE_ERROR"
    status_code = 503

    def __init__(self, message: str = "Storage unavailable, verify the balance before retrying"):
        super().__init__(message)


def with_unit(exc: StockError, unit: str) -> StockError:
    exc.extra["unit"] = unit
    return exc


class IdempotencyConflictError(CustodyError):
    code = "IDEMPOTENCY_KEY_REUSED"
    status_code = 409

    def __init__(self, idempotency_key: str):
        super().__init__(
            "Idempotency-Key was already used for a different request",
            idempotency_key=idempotency_key,
        )
