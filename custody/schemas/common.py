from pydantic import BaseModel, ConfigDict


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    details: list[ValidationIssueOut] | None = None
    available: float | None = None
    requested: float | None = None
    unit: str | None = None

    model_config = ConfigDict(extra="allow")


class ErrorOut(BaseModel):
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "INSUFFICIENT_STOCK",
                    "message": "Insufficient stock. Available: 2.000, requested: 3.000",
                    "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
                    "path": "/api/deliveries",
                    "details": None,
                    "available": 2.0,
                    "requested": 3.0,
                    "unit": "kg",
                }
            }
        }
    )
