from custody.schemas.common import ErrorOut


_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("INSUFFICIENT_STOCK", "Insufficient stock. Available: 2, requested: 3"),
    404: ("not_found", "Resource not found"),
    409: ("IDEMPOTENCY_KEY_REUSED", "Idempotency-Key was already used for a different request"),
    422: ("validation_error", "Validation error"),
    500: ("internal_error", "Internal server error"),
    503: ("STORAGE_ERROR", "Storage unavailable, verify the balance before retrying"),
}


def error_responses(*status_codes: int) -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": "request-id",
                            "path": "/example",
                            "details": None,
                        }
                    }
                }
            },
        }
    return responses
