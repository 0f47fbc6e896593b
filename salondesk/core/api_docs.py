from salondesk.schemas.common import ErrorOut

# Status code -> (error code, message) shown as the example body in the OpenAPI docs.
_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("insufficient_stock", "Insufficient stock for Repair Shampoo 250 ml: requested 3.0000, available 1.0000"),
    404: ("not_found", "Material not found: material-id"),
    409: ("conflict", "Visit is already closed"),
    422: ("validation_error", "Validation failed"),
    500: ("internal_error", "Internal server error"),
}


def error_responses(*status_codes: int) -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message if status_code >= 500 else code.replace("_", " ").capitalize(),
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": "request-id",
                            "path": "/materials",
                            "details": None,
                        }
                    }
                }
            },
        }
    return responses
