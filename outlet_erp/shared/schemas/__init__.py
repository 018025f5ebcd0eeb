from outlet_erp.shared.schemas.base import (
    ApiResponse,
    BaseSchema,
    PaginatedResponse,
    ErrorResponse,
    ErrorDetail,
)

__all__ = [
    "ApiResponse",
    "BaseSchema",
    "PaginatedResponse",
    "ErrorResponse",
    "ErrorDetail",
]
