from src.shared.schemas.base import (
    ApiResponse,
    BaseSchema,
    CamelSchema,
    PaginatedResponse,
    SuccessResponse,
    ErrorResponse,
    ErrorDetail,
    TimestampMixin,
)

__all__ = [
    "ApiResponse",
    "BaseSchema",
    "CamelSchema",
    "PaginatedResponse",
    "SuccessResponse",
    "ErrorResponse",
    "ErrorDetail",
    "TimestampMixin",
]
