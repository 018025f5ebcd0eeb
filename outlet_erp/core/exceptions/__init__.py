from outlet_erp.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    InsufficientStockError,
    ConflictError,
    StateError,
    InsufficientFundsError,
    AuthenticationError,
    AuthorizationError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "InsufficientStockError",
    "ConflictError",
    "StateError",
    "InsufficientFundsError",
    "AuthenticationError",
    "AuthorizationError",
]
