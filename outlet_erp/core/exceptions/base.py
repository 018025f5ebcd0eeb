from decimal import Decimal
from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Command rejected before any write; `field` points at the offending line."""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        payload = dict(details or {})
        if field:
            payload["field"] = field
        super().__init__(message=message, status_code=422, details=payload)

    @property
    def field(self) -> str | None:
        return self.details.get("field")


class InsufficientStockError(ValidationError):
    """Not enough stock on hand for the requested quantity."""

    def __init__(
        self,
        item_id: int,
        requested: Decimal,
        available: Decimal,
        field: str | None = None,
    ):
        message = (
            f"Insufficient stock for item {item_id}: "
            f"requested {requested}, available {available}"
        )
        super().__init__(
            message,
            field=field,
            details={"item_id": item_id, "requested": str(requested), "available": str(available)},
        )


class ConflictError(AppException):
    """Concurrent or duplicate write; the caller may regenerate and retry."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        payload = {"retryable": True}
        payload.update(details or {})
        super().__init__(message=message, status_code=409, details=payload)


class StateError(AppException):
    """Operation is not allowed in the entity's current status."""

    def __init__(self, resource: str, status: str, operation: str):
        message = f"Cannot {operation} {resource} in status {status}"
        super().__init__(
            message=message,
            status_code=409,
            details={"resource": resource, "status": status, "operation": operation},
        )


class InsufficientFundsError(AppException):
    """Account balance does not cover the requested debit."""

    def __init__(self, account_id: int, required: Decimal, available: Decimal):
        message = (
            f"Insufficient funds in account {account_id}: "
            f"required {required}, available {available}"
        )
        super().__init__(
            message=message,
            status_code=402,
            details={
                "account_id": account_id,
                "required": str(required),
                "available": str(available),
            },
        )


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    """Not authorized to perform action."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message=message, status_code=403)
