import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from outlet_erp.core.config import settings
from outlet_erp.core.exceptions import AppException
from outlet_erp.shared.schemas import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render application exceptions as ErrorResponse."""
    field = exc.details.get("field")
    response = ErrorResponse(
        message=exc.message,
        errors=[ErrorDetail(field=field, message=exc.message)],
        details={k: v for k, v in exc.details.items() if k != "field"} or None,
    )
    return JSONResponse(status_code=exc.status_code, content=response.model_dump(mode="json"))


def _format_validation_errors(errors: list[dict]) -> list[ErrorDetail]:
    details: list[ErrorDetail] = []
    for error in errors:
        loc = error.get("loc", ())
        # Drop top-level "body" for cleaner field paths
        if loc and loc[0] == "body":
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) if loc else None
        details.append(ErrorDetail(field=field, message=error.get("msg", "Invalid value")))
    return details


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body/query validation errors."""
    response = ErrorResponse(
        message="Validation error",
        errors=_format_validation_errors(exc.errors()),
    )
    return JSONResponse(status_code=422, content=response.model_dump(mode="json"))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = str(exc.detail) if exc.detail else "HTTP error"
    response = ErrorResponse(message=message, errors=[ErrorDetail(message=message)])
    return JSONResponse(status_code=exc.status_code, content=response.model_dump(mode="json"))


def _friendly_db_error(exc: Exception) -> tuple[str, int]:
    """
    Convert constraint errors that escaped the services into a stable message.

    Full driver text is only exposed when debug is enabled.
    """
    raw = str(getattr(exc, "orig", exc))
    lower = raw.lower()

    if "does not exist" in lower and "column" in lower:
        return "Database schema is out of date. Run the latest migrations and try again.", 500

    if "unique" in lower or "duplicate key" in lower:
        return "Conflicting concurrent write, retry the operation.", 409

    if "check constraint" in lower:
        return "Operation would violate a stock or balance constraint.", 409

    if settings.debug:
        return raw, 500

    return "Database error", 500


async def sqlalchemy_db_error_handler(request: Request, exc: Exception) -> JSONResponse:
    message, status_code = _friendly_db_error(exc)
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    response = ErrorResponse(message=message, errors=[ErrorDetail(message=message)])
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))
