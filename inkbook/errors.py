"""Error taxonomy for the booking API.

Services raise the subclasses below; ``register_exception_handlers`` renders
every one of them as an ``ErrorResponse`` body with the class's status code.
Keyword arguments given to an error end up in the body's ``context`` so the
caller can see which booking, artist or slot was involved.
"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str
    detail: str | None = None
    error_code: str | None = None
    context: dict[str, Any] | None = None


class APIError(Exception):
    """Base class for API errors."""

    status_code: int = 500
    error: str = "internal_error"
    detail: str = "An unexpected error occurred"

    def __init__(
        self,
        detail: str | None = None,
        error_code: str | None = None,
        **context: Any,
    ) -> None:
        self.detail = detail or self.__class__.detail
        self.error_code = error_code
        self.context = context if context else None
        super().__init__(self.detail)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.error,
            detail=self.detail,
            error_code=self.error_code,
            context=self.context,
        )


class NotFoundError(APIError):
    """Resource not found error (404)."""

    status_code = 404
    error = "not_found"
    detail = "Resource not found"


class BadRequestError(APIError):
    """Bad request error (400)."""

    status_code = 400
    error = "bad_request"
    detail = "Invalid request"


class UnauthorizedError(APIError):
    """Unauthorized error (401)."""

    status_code = 401
    error = "unauthorized"
    detail = "Authentication required"


class PaymentRequiredError(APIError):
    """Payment declined or not enough credits (402)."""

    status_code = 402
    error = "payment_required"
    detail = "Payment required"


class ForbiddenError(APIError):
    """Forbidden error (403)."""

    status_code = 403
    error = "forbidden"
    detail = "Access denied"


class SchedulingConflictError(APIError):
    """Requested interval is not bookable (409)."""

    status_code = 409
    error = "scheduling_conflict"
    detail = "Selected time slot is not available"


class InvalidStateError(APIError):
    """Operation not allowed from the current booking status (409)."""

    status_code = 409
    error = "invalid_state"
    detail = "Operation not allowed in the current state"


class AlreadyRatedError(APIError):
    """Booking already carries a rating (409)."""

    status_code = 409
    error = "already_rated"
    detail = "Booking has already been rated"


class ServiceUnavailableError(APIError):
    """Service unavailable error (503)."""

    status_code = 503
    error = "service_unavailable"
    detail = "Service temporarily unavailable"


class DatabaseError(APIError):
    """Database error (500)."""

    status_code = 500
    error = "database_error"
    detail = "Database operation failed"


class ExternalServiceError(APIError):
    """External service error (502)."""

    status_code = 502
    error = "external_service_error"
    detail = "External service request failed"


_ERROR_BY_STATUS = {
    cls.status_code: cls.error
    for cls in (
        BadRequestError,
        UnauthorizedError,
        PaymentRequiredError,
        ForbiddenError,
        NotFoundError,
        ExternalServiceError,
        ServiceUnavailableError,
    )
}
_ERROR_BY_STATUS.update({405: "method_not_allowed", 409: "conflict", 422: "validation_error"})


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "%s %s -> %d %s: %s context=%s",
        request.method,
        request.url.path,
        exc.status_code,
        exc.error,
        exc.detail,
        exc.context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render routing and framework errors in the same body shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=_ERROR_BY_STATUS.get(exc.status_code, "error"),
            detail=str(exc.detail),
        ).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=APIError.error, detail=APIError.detail).model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
