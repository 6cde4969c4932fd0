# villa_booking/core/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError, NoResultFound, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from villa_booking.core.config import settings
from villa_booking.core.logging_config import new_correlation_id
from villa_booking.core.responses import error_body

logger = logging.getLogger(__name__)


class AppError(Exception):
    """
    Operational error raised by the domain layer.
    The handler below turns it into the error envelope.
    """

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class BadRequestError(AppError):
    status_code = 400
    code = "BAD_REQUEST"


class BookingStateError(AppError):
    status_code = 400
    code = "INVALID_BOOKING_STATE"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class NotificationError(AppError):
    """Email / WhatsApp provider refused or could not be reached."""

    status_code = 502
    code = "NOTIFICATION_FAILED"


HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def _integrity_error(exc: IntegrityError) -> tuple[int, str, str]:
    detail = str(exc.orig).lower()
    if "unique" in detail or "duplicate" in detail:
        return 409, "DUPLICATE_FIELD", "Record already exists"
    if "foreign key" in detail:
        return 400, "FOREIGN_KEY_VIOLATION", "Related record not found"
    if "not null" in detail or "cannot be null" in detail:
        return 400, "NULL_CONSTRAINT_VIOLATION", "Missing required field"
    return 400, "INTEGRITY_ERROR", "Invalid data"


def format_validation_errors(exc: RequestValidationError) -> list[dict]:
    """One entry per offending field: {field, message}."""
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]


def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        correlation_id = new_correlation_id()
        logger.warning(
            "%s %s -> %s %s [%s]",
            request.method, request.url.path, exc.status_code, exc.message, correlation_id,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(
                exc.message,
                status_code=exc.status_code,
                code=exc.code,
                correlation_id=correlation_id,
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(
                str(exc.detail),
                status_code=exc.status_code,
                code=HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR"),
                correlation_id=new_correlation_id(),
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_body(
                "Validation failed",
                status_code=422,
                code="VALIDATION_ERROR",
                correlation_id=new_correlation_id(),
                details=format_validation_errors(exc),
            ),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        status_code, code, message = _integrity_error(exc)
        correlation_id = new_correlation_id()
        logger.warning("integrity error [%s]: %s", correlation_id, exc.orig)
        return JSONResponse(
            status_code=status_code,
            content=error_body(message, status_code=status_code, code=code, correlation_id=correlation_id),
        )

    @app.exception_handler(NoResultFound)
    async def no_result_handler(request: Request, exc: NoResultFound):
        return JSONResponse(
            status_code=404,
            content=error_body(
                "Record not found",
                status_code=404,
                code="RECORD_NOT_FOUND",
                correlation_id=new_correlation_id(),
            ),
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError):
        correlation_id = new_correlation_id()
        logger.error("database unreachable [%s]: %s", correlation_id, exc)
        return JSONResponse(
            status_code=503,
            content=error_body(
                "Database connection failed",
                status_code=503,
                code="DATABASE_UNREACHABLE",
                correlation_id=correlation_id,
            ),
        )

    @app.exception_handler(DBAPIError)
    async def dbapi_error_handler(request: Request, exc: DBAPIError):
        correlation_id = new_correlation_id()
        logger.error("database error [%s]: %s", correlation_id, exc)
        return JSONResponse(
            status_code=500,
            content=error_body(
                "Database operation failed",
                status_code=500,
                code="DATABASE_ERROR",
                correlation_id=correlation_id,
            ),
        )

    # Catch all unhandled exceptions
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        correlation_id = new_correlation_id()
        logger.exception("Unhandled exception [%s] on %s %s", correlation_id, request.method, request.url.path)

        details = None
        message = "Internal server error"
        if settings.is_development:
            message = str(exc) or message
            details = {"type": type(exc).__name__}
        return JSONResponse(
            status_code=500,
            content=error_body(
                message,
                status_code=500,
                code="INTERNAL_ERROR",
                correlation_id=correlation_id,
                details=details,
            ),
        )
