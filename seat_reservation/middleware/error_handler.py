"""
Error handling middleware; turns service exceptions into JSON error responses.
"""

import logging
import traceback
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as SQLTimeoutError
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import (
    SeatReservationError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    AuthenticationError,
    AuthorizationError,
    InvariantViolationError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)


STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.QUOTA_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.SEAT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    ErrorCode.BOOKING_CLOSED: status.HTTP_409_CONFLICT,
    ErrorCode.INVARIANT_VIOLATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.NOTIFICATION_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: SeatReservationError) -> int:
    """Map an error code to its HTTP status."""
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch exceptions escaping the routes and render them uniformly."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc, error_id)

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        self._log_error(request, exc, error_id)

        if isinstance(exc, SeatReservationError):
            return self._handle_service_error(exc, error_id)
        elif isinstance(exc, PydanticValidationError):
            return self._handle_validation_error(exc, error_id)
        elif isinstance(exc, IntegrityError):
            return self._handle_integrity_error(exc, error_id)
        elif isinstance(exc, (OperationalError, SQLTimeoutError)):
            return self._handle_database_error(exc, error_id)
        else:
            return self._handle_unexpected_error(exc, error_id)

    def _respond(self, status_code: int, error: SeatReservationError, error_id: str, headers=None, **extra) -> JSONResponse:
        content = {
            "error": error.to_dict(),
            "error_id": error_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **extra
        }
        return JSONResponse(status_code=status_code, content=content, headers=headers)

    def _handle_service_error(self, exc: SeatReservationError, error_id: str) -> JSONResponse:
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return self._respond(status_code_for(exc), exc, error_id, headers=headers)

    def _handle_validation_error(self, exc: PydanticValidationError, error_id: str) -> JSONResponse:
        field_errors = {}
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            field_errors.setdefault(field_path, []).append(error["msg"])

        validation_error = ValidationError("Request validation failed", field_errors=field_errors)
        return self._respond(status.HTTP_422_UNPROCESSABLE_ENTITY, validation_error, error_id)

    def _handle_integrity_error(self, exc: IntegrityError, error_id: str) -> JSONResponse:
        # Constraint violations the services did not translate themselves
        error_message = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()

        if "unique" in error_message:
            constraint_type = "unique"
        elif "foreign key" in error_message:
            constraint_type = "foreign_key"
        elif "check" in error_message:
            constraint_type = "check"
        else:
            constraint_type = "unknown"

        integrity_error = ValidationError(
            "Data integrity constraint violation",
            details={"constraint_type": constraint_type}
        )
        return self._respond(status.HTTP_409_CONFLICT, integrity_error, error_id)

    def _handle_database_error(self, exc: Exception, error_id: str) -> JSONResponse:
        database_error = ExternalServiceError(
            "database",
            "Database service temporarily unavailable",
        )
        return self._respond(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            database_error,
            error_id,
            headers={"Retry-After": "30"}
        )

    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        unexpected = SeatReservationError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )

        extra = {}
        if self.debug:
            extra["debug"] = {"exception": str(exc), "traceback": traceback.format_exc()}

        return self._respond(status.HTTP_500_INTERNAL_SERVER_ERROR, unexpected, error_id, **extra)

    def _log_error(self, request: Request, exc: Exception, error_id: str):
        context = {
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        if isinstance(exc, InvariantViolationError):
            logger.critical(
                f"Invariant violation [{error_id}]: {exc.message}",
                extra={**context, "error_code": exc.error_code.value, "details": exc.details}
            )
        elif isinstance(exc, (ValidationError, NotFoundError, AuthenticationError, AuthorizationError)):
            logger.warning(
                f"Client error [{error_id}]: {exc.message}",
                extra={**context, "error_code": exc.error_code.value, "details": exc.details}
            )
        elif isinstance(exc, ExternalServiceError):
            logger.error(
                f"System error [{error_id}]: {exc.message}",
                extra={**context, "error_code": exc.error_code.value, "details": exc.details}
            )
        elif isinstance(exc, SeatReservationError):
            logger.info(
                f"Request rejected [{error_id}]: {exc.message}",
                extra={**context, "error_code": exc.error_code.value, "details": exc.details}
            )
        else:
            logger.error(
                f"Unexpected error [{error_id}]: {exc}",
                extra={**context, "error_type": type(exc).__name__},
                exc_info=True
            )
