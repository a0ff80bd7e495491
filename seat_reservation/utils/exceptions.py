"""
Custom exceptions for the seat reservation service.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the service."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Business logic errors
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    BOOKING_CLOSED = "BOOKING_CLOSED"

    # Programmer errors
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"

    # External service errors
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"


class SeatReservationError(Exception):
    """Base exception class for the seat reservation service."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(SeatReservationError):
    """Exception raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        details = kwargs.pop("details", None)
        if field_errors:
            details = {"field_errors": field_errors}
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details=details,
            **kwargs
        )
        self.field_errors = field_errors or {}


class NotFoundError(SeatReservationError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class EventNotFoundError(NotFoundError):
    """Exception raised when an event is not found."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            f"Event {event_id} not found",
            resource_type="event",
            resource_id=str(event_id),
            suggestions=["Check the event ID"],
            **kwargs
        )


class UserNotFoundError(NotFoundError):
    """Exception raised when a user is not found."""

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            f"User {user_id} not found",
            resource_type="user",
            resource_id=str(user_id),
            **kwargs
        )


class SeatNotFoundError(NotFoundError):
    """Exception raised when a seat is not found for the requested event."""

    def __init__(self, seat_id: str, **kwargs):
        super().__init__(
            f"Seat {seat_id} not found",
            resource_type="seat",
            resource_id=str(seat_id),
            suggestions=["Check that the seat belongs to the event's location"],
            **kwargs
        )


class ReservationNotFoundError(NotFoundError):
    """Exception raised when a reservation is not found."""

    def __init__(self, reservation_id: str, **kwargs):
        super().__init__(
            f"Reservation {reservation_id} not found",
            resource_type="reservation",
            resource_id=str(reservation_id),
            **kwargs
        )


class AllowanceNotFoundError(NotFoundError):
    """Exception raised when a reservation allowance is not found."""

    def __init__(self, allowance_id: str, **kwargs):
        super().__init__(
            f"Allowance {allowance_id} not found",
            resource_type="allowance",
            resource_id=str(allowance_id),
            **kwargs
        )


class AuthenticationError(SeatReservationError):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            suggestions=["Check your credentials", "Login again"],
            **kwargs
        )


class AuthorizationError(SeatReservationError):
    """Exception raised for authorization failures."""

    def __init__(self, message: str = "Access denied", required_permission: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.FORBIDDEN,
            details={"required_permission": required_permission} if required_permission else None,
            suggestions=["Contact the event manager for access"],
            **kwargs
        )


class BusinessLogicError(SeatReservationError):
    """Base exception for business logic violations."""
    pass


class QuotaExceededError(BusinessLogicError):
    """Exception raised when a user has no reservation allowance left for an event."""

    def __init__(self, user_id: str, event_id: str, has_allowance: bool = True, **kwargs):
        if has_allowance:
            message = f"No more reservations allowed for user {user_id} and event {event_id}"
        else:
            message = f"User {user_id} has no reservation allowance for event {event_id}"
        super().__init__(
            message,
            error_code=ErrorCode.QUOTA_EXCEEDED,
            details={"user_id": str(user_id), "event_id": str(event_id), "has_allowance": has_allowance},
            suggestions=["Ask the event manager to grant more reservations"],
            **kwargs
        )
        self.user_id = user_id
        self.event_id = event_id
        self.has_allowance = has_allowance


class SeatUnavailableError(BusinessLogicError):
    """Exception raised when one or more seats are already held for an event."""

    def __init__(self, seat_ids: List[str], event_id: Optional[str] = None, **kwargs):
        seat_ids = [str(seat_id) for seat_id in seat_ids]
        super().__init__(
            f"Seats already reserved or blocked: {', '.join(seat_ids)}",
            error_code=ErrorCode.SEAT_UNAVAILABLE,
            details={"seat_ids": seat_ids, "event_id": str(event_id) if event_id else None},
            suggestions=["Choose different seats", "Resubmit the remaining seats"],
            **kwargs
        )
        self.seat_ids = seat_ids
        self.event_id = event_id


class BookingClosedError(BusinessLogicError):
    """Exception raised when an event is outside its booking window."""

    def __init__(self, event_id: str, reason: str = "Event is no longer bookable", **kwargs):
        super().__init__(
            reason,
            error_code=ErrorCode.BOOKING_CLOSED,
            details={"event_id": str(event_id)},
            **kwargs
        )


class InvariantViolationError(SeatReservationError):
    """Exception raised when an internal consistency rule is broken."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.INVARIANT_VIOLATION,
            **kwargs
        )


class ExternalServiceError(SeatReservationError):
    """Exception raised for external service failures."""

    def __init__(self, service_name: str, message: str, status_code: Optional[int] = None, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.EXTERNAL_SERVICE_ERROR)
        super().__init__(
            f"{service_name} service error: {message}",
            details={"service_name": service_name, "status_code": status_code},
            suggestions=["Try again later"],
            **kwargs
        )


class NotificationError(ExternalServiceError):
    """Exception raised when a reservation notification cannot be delivered."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            "notification",
            message,
            error_code=ErrorCode.NOTIFICATION_ERROR,
            **kwargs
        )
