"""Business logic services for the seat reservation service."""

from .allowance_ledger import AllowanceLedger
from .allowance_service import AllowanceService
from .export_service import ExportService
from .notification_dispatcher import NotificationDispatcher
from .reservation_service import ReservationService
from .seat_guard import SeatConflictGuard
from .validator import AllocationRequest, AllocationRequestValidator

__all__ = [
    "AllowanceLedger",
    "AllowanceService",
    "ExportService",
    "NotificationDispatcher",
    "ReservationService",
    "SeatConflictGuard",
    "AllocationRequest",
    "AllocationRequestValidator",
]
