"""
Database models for the seat reservation service.
"""

from .base import Base
from .user import User, UserRole
from .location import EventLocation
from .event import Event
from .seat import Seat
from .reservation import Reservation, ReservationStatus
from .allowance import EventUserAllowance

__all__ = [
    "Base",
    "User",
    "UserRole",
    "EventLocation",
    "Event",
    "Seat",
    "Reservation",
    "ReservationStatus",
    "EventUserAllowance",
]
