"""
Reservation model; a hold on one seat for one event.
"""

import enum
import secrets
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ReservationStatus(enum.Enum):
    """Enumeration for reservation status."""
    RESERVED = "reserved"
    BLOCKED = "blocked"


def generate_confirmation_code() -> str:
    """Opaque code handed to the notification collaborator."""
    return secrets.token_urlsafe(12)


class Reservation(Base):
    """
    A hold on an (event, seat) slot.

    At most one row may exist per (event, seat); the unique constraint below
    is what decides concurrent races, not any read done beforehand.
    """

    __tablename__ = "reservations"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    seat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("seats.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus),
        nullable=False,
        index=True
    )

    reservation_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    confirmation_code: Mapped[str] = mapped_column(
        String(64),
        default=generate_confirmation_code,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("event_id", "seat_id", name="uq_reservations_event_seat"),
    )

    @property
    def consumes_allowance(self) -> bool:
        """Only RESERVED holds were paid for with an allowance unit."""
        return self.status == ReservationStatus.RESERVED

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, event_id={self.event_id}, "
            f"seat_id={self.seat_id}, user_id={self.user_id}, status={self.status.value})>"
        )
