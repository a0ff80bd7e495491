"""
Event model; a time-boxed occurrence at a location with a booking window.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps read back from the database as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Event(Base):
    """Event model. Read-only from the allocation engine's point of view."""

    __tablename__ = "events"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Event timing
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Booking window
    booking_start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    booking_deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    manager_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("event_locations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_events_time_window"),
        CheckConstraint("booking_start_time < booking_deadline", name="ck_events_booking_window"),
        CheckConstraint("booking_deadline < end_time", name="ck_events_deadline_before_end"),
    )

    def is_bookable_at(self, moment: datetime) -> bool:
        """Check whether ``moment`` falls inside the booking window."""
        start = _as_utc(self.booking_start_time)
        deadline = _as_utc(self.booking_deadline)
        return start <= _as_utc(moment) <= deadline

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, name='{self.name}', "
            f"start={self.start_time}, location_id={self.location_id})>"
        )
