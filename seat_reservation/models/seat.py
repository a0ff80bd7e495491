"""
Seat model; a numbered place inside a location.
"""

import uuid
from typing import Optional, Tuple

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Seat(Base):
    """Seat model. Owned by location master data; allocation only reads it."""

    __tablename__ = "seats"

    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("event_locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    seat_number: Mapped[str] = mapped_column(String(50), nullable=False)
    seat_row: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Display metadata only
    x_coordinate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    y_coordinate: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("location_id", "seat_number", name="uq_seats_location_number"),
    )

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        """Ordering key that puts seat "2" before seat "10"; non-numeric numbers follow, by text."""
        number = self.seat_number.strip()
        if number.isdigit():
            return (0, int(number), number)
        return (1, 0, number)

    def __repr__(self) -> str:
        return (
            f"<Seat(id={self.id}, location_id={self.location_id}, "
            f"number='{self.seat_number}', row='{self.seat_row}')>"
        )
