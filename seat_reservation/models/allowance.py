"""
EventUserAllowance model; the per (user, event) reservation quota ledger entry.
"""

import uuid

from sqlalchemy import CheckConstraint, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class EventUserAllowance(Base):
    """How many more seats a user may reserve for an event."""

    __tablename__ = "event_user_allowances"

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

    reservations_allowed_count: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_allowances_user_event"),
        CheckConstraint(
            "reservations_allowed_count >= 0",
            name="ck_allowances_count_non_negative"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<EventUserAllowance(id={self.id}, user_id={self.user_id}, "
            f"event_id={self.event_id}, count={self.reservations_allowed_count})>"
        )
