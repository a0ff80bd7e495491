"""
Pre-flight checks for allocation requests. Nothing here writes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models.event import Event
from ..models.seat import Seat
from ..models.user import User
from ..utils.exceptions import (
    AuthorizationError,
    BookingClosedError,
    EventNotFoundError,
    SeatNotFoundError,
    UserNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationRequest:
    """A request whose event, user and seats all resolved."""

    event: Event
    user: User
    seats: List[Seat]

    @property
    def seat_ids(self) -> List[UUID]:
        return [seat.id for seat in self.seats]


class AllocationRequestValidator:
    """Resolve the entities an allocation request refers to, or fail fast."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def resolve(
        self,
        event_id: UUID,
        seat_ids: Sequence[UUID],
        user_id: UUID
    ) -> AllocationRequest:
        """
        Look up the event, its seats and the target user.

        Seats are returned in request order. A seat that exists at another
        location does not exist for this event and fails the same way as an
        unknown id.

        Raises:
            ValidationError: Empty, oversized or repeating seat list
            EventNotFoundError, SeatNotFoundError, UserNotFoundError
        """
        self.validate_seat_ids(seat_ids)

        event = await self.get_event(event_id)

        result = await self.session.execute(select(Seat).where(Seat.id.in_(list(seat_ids))))
        seats_by_id = {seat.id: seat for seat in result.scalars().all()}

        seats = []
        for seat_id in seat_ids:
            seat = seats_by_id.get(seat_id)
            if seat is None or seat.location_id != event.location_id:
                raise SeatNotFoundError(str(seat_id))
            seats.append(seat)

        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))

        return AllocationRequest(event=event, user=user, seats=seats)

    async def get_event(self, event_id: UUID) -> Event:
        event = await self.session.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        return event

    def validate_seat_ids(self, seat_ids: Sequence[UUID]) -> None:
        if not seat_ids:
            raise ValidationError(
                "At least one seat must be requested",
                field_errors={"seat_ids": ["must not be empty"]}
            )

        limit = self.settings.max_seats_per_request
        if len(seat_ids) > limit:
            raise ValidationError(
                f"At most {limit} seats can be requested at once",
                field_errors={"seat_ids": [f"must contain at most {limit} items"]}
            )

        seen = set()
        duplicates = []
        for seat_id in seat_ids:
            if seat_id in seen and seat_id not in duplicates:
                duplicates.append(seat_id)
            seen.add(seat_id)

        if duplicates:
            raise ValidationError(
                "Seats may only be requested once per request",
                field_errors={"seat_ids": [f"duplicate seat {seat_id}" for seat_id in duplicates]}
            )

    @staticmethod
    def check_booking_window(event: Event, now: Optional[datetime] = None) -> None:
        """Raise BookingClosedError when ``now`` lies outside the event's booking window."""
        now = now or datetime.now(timezone.utc)
        if not event.is_bookable_at(now):
            raise BookingClosedError(
                str(event.id),
                reason=f"Booking for event {event.id} is closed",
            )

    @staticmethod
    def gate_allowance_override(deduct_allowance: bool, override_permitted: bool) -> None:
        """Only callers allowed to manage the event may skip the allowance deduction."""
        if not deduct_allowance and not override_permitted:
            raise AuthorizationError(
                "Only the event manager or an administrator may reserve without deducting allowance",
                required_permission="allowance_override"
            )
