"""
Seat conflict guard.

At most one hold may exist per (event, seat). The unique constraint
``uq_reservations_event_seat`` decides every race; the read helpers here are
only used to describe a conflict before attempting an insert.
"""

import logging
from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.reservation import Reservation, ReservationStatus
from ..utils.exceptions import SeatUnavailableError

logger = logging.getLogger(__name__)


def _is_seat_conflict(exc: IntegrityError) -> bool:
    """Tell a double hold apart from other constraint failures."""
    message = str(exc.orig).lower()
    return "uq_reservations_event_seat" in message or (
        "unique" in message and "reservations.event_id" in message
    )


class SeatConflictGuard:
    """Create and delete seat holds inside the caller's transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def try_hold(
        self,
        user_id: UUID,
        event_id: UUID,
        seat_id: UUID,
        status: ReservationStatus
    ) -> Reservation:
        """
        Insert a hold for (event, seat).

        Raises:
            SeatUnavailableError: Another hold for the slot already exists
        """
        reservation = Reservation(
            user_id=user_id,
            event_id=event_id,
            seat_id=seat_id,
            status=status,
        )
        self.session.add(reservation)

        try:
            await self.session.flush()
        except IntegrityError as e:
            if not _is_seat_conflict(e):
                raise
            logger.info(f"Seat {seat_id} already held for event {event_id}")
            raise SeatUnavailableError([str(seat_id)], event_id=str(event_id)) from e

        return reservation

    async def release(self, reservation_id: UUID) -> Optional[Reservation]:
        """
        Delete a hold.

        Returns the deleted reservation, or None when there was nothing to
        delete (already released, never existed, or released concurrently).
        """
        reservation = await self.session.get(Reservation, reservation_id)
        if reservation is None:
            return None

        result = await self.session.execute(
            delete(Reservation)
            .where(Reservation.id == reservation_id)
            .returning(Reservation.id)
            .execution_options(synchronize_session=False)
        )
        self.session.expunge(reservation)

        if result.scalar_one_or_none() is None:
            logger.info(f"Reservation {reservation_id} was released concurrently")
            return None

        return reservation

    async def find_active_hold(self, event_id: UUID, seat_id: UUID) -> Optional[Reservation]:
        result = await self.session.execute(
            select(Reservation).where(
                Reservation.event_id == event_id,
                Reservation.seat_id == seat_id,
            )
        )
        return result.scalar_one_or_none()

    async def held_seat_ids(self, event_id: UUID, seat_ids: Optional[Iterable[UUID]] = None) -> Set[UUID]:
        """Seat ids of ``event_id`` that currently have a hold, optionally narrowed to ``seat_ids``."""
        query = select(Reservation.seat_id).where(Reservation.event_id == event_id)
        if seat_ids is not None:
            query = query.where(Reservation.seat_id.in_(list(seat_ids)))

        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def holds_for_event(self, event_id: UUID) -> List[Reservation]:
        result = await self.session.execute(
            select(Reservation).where(Reservation.event_id == event_id)
        )
        return list(result.scalars().all())
