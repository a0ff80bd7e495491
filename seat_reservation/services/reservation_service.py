"""
Reservation lifecycle: create, block and release seat holds.

A hold is RESERVED (created for a user, paid for with one unit of allowance)
or BLOCKED (created by a manager, no allowance effect). There is no
transition between the two; converting one into the other is a release
followed by a new hold.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import unit_of_work
from ..models.reservation import Reservation, ReservationStatus
from ..models.seat import Seat
from ..models.user import User
from ..utils.exceptions import (
    AuthorizationError,
    ReservationNotFoundError,
    SeatUnavailableError,
)
from ..utils.logging_config import log_business_event
from .allowance_ledger import AllowanceLedger
from .notification_dispatcher import NotificationDispatcher
from .seat_guard import SeatConflictGuard
from .validator import AllocationRequest, AllocationRequestValidator

logger = logging.getLogger(__name__)


class ReservationService:
    """Orchestrates the validator, seat guard and allowance ledger."""

    def __init__(self, session: AsyncSession, dispatcher: Optional[NotificationDispatcher] = None):
        self.session = session
        self.validator = AllocationRequestValidator(session)
        self.guard = SeatConflictGuard(session)
        self.ledger = AllowanceLedger(session)
        self.dispatcher = dispatcher or NotificationDispatcher()

    async def create_reservations(
        self,
        event_id: UUID,
        seat_ids: Sequence[UUID],
        target_user_id: UUID,
        deduct_allowance: bool = True,
        acting_user_id: Optional[UUID] = None,
        enforce_booking_window: bool = False,
        override_permitted: bool = False
    ) -> List[Reservation]:
        """
        Reserve seats for a user in one transaction.

        Each seat takes one unit of allowance (unless ``deduct_allowance`` is
        off) and then a RESERVED hold. The first quota or seat failure aborts
        the batch and rolls back every hold and decrement made for it.

        Args:
            event_id: Event to reserve for
            seat_ids: Seats in the order they should be processed
            target_user_id: User the reservations belong to
            deduct_allowance: Charge the user's allowance per seat
            acting_user_id: Manager acting on the user's behalf, if any
            enforce_booking_window: Reject requests outside the booking window
            override_permitted: Whether the caller may turn off ``deduct_allowance``

        Raises:
            NotFoundError: Event, seat or user does not exist
            AuthorizationError: Allowance override without permission
            BookingClosedError: Outside the booking window
            QuotaExceededError: Allowance absent or used up
            SeatUnavailableError: One or more seats already held
        """
        request = await self.validator.resolve(event_id, seat_ids, target_user_id)
        self.validator.gate_allowance_override(deduct_allowance, override_permitted)
        if enforce_booking_window:
            self.validator.check_booking_window(request.event)

        additional_email = await self._contact_email(acting_user_id)

        logger.info(
            f"Creating {len(request.seats)} reservation(s) for user {target_user_id}, "
            f"event {event_id} (deduct_allowance={deduct_allowance})"
        )

        created = await self._hold_seats(
            request,
            holder_id=target_user_id,
            status=ReservationStatus.RESERVED,
            deduct_allowance=deduct_allowance,
        )

        log_business_event(
            "reservations_created",
            {
                "event_id": str(event_id),
                "reservation_ids": [str(reservation.id) for reservation in created],
                "deduct_allowance": deduct_allowance,
                "acting_user_id": str(acting_user_id) if acting_user_id else None,
            },
            user_id=str(target_user_id)
        )

        self.dispatcher.reservations_confirmed(created, target_user_id, event_id, additional_email)
        return created

    async def block_seats(
        self,
        event_id: UUID,
        seat_ids: Sequence[UUID],
        acting_user_id: UUID
    ) -> List[Reservation]:
        """
        Hold seats as BLOCKED for the acting manager. No allowance is touched.

        Raises:
            SeatUnavailableError: Lists every seat of the batch that is already held
        """
        request = await self.validator.resolve(event_id, seat_ids, acting_user_id)

        logger.info(f"Blocking {len(request.seats)} seat(s) for event {event_id} by {acting_user_id}")

        blocked = await self._hold_seats(
            request,
            holder_id=acting_user_id,
            status=ReservationStatus.BLOCKED,
            deduct_allowance=False,
        )

        log_business_event(
            "seats_blocked",
            {
                "event_id": str(event_id),
                "reservation_ids": [str(reservation.id) for reservation in blocked],
            },
            user_id=str(acting_user_id)
        )
        return blocked

    async def release_reservations(
        self,
        reservation_ids: Iterable[UUID],
        acting_user_id: Optional[UUID] = None
    ) -> List[Reservation]:
        """
        Release holds by id in one transaction.

        Missing ids are skipped. Each released RESERVED hold gives one unit
        back to its own (user, event) entry; BLOCKED holds give nothing back.

        Returns:
            The reservations that were actually released
        """
        released: List[Reservation] = []

        async with unit_of_work(self.session):
            for reservation_id in dict.fromkeys(reservation_ids):
                reservation = await self.guard.release(reservation_id)
                if reservation is None:
                    logger.debug(f"Reservation {reservation_id} not found, nothing to release")
                    continue

                if reservation.consumes_allowance:
                    await self.ledger.restore(reservation.user_id, reservation.event_id)
                released.append(reservation)

        if not released:
            return released

        log_business_event(
            "reservations_released",
            {
                "reservation_ids": [str(reservation.id) for reservation in released],
                "acting_user_id": str(acting_user_id) if acting_user_id else None,
            }
        )

        await self._notify_released(released)
        return released

    async def reserve_for_self(
        self,
        event_id: UUID,
        seat_ids: Sequence[UUID],
        user_id: UUID
    ) -> List[Reservation]:
        """Self-service reservation; always charged, only inside the booking window."""
        return await self.create_reservations(
            event_id,
            seat_ids,
            user_id,
            deduct_allowance=True,
            enforce_booking_window=True,
        )

    async def release_own(self, reservation_id: UUID, user_id: UUID) -> Optional[Reservation]:
        """
        Release one of the caller's own reservations.

        Returns None when the reservation no longer exists.

        Raises:
            AuthorizationError: The reservation belongs to someone else
        """
        reservation = await self.session.get(Reservation, reservation_id)
        if reservation is None:
            return None

        if reservation.user_id != user_id:
            raise AuthorizationError(
                "Reservations can only be released by their owner",
                required_permission="reservation_owner"
            )

        released = await self.release_reservations([reservation_id], acting_user_id=user_id)
        return released[0] if released else None

    async def get_reservation(self, reservation_id: UUID) -> Reservation:
        reservation = await self.session.get(Reservation, reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(str(reservation_id))
        return reservation

    async def list_for_event(self, event_id: UUID) -> List[Reservation]:
        await self.validator.get_event(event_id)
        result = await self.session.execute(
            select(Reservation)
            .where(Reservation.event_id == event_id)
            .order_by(Reservation.reservation_date, Reservation.id)
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: UUID) -> List[Reservation]:
        result = await self.session.execute(
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.reservation_date, Reservation.id)
        )
        return list(result.scalars().all())

    async def list_for_user_and_event(self, user_id: UUID, event_id: UUID) -> List[Reservation]:
        result = await self.session.execute(
            select(Reservation)
            .where(Reservation.user_id == user_id, Reservation.event_id == event_id)
            .order_by(Reservation.reservation_date, Reservation.id)
        )
        return list(result.scalars().all())

    async def snapshot_for_export(self, event_id: UUID) -> List[Tuple[Reservation, Seat, User]]:
        """
        Every hold of the event with its seat and holder.

        Rows are sorted by seat number, numerically where the numbers are
        numeric, so seat "2" comes before seat "10".
        """
        await self.validator.get_event(event_id)
        result = await self.session.execute(
            select(Reservation, Seat, User)
            .join(Seat, Seat.id == Reservation.seat_id)
            .join(User, User.id == Reservation.user_id)
            .where(Reservation.event_id == event_id)
        )
        # Sorted here: SQL would compare seat numbers as text.
        rows = [(reservation, seat, user) for reservation, seat, user in result.all()]
        return sorted(rows, key=lambda row: row[1].sort_key)

    async def _hold_seats(
        self,
        request: AllocationRequest,
        holder_id: UUID,
        status: ReservationStatus,
        deduct_allowance: bool
    ) -> List[Reservation]:
        # Plain ids only: the rollback below expires every loaded instance.
        event_id = request.event.id
        seat_ids = list(request.seat_ids)
        holds: List[Reservation] = []

        try:
            async with unit_of_work(self.session):
                for seat_id in seat_ids:
                    if deduct_allowance:
                        await self.ledger.try_consume(holder_id, event_id)
                    holds.append(await self.guard.try_hold(holder_id, event_id, seat_id, status))
        except SeatUnavailableError as e:
            # The transaction is rolled back; report every seat of the batch
            # that is held now, not only the first one the insert tripped on.
            held = await self.guard.held_seat_ids(event_id, seat_ids)
            conflicting = [seat_id for seat_id in seat_ids if seat_id in held]
            raise SeatUnavailableError(conflicting or e.seat_ids, event_id=str(event_id)) from e

        return holds

    async def _contact_email(self, user_id: Optional[UUID]) -> Optional[str]:
        if user_id is None:
            return None
        user = await self.session.get(User, user_id)
        return user.email if user else None

    async def _notify_released(self, released: Sequence[Reservation]) -> None:
        by_holder: Dict[Tuple[UUID, UUID], List[Reservation]] = defaultdict(list)
        for reservation in released:
            by_holder[(reservation.user_id, reservation.event_id)].append(reservation)

        for (user_id, event_id), group in by_holder.items():
            remaining = await self.list_for_user_and_event(user_id, event_id)
            self.dispatcher.reservations_updated(
                user_id,
                event_id,
                group,
                [reservation.id for reservation in remaining],
            )
