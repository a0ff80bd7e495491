"""
Tests for the seat conflict guard.
"""

import pytest

from seat_reservation.database import unit_of_work
from seat_reservation.models import Reservation, ReservationStatus
from seat_reservation.services.seat_guard import SeatConflictGuard
from seat_reservation.utils.exceptions import SeatUnavailableError


async def _hold(session, user, event, seat, status=ReservationStatus.RESERVED):
    guard = SeatConflictGuard(session)
    async with unit_of_work(session):
        reservation = await guard.try_hold(user.id, event.id, seat.id, status)
    return reservation


@pytest.mark.asyncio
async def test_try_hold_creates_reservation(db_session, user_u, event, seats):
    reservation = await _hold(db_session, user_u, event, seats["1"])

    stored = await db_session.get(Reservation, reservation.id)
    assert stored is not None
    assert stored.status == ReservationStatus.RESERVED
    assert stored.seat_id == seats["1"].id
    assert stored.confirmation_code


@pytest.mark.asyncio
async def test_second_hold_on_same_seat_is_rejected(db_session, session_factory, user_u, user_v, event, seats):
    await _hold(db_session, user_u, event, seats["1"])

    async with session_factory() as other:
        with pytest.raises(SeatUnavailableError) as exc_info:
            await _hold(other, user_v, event, seats["1"])

    assert exc_info.value.seat_ids == [str(seats["1"].id)]
    assert exc_info.value.event_id == str(event.id)


@pytest.mark.asyncio
async def test_blocked_hold_also_occupies_seat(db_session, session_factory, manager, user_u, event, seats):
    await _hold(db_session, manager, event, seats["2"], status=ReservationStatus.BLOCKED)

    async with session_factory() as other:
        with pytest.raises(SeatUnavailableError):
            await _hold(other, user_u, event, seats["2"])


@pytest.mark.asyncio
async def test_same_seat_can_be_held_for_different_events(db_session, user_u, event, closed_event, seats):
    first = await _hold(db_session, user_u, event, seats["3"])
    second = await _hold(db_session, user_u, closed_event, seats["3"])

    assert first.id != second.id


@pytest.mark.asyncio
async def test_release_is_idempotent(db_session, user_u, event, seats):
    reservation = await _hold(db_session, user_u, event, seats["1"])
    guard = SeatConflictGuard(db_session)

    async with unit_of_work(db_session):
        first = await guard.release(reservation.id)
    async with unit_of_work(db_session):
        second = await guard.release(reservation.id)

    assert first is not None
    assert first.id == reservation.id
    assert second is None
    assert await guard.find_active_hold(event.id, seats["1"].id) is None


@pytest.mark.asyncio
async def test_released_seat_can_be_held_again(db_session, user_u, user_v, event, seats):
    reservation = await _hold(db_session, user_u, event, seats["4"])
    guard = SeatConflictGuard(db_session)

    async with unit_of_work(db_session):
        await guard.release(reservation.id)

    again = await _hold(db_session, user_v, event, seats["4"])
    assert again.user_id == user_v.id


@pytest.mark.asyncio
async def test_held_seat_ids_narrows_to_requested_seats(db_session, user_u, event, seats):
    await _hold(db_session, user_u, event, seats["1"])
    await _hold(db_session, user_u, event, seats["2"])
    guard = SeatConflictGuard(db_session)

    assert await guard.held_seat_ids(event.id) == {seats["1"].id, seats["2"].id}
    assert await guard.held_seat_ids(event.id, [seats["2"].id, seats["3"].id]) == {seats["2"].id}


@pytest.mark.asyncio
async def test_holds_for_event(db_session, user_u, event, closed_event, seats):
    await _hold(db_session, user_u, event, seats["1"])
    await _hold(db_session, user_u, closed_event, seats["2"])
    guard = SeatConflictGuard(db_session)

    holds = await guard.holds_for_event(event.id)

    assert [hold.seat_id for hold in holds] == [seats["1"].id]
