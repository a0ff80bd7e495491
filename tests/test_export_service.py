"""
Tests for the CSV export.
"""

import csv
import io
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from seat_reservation.models import ReservationStatus
from seat_reservation.services.export_service import CSV_HEADER, ExportService, render_csv
from seat_reservation.services.reservation_service import ReservationService
from seat_reservation.utils.exceptions import EventNotFoundError


def _parse(text):
    return list(csv.reader(io.StringIO(text)))


def test_render_csv_formats_rows():
    reservation = SimpleNamespace(
        id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
        status=ReservationStatus.BLOCKED,
        reservation_date=datetime(2024, 3, 5, 18, 30, tzinfo=timezone.utc),
    )
    seat = SimpleNamespace(seat_number="12", seat_row=None)
    user = SimpleNamespace(first_name="Mona", last_name="Manager")

    rows = _parse(render_csv([(reservation, seat, user)], "%d.%m.%Y %H:%M"))

    assert rows == [
        CSV_HEADER,
        [
            "00000000-0000-0000-0000-000000000001",
            "BLOCKED",
            "12",
            "",
            "Mona",
            "Manager",
            "05.03.2024 18:30",
        ],
    ]


def test_render_csv_treats_naive_dates_as_utc():
    reservation = SimpleNamespace(
        id=uuid.uuid4(),
        status=ReservationStatus.RESERVED,
        reservation_date=datetime(2024, 1, 2, 3, 4),
    )
    seat = SimpleNamespace(seat_number="1", seat_row="A")
    user = SimpleNamespace(first_name="Ursula", last_name="User")

    [_, row] = _parse(render_csv([(reservation, seat, user)], "%Y-%m-%d %H:%M"))

    assert row[-1] == "2024-01-02 03:04"


def test_render_csv_empty_snapshot():
    assert _parse(render_csv([], "%Y")) == [CSV_HEADER]


@pytest.mark.asyncio
async def test_export_csv_is_sorted_by_seat_number(db_session, dispatcher, manager, user_u, event, seats, grant):
    await grant(user_u, event, 2)
    reservations = ReservationService(db_session, dispatcher=dispatcher)
    await reservations.create_reservations(event.id, [seats["5"].id, seats["2"].id], user_u.id)
    await reservations.block_seats(event.id, [seats["4"].id], manager.id)

    rows = _parse(await ExportService(reservations).export_csv(event.id))

    assert rows[0] == CSV_HEADER
    assert [row[2] for row in rows[1:]] == ["2", "4", "5"]
    assert [row[1] for row in rows[1:]] == ["RESERVED", "BLOCKED", "RESERVED"]
    assert [row[4] for row in rows[1:]] == ["Ursula", "Mona", "Ursula"]
    assert [row[3] for row in rows[1:]] == ["A", "A", "A"]


@pytest.mark.asyncio
async def test_export_csv_unknown_event(db_session, dispatcher):
    service = ExportService(ReservationService(db_session, dispatcher=dispatcher))

    with pytest.raises(EventNotFoundError):
        await service.export_csv(uuid.uuid4())


@pytest.mark.asyncio
async def test_export_csv_orders_seat_numbers_numerically(db_session, dispatcher, manager, event, seats):
    reservations = ReservationService(db_session, dispatcher=dispatcher)
    await reservations.block_seats(event.id, [seats["10"].id, seats["2"].id, seats["1"].id], manager.id)

    rows = _parse(await ExportService(reservations).export_csv(event.id))

    assert [row[2] for row in rows[1:]] == ["1", "2", "10"]
