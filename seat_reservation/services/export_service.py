"""
CSV export of an event's reservations.
"""

import csv
import io
import logging
from datetime import datetime, timezone
from typing import Iterable, Tuple
from uuid import UUID

from ..config import get_settings
from ..models.reservation import Reservation
from ..models.seat import Seat
from ..models.user import User
from .reservation_service import ReservationService

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "ID",
    "Status",
    "Seat Number",
    "Seat Row",
    "First Name",
    "Last Name",
    "Reservation Date",
]


def _format_date(value: datetime, date_format: str) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(date_format)


def render_csv(rows: Iterable[Tuple[Reservation, Seat, User]], date_format: str) -> str:
    """Render snapshot rows, already sorted by seat number, as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for reservation, seat, user in rows:
        writer.writerow([
            str(reservation.id),
            reservation.status.name,
            seat.seat_number,
            seat.seat_row or "",
            user.first_name,
            user.last_name,
            _format_date(reservation.reservation_date, date_format),
        ])

    return buffer.getvalue()


class ExportService:
    """Builds exports from the seat-number-sorted reservation snapshot."""

    def __init__(self, reservation_service: ReservationService):
        self.reservation_service = reservation_service
        self.settings = get_settings()

    async def export_csv(self, event_id: UUID) -> str:
        rows = await self.reservation_service.snapshot_for_export(event_id)
        logger.info(f"Exporting {len(rows)} reservation(s) of event {event_id} as CSV")
        return render_csv(rows, self.settings.export_date_format)
