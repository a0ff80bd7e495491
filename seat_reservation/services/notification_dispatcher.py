"""
Hands committed reservation changes to the notification tasks.

Dispatch runs after the allocation transaction has committed. A failure here
is logged and reported as False; it never reaches the caller as an error.
"""

import logging
from typing import Iterable, Optional, Sequence
from uuid import UUID

from ..config import get_settings
from ..models.reservation import Reservation

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Queue reservation emails on Celery."""

    def __init__(self):
        self.settings = get_settings()

    def reservations_confirmed(
        self,
        reservations: Sequence[Reservation],
        user_id: UUID,
        event_id: UUID,
        additional_email: Optional[str] = None
    ) -> bool:
        if not self.settings.notifications_enabled or not reservations:
            return False

        reservation_ids = [str(reservation.id) for reservation in reservations]
        try:
            from ..tasks.notification_tasks import send_reservation_confirmation_task
            send_reservation_confirmation_task.delay(
                reservation_ids,
                str(user_id),
                str(event_id),
                additional_email,
            )
        except Exception as e:
            logger.warning(f"Failed to queue reservation confirmation for user {user_id}: {e}")
            return False

        logger.info(f"Reservation confirmation queued for user {user_id}, event {event_id}")
        return True

    def reservations_updated(
        self,
        user_id: UUID,
        event_id: UUID,
        released: Sequence[Reservation],
        remaining_ids: Iterable[UUID]
    ) -> bool:
        if not self.settings.notifications_enabled or not released:
            return False

        try:
            from ..tasks.notification_tasks import send_reservation_update_task
            send_reservation_update_task.delay(
                str(user_id),
                str(event_id),
                [str(reservation.seat_id) for reservation in released],
                [str(reservation_id) for reservation_id in remaining_ids],
            )
        except Exception as e:
            logger.warning(f"Failed to queue reservation update for user {user_id}: {e}")
            return False

        logger.info(f"Reservation update queued for user {user_id}, event {event_id}")
        return True
