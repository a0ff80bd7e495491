"""
Celery tasks for reservation notifications.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .celery_app import celery_app
from ..database import create_database_engine, create_session_factory
from ..services.notification_service import NotificationService
from ..utils.exceptions import NotificationError

logger = logging.getLogger(__name__)


def _run_with_session(work: Callable[[AsyncSession], Awaitable[bool]]) -> bool:
    """Run ``work`` on a fresh event loop with an engine scoped to that loop."""

    async def _runner() -> bool:
        engine = create_database_engine()
        try:
            async with create_session_factory(engine)() as session:
                return await work(session)
        finally:
            await engine.dispose()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_runner())
    finally:
        loop.close()


@celery_app.task(bind=True, name="send_reservation_confirmation_task")
def send_reservation_confirmation_task(
    self,
    reservation_ids: List[str],
    user_id: str,
    event_id: str,
    additional_email: Optional[str] = None
):
    """
    Send the confirmation email for reservations created in one request.

    Args:
        reservation_ids: IDs of the created reservations
        user_id: The user the seats were reserved for
        event_id: The event the seats belong to
        additional_email: Acting manager's address, copied in
    """
    logger.info(f"Sending reservation confirmation for user {user_id}, event {event_id}")

    try:
        sent = _run_with_session(
            lambda session: NotificationService(session).send_reservation_confirmation(
                [UUID(reservation_id) for reservation_id in reservation_ids],
                UUID(user_id),
                UUID(event_id),
                additional_email=additional_email,
            )
        )
    except NotificationError as e:
        logger.warning(f"Reservation confirmation not delivered: {e.message}")
        return {"reservation_ids": reservation_ids, "status": "failed", "error": e.message}
    except Exception as e:
        logger.error(f"Error in reservation confirmation task: {e}")
        return {"reservation_ids": reservation_ids, "status": "error", "error": str(e)}

    return {"reservation_ids": reservation_ids, "status": "sent" if sent else "failed"}


@celery_app.task(bind=True, name="send_reservation_update_task")
def send_reservation_update_task(
    self,
    user_id: str,
    event_id: str,
    released_seat_ids: List[str],
    remaining_reservation_ids: List[str]
):
    """
    Tell a user which seats were released and which reservations remain.
    """
    logger.info(f"Sending reservation update for user {user_id}, event {event_id}")

    try:
        sent = _run_with_session(
            lambda session: NotificationService(session).send_reservation_update(
                UUID(user_id),
                UUID(event_id),
                [UUID(seat_id) for seat_id in released_seat_ids],
                [UUID(reservation_id) for reservation_id in remaining_reservation_ids],
            )
        )
    except NotificationError as e:
        logger.warning(f"Reservation update not delivered: {e.message}")
        return {"user_id": user_id, "status": "failed", "error": e.message}
    except Exception as e:
        logger.error(f"Error in reservation update task: {e}")
        return {"user_id": user_id, "status": "error", "error": str(e)}

    return {"user_id": user_id, "status": "sent" if sent else "failed"}
