"""
Notification service for reservation confirmation and update emails.
"""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..models.event import Event
from ..models.reservation import Reservation
from ..models.seat import Seat
from ..models.user import User
from ..utils.exceptions import NotificationError

logger = logging.getLogger(__name__)


def _describe_seat(seat: Seat) -> str:
    if seat.seat_row:
        return f"Row {seat.seat_row}, Seat {seat.seat_number}"
    return f"Seat {seat.seat_number}"


class NotificationService:
    """Render and send reservation emails. Runs inside the Celery worker."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def send_reservation_confirmation(
        self,
        reservation_ids: Sequence[UUID],
        user_id: UUID,
        event_id: UUID,
        additional_email: Optional[str] = None
    ) -> bool:
        """
        Email the user the seats that were reserved for them.

        Args:
            reservation_ids: Reservations created in one request
            user_id: The user the seats were reserved for
            event_id: The event the seats belong to
            additional_email: Contact address of the acting manager, copied in

        Returns:
            bool: True if email was sent successfully
        """
        user = await self.session.get(User, user_id)
        event = await self.session.get(Event, event_id)
        if user is None or event is None:
            logger.error(f"Cannot confirm reservations {list(reservation_ids)}: user or event missing")
            return False

        seats = await self._seats_for_reservations(reservation_ids)
        if not seats:
            logger.warning(f"Reservations {list(reservation_ids)} no longer exist, skipping confirmation")
            return False

        seat_lines = [_describe_seat(seat) for seat in seats]
        subject = f"Reservation Confirmation - {event.name}"
        text_content = (
            f"Hello {user.full_name or user.username},\n\n"
            f"the following seats have been reserved for you for {event.name} "
            f"({event.start_time:%d.%m.%Y %H:%M}):\n\n"
            + "\n".join(f"  - {line}" for line in seat_lines)
            + "\n"
        )
        html_content = (
            f"<p>Hello {html.escape(user.full_name or user.username)},</p>"
            f"<p>the following seats have been reserved for you for <strong>{html.escape(event.name)}</strong>:</p>"
            "<ul>" + "".join(f"<li>{html.escape(line)}</li>" for line in seat_lines) + "</ul>"
        )

        recipients = [email for email in (user.email, additional_email) if email]
        return await self._send_email(recipients, subject, html_content, text_content)

    async def send_reservation_update(
        self,
        user_id: UUID,
        event_id: UUID,
        released_seat_ids: Sequence[UUID],
        remaining_reservation_ids: Sequence[UUID]
    ) -> bool:
        """
        Email the user which of their seats were released and which remain.

        Released reservations are already deleted, so they are described by seat.
        """
        user = await self.session.get(User, user_id)
        event = await self.session.get(Event, event_id)
        if user is None or event is None:
            logger.error(f"Cannot send reservation update for user {user_id}: user or event missing")
            return False

        released = await self._seats_by_id(released_seat_ids)
        remaining = await self._seats_for_reservations(remaining_reservation_ids)

        subject = f"Reservation Update - {event.name}"
        lines = [f"Hello {user.full_name or user.username},", ""]
        lines.append(f"your reservations for {event.name} have changed.")
        lines.append("")
        lines.append("Released:")
        lines.extend(f"  - {_describe_seat(seat)}" for seat in released)
        lines.append("")
        if remaining:
            lines.append("Still reserved:")
            lines.extend(f"  - {_describe_seat(seat)}" for seat in remaining)
        else:
            lines.append("You have no remaining reservations for this event.")
        text_content = "\n".join(lines) + "\n"
        html_content = "<p>" + "<br>".join(html.escape(line) for line in lines) + "</p>"

        recipients = [user.email] if user.email else []
        return await self._send_email(recipients, subject, html_content, text_content)

    async def _seats_for_reservations(self, reservation_ids: Sequence[UUID]) -> List[Seat]:
        if not reservation_ids:
            return []
        result = await self.session.execute(
            select(Seat)
            .join(Reservation, Reservation.seat_id == Seat.id)
            .where(Reservation.id.in_(list(reservation_ids)))
        )
        return sorted(result.scalars().all(), key=lambda seat: seat.sort_key)

    async def _seats_by_id(self, seat_ids: Sequence[UUID]) -> List[Seat]:
        if not seat_ids:
            return []
        result = await self.session.execute(
            select(Seat).where(Seat.id.in_(list(seat_ids)))
        )
        return sorted(result.scalars().all(), key=lambda seat: seat.sort_key)

    async def _send_email(
        self,
        to_emails: List[str],
        subject: str,
        html_content: str,
        text_content: str
    ) -> bool:
        """
        Send email using SMTP.

        Returns:
            bool: True if email was sent, False if there is nobody to send to
            or SMTP is not configured

        Raises:
            NotificationError: If the SMTP server rejects or cannot take the message
        """
        if not to_emails:
            logger.warning(f"No recipient address for '{subject}', skipping email send")
            return False

        if not self.settings.smtp_server or not self.settings.smtp_username:
            logger.warning("Email configuration not available, skipping email send")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.smtp_username
        msg["To"] = to_emails[0]
        if len(to_emails) > 1:
            msg["Cc"] = ", ".join(to_emails[1:])

        msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            with smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port) as server:
                if self.settings.smtp_use_tls:
                    server.starttls()
                server.login(self.settings.smtp_username, self.settings.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {len(to_emails)} recipient(s): {e}")
            raise NotificationError(f"Failed to send '{subject}': {e}") from e

        logger.info(f"Email '{subject}' sent to {len(to_emails)} recipient(s)")
        return True
