"""
Tests for notification dispatch, rendering and the Celery tasks.
"""

import smtplib
import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import update

from seat_reservation.models import Event
from seat_reservation.services import notification_service
from seat_reservation.services.notification_dispatcher import NotificationDispatcher
from seat_reservation.services.notification_service import NotificationService
from seat_reservation.services.reservation_service import ReservationService
from seat_reservation.tasks import notification_tasks
from seat_reservation.utils.exceptions import NotificationError


class FakeSMTP:
    """Stands in for smtplib.SMTP and keeps the sent messages."""

    sent = []

    def __init__(self, host, port):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        pass

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


class RejectingSMTP(FakeSMTP):

    def send_message(self, msg):
        raise smtplib.SMTPRecipientsRefused({"ursula@example.com": (550, b"mailbox unavailable")})


@pytest.fixture
def smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(notification_service.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def _configure_smtp(monkeypatch, service):
    monkeypatch.setattr(service.settings, "smtp_server", "smtp.example.com")
    monkeypatch.setattr(service.settings, "smtp_username", "noreply@example.com")
    monkeypatch.setattr(service.settings, "smtp_password", "secret")


class TestDispatcher:

    def test_confirmation_is_queued(self, queued_tasks):
        user_id, event_id = uuid.uuid4(), uuid.uuid4()
        reservations = [SimpleNamespace(id=uuid.uuid4()), SimpleNamespace(id=uuid.uuid4())]

        assert NotificationDispatcher().reservations_confirmed(
            reservations, user_id, event_id, "manager@example.com"
        ) is True

        assert queued_tasks == [(
            "confirmation",
            ([str(r.id) for r in reservations], str(user_id), str(event_id), "manager@example.com"),
            {},
        )]

    def test_update_is_queued_with_released_seats(self, queued_tasks):
        user_id, event_id = uuid.uuid4(), uuid.uuid4()
        released = [SimpleNamespace(id=uuid.uuid4(), seat_id=uuid.uuid4())]
        remaining = [uuid.uuid4()]

        assert NotificationDispatcher().reservations_updated(user_id, event_id, released, remaining) is True

        assert queued_tasks == [(
            "update",
            (str(user_id), str(event_id), [str(released[0].seat_id)], [str(remaining[0])]),
            {},
        )]

    def test_nothing_to_report(self, queued_tasks):
        dispatcher = NotificationDispatcher()

        assert dispatcher.reservations_confirmed([], uuid.uuid4(), uuid.uuid4()) is False
        assert dispatcher.reservations_updated(uuid.uuid4(), uuid.uuid4(), [], []) is False
        assert queued_tasks == []

    def test_disabled_notifications(self, monkeypatch, queued_tasks):
        dispatcher = NotificationDispatcher()
        monkeypatch.setattr(dispatcher.settings, "notifications_enabled", False)

        assert dispatcher.reservations_confirmed(
            [SimpleNamespace(id=uuid.uuid4())], uuid.uuid4(), uuid.uuid4()
        ) is False
        assert queued_tasks == []

    def test_broker_failure_is_reported_not_raised(self, monkeypatch):
        def broken_delay(*args, **kwargs):
            raise ConnectionError("broker unreachable")

        monkeypatch.setattr(notification_tasks.send_reservation_confirmation_task, "delay", broken_delay)

        assert NotificationDispatcher().reservations_confirmed(
            [SimpleNamespace(id=uuid.uuid4())], uuid.uuid4(), uuid.uuid4()
        ) is False

    @pytest.mark.asyncio
    async def test_broker_failure_does_not_fail_reservation(
        self, monkeypatch, db_session, user_u, event, seats, grant
    ):
        def broken_delay(*args, **kwargs):
            raise ConnectionError("broker unreachable")

        monkeypatch.setattr(notification_tasks.send_reservation_confirmation_task, "delay", broken_delay)
        await grant(user_u, event, 1)
        service = ReservationService(db_session, dispatcher=NotificationDispatcher())

        created = await service.create_reservations(event.id, [seats["1"].id], user_u.id)

        assert len(created) == 1


class TestNotificationService:

    @pytest.mark.asyncio
    async def test_without_smtp_configuration_nothing_is_sent(self, monkeypatch, db_session, smtp):
        service = NotificationService(db_session)
        monkeypatch.setattr(service.settings, "smtp_server", None)

        sent = await service._send_email(["ursula@example.com"], "Subject", "<p>Hi</p>", "Hi")

        assert sent is False
        assert smtp.sent == []

    @pytest.mark.asyncio
    async def test_confirmation_copies_acting_manager(
        self, monkeypatch, db_session, dispatcher, smtp, manager, user_u, event, seats, grant
    ):
        await grant(user_u, event, 2)
        created = await ReservationService(db_session, dispatcher=dispatcher).create_reservations(
            event.id, [seats["7"].id, seats["6"].id], user_u.id, acting_user_id=manager.id
        )
        service = NotificationService(db_session)
        _configure_smtp(monkeypatch, service)

        sent = await service.send_reservation_confirmation(
            [r.id for r in created], user_u.id, event.id, additional_email="manager@example.com"
        )

        assert sent is True
        [msg] = smtp.sent
        assert msg["To"] == "ursula@example.com"
        assert msg["Cc"] == "manager@example.com"
        assert msg["Subject"] == "Reservation Confirmation - Spring Concert"
        body = msg.get_payload()[0].get_payload()
        assert body.index("Row B, Seat 6") < body.index("Row B, Seat 7")

    @pytest.mark.asyncio
    async def test_confirmation_for_released_reservations_is_skipped(
        self, monkeypatch, db_session, smtp, user_u, event
    ):
        service = NotificationService(db_session)
        _configure_smtp(monkeypatch, service)

        sent = await service.send_reservation_confirmation([uuid.uuid4()], user_u.id, event.id)

        assert sent is False
        assert smtp.sent == []

    @pytest.mark.asyncio
    async def test_update_lists_released_and_remaining(
        self, monkeypatch, db_session, dispatcher, smtp, user_u, event, seats, grant
    ):
        await grant(user_u, event, 2)
        reservations = ReservationService(db_session, dispatcher=dispatcher)
        first, second = await reservations.create_reservations(
            event.id, [seats["1"].id, seats["2"].id], user_u.id
        )
        await reservations.release_reservations([first.id])
        service = NotificationService(db_session)
        _configure_smtp(monkeypatch, service)

        sent = await service.send_reservation_update(
            user_u.id, event.id, [seats["1"].id], [second.id]
        )

        assert sent is True
        body = smtp.sent[0].get_payload()[0].get_payload()
        assert "Released:\n  - Row A, Seat 1" in body
        assert "Still reserved:\n  - Row A, Seat 2" in body

    @pytest.mark.asyncio
    async def test_smtp_rejection_raises_notification_error(self, monkeypatch, db_session):
        monkeypatch.setattr(notification_service.smtplib, "SMTP", RejectingSMTP)
        service = NotificationService(db_session)
        _configure_smtp(monkeypatch, service)

        with pytest.raises(NotificationError) as exc_info:
            await service._send_email(["ursula@example.com"], "Subject", "<p>Hi</p>", "Hi")

        assert exc_info.value.error_code.value == "NOTIFICATION_ERROR"
        assert isinstance(exc_info.value.__cause__, smtplib.SMTPException)

    @pytest.mark.asyncio
    async def test_html_body_escapes_names(
        self, monkeypatch, db_session, dispatcher, smtp, user_u, event, seats, grant
    ):
        await db_session.execute(update(Event).where(Event.id == event.id).values(name="Rock & <Roll>"))
        await db_session.commit()
        await grant(user_u, event, 1)
        created = await ReservationService(db_session, dispatcher=dispatcher).create_reservations(
            event.id, [seats["1"].id], user_u.id
        )
        service = NotificationService(db_session)
        _configure_smtp(monkeypatch, service)

        await service.send_reservation_confirmation([r.id for r in created], user_u.id, event.id)

        html_body = smtp.sent[0].get_payload()[1].get_payload()
        assert "<strong>Rock &amp; &lt;Roll&gt;</strong>" in html_body
        assert "<Roll>" not in html_body
        assert "Rock & <Roll>" in smtp.sent[0].get_payload()[0].get_payload()

    @pytest.mark.asyncio
    async def test_seats_are_listed_in_numeric_order(
        self, monkeypatch, db_session, dispatcher, smtp, user_u, event, seats, grant
    ):
        await grant(user_u, event, 2)
        created = await ReservationService(db_session, dispatcher=dispatcher).create_reservations(
            event.id, [seats["10"].id, seats["6"].id], user_u.id
        )
        service = NotificationService(db_session)
        _configure_smtp(monkeypatch, service)

        await service.send_reservation_confirmation([r.id for r in created], user_u.id, event.id)

        body = smtp.sent[0].get_payload()[0].get_payload()
        assert body.index("Row B, Seat 6") < body.index("Row B, Seat 10")


class TestTasks:

    def test_confirmation_task_reports_status(self, monkeypatch):
        monkeypatch.setattr(notification_tasks, "_run_with_session", lambda work: True)
        reservation_id = str(uuid.uuid4())

        result = notification_tasks.send_reservation_confirmation_task.run(
            [reservation_id], str(uuid.uuid4()), str(uuid.uuid4())
        )

        assert result == {"reservation_ids": [reservation_id], "status": "sent"}

    def test_update_task_reports_errors(self, monkeypatch):
        def failing(work):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(notification_tasks, "_run_with_session", failing)
        user_id = str(uuid.uuid4())

        result = notification_tasks.send_reservation_update_task.run(
            user_id, str(uuid.uuid4()), [], []
        )

        assert result == {"user_id": user_id, "status": "error", "error": "database unavailable"}

    def test_undelivered_notification_is_reported_as_failed(self, monkeypatch):
        def rejected(work):
            raise NotificationError("Failed to send 'Reservation Update - Spring Concert': refused")

        monkeypatch.setattr(notification_tasks, "_run_with_session", rejected)
        user_id = str(uuid.uuid4())

        result = notification_tasks.send_reservation_update_task.run(
            user_id, str(uuid.uuid4()), [], []
        )

        assert result["status"] == "failed"
        assert "refused" in result["error"]
