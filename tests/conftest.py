"""
Pytest fixtures for the test database, HTTP client and authentication.

Every test gets its own SQLite file database (foreign keys on) so that
concurrent sessions can be exercised against real constraints.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from seat_reservation.database import create_database_engine, create_session_factory, get_db
from seat_reservation.main import app
from seat_reservation.models import (
    Base,
    Event,
    EventLocation,
    EventUserAllowance,
    Seat,
    User,
    UserRole,
)
from seat_reservation.services.notification_dispatcher import NotificationDispatcher
from seat_reservation.tasks import notification_tasks
from seat_reservation.utils.auth import create_access_token


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that remembers what it was asked to send."""

    def __init__(self):
        super().__init__()
        self.confirmed: List[Dict] = []
        self.updated: List[Dict] = []

    def reservations_confirmed(self, reservations, user_id, event_id, additional_email=None):
        self.confirmed.append({
            "reservation_ids": [r.id for r in reservations],
            "user_id": user_id,
            "event_id": event_id,
            "additional_email": additional_email,
        })
        return True

    def reservations_updated(self, user_id, event_id, released, remaining_ids):
        self.updated.append({
            "user_id": user_id,
            "event_id": event_id,
            "released_ids": [r.id for r in released],
            "remaining_ids": list(remaining_ids),
        })
        return True


@pytest.fixture(autouse=True)
def queued_tasks(monkeypatch) -> List[tuple]:
    """Keep Celery from talking to a broker; record queued task calls instead."""
    calls: List[tuple] = []

    def recorder(name):
        def delay(*args, **kwargs):
            calls.append((name, args, kwargs))
        return delay

    monkeypatch.setattr(
        notification_tasks.send_reservation_confirmation_task,
        "delay",
        recorder("confirmation"),
    )
    monkeypatch.setattr(
        notification_tasks.send_reservation_update_task,
        "delay",
        recorder("update"),
    )
    return calls


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh database file, dispose afterwards."""
    test_engine = create_database_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(session: AsyncSession, *objects):
    """
    Persist fixture rows and detach them from the session.

    Detached copies keep their loaded attributes when a failed call rolls the
    shared session back, so tests can keep reading ids after a conflict.
    """
    session.add_all(objects)
    await session.commit()
    for obj in objects:
        session.expunge(obj)
    return objects[0] if len(objects) == 1 else objects


@pytest_asyncio.fixture
async def manager(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        username="manager",
        email="manager@example.com",
        first_name="Mona",
        last_name="Manager",
        role=UserRole.MANAGER,
    ))


@pytest_asyncio.fixture
async def other_manager(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        username="other-manager",
        email="other-manager@example.com",
        role=UserRole.MANAGER,
    ))


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        username="admin",
        email="admin@example.com",
        role=UserRole.ADMIN,
    ))


@pytest_asyncio.fixture
async def user_u(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        username="ursula",
        email="ursula@example.com",
        first_name="Ursula",
        last_name="User",
    ))


@pytest_asyncio.fixture
async def user_v(db_session: AsyncSession) -> User:
    return await _add(db_session, User(
        username="victor",
        email="victor@example.com",
        first_name="Victor",
        last_name="Visitor",
    ))


@pytest_asyncio.fixture
async def location(db_session: AsyncSession, manager: User) -> EventLocation:
    return await _add(db_session, EventLocation(
        name="Main Hall",
        address="1 Concert Street",
        manager_id=manager.id,
    ))


@pytest_asyncio.fixture
async def seats(db_session: AsyncSession, location: EventLocation) -> Dict[str, Seat]:
    """Ten seats of the main hall, keyed by seat number."""
    created = [
        Seat(location_id=location.id, seat_number=str(number), seat_row="A" if number <= 5 else "B")
        for number in range(1, 11)
    ]
    await _add(db_session, *created)
    return {seat.seat_number: seat for seat in created}


@pytest_asyncio.fixture
async def foreign_seat(db_session: AsyncSession, manager: User) -> Seat:
    """A seat that exists, but at a different location."""
    annex = EventLocation(name="Annex", manager_id=manager.id)
    await _add(db_session, annex)
    return await _add(db_session, Seat(location_id=annex.id, seat_number="1"))


def _event_times(now: datetime, booking_open: bool = True) -> Dict[str, datetime]:
    if booking_open:
        return {
            "booking_start_time": now - timedelta(days=1),
            "booking_deadline": now + timedelta(days=1),
            "start_time": now + timedelta(days=2),
            "end_time": now + timedelta(days=2, hours=3),
        }
    return {
        "booking_start_time": now - timedelta(days=3),
        "booking_deadline": now - timedelta(days=2),
        "start_time": now - timedelta(days=1),
        "end_time": now + timedelta(hours=3),
    }


@pytest_asyncio.fixture
async def event(db_session: AsyncSession, manager: User, location: EventLocation) -> Event:
    """An event in the main hall whose booking window is open."""
    return await _add(db_session, Event(
        name="Spring Concert",
        description="Open booking window",
        manager_id=manager.id,
        location_id=location.id,
        **_event_times(datetime.now(timezone.utc)),
    ))


@pytest_asyncio.fixture
async def closed_event(db_session: AsyncSession, manager: User, location: EventLocation) -> Event:
    """An event in the main hall whose booking deadline has passed."""
    return await _add(db_session, Event(
        name="Winter Concert",
        manager_id=manager.id,
        location_id=location.id,
        **_event_times(datetime.now(timezone.utc), booking_open=False),
    ))


@pytest.fixture
def grant(db_session: AsyncSession):
    """Create an allowance entry directly."""

    async def _grant(user: User, event: Event, count: int) -> EventUserAllowance:
        return await _add(db_session, EventUserAllowance(
            user_id=user.id,
            event_id=event.id,
            reservations_allowed_count=count,
        ))

    return _grant


def auth_headers_for(user: User) -> Dict[str, str]:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    """Build bearer headers for a user."""
    return auth_headers_for
