"""
Shared fixtures.

Environment is pinned before any campusconnect module is imported: the
package reads its settings at import time.
"""
import os

os.environ.setdefault("CAMPUS_DB", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.pop("REDIS_URL", None)
os.environ.pop("RABBIT_URL", None)

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from campusconnect.db import get_session, init_db
from campusconnect.locks import SlotLocks
from campusconnect.notifier import ChangeNotifier
from campusconnect.rbac import Actor
from campusconnect.service import BookingService


class FakeClock:
    """Deterministic clock; every reading is one second after the last."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


def make_engine(path):
    # NullPool: no connection outlives the event loop that opened it
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


def hourly(day="2024-05-01", start="09:00", end="10:00") -> dict:
    return {"date": day, "startTime": start, "endTime": end}


def stay(check_in="2024-05-01", check_out="2024-05-03") -> dict:
    return {"checkInDate": check_in, "checkOutDate": check_out}


EVENT_ATTRS = {"eventName": "Faculty seminar", "numAttendees": 40}
STAY_ATTRS = {
    "guestName": "Dr. Rao",
    "guestDesignation": "Professor",
    "organization": "IIT Madras",
    "purpose": "Guest lecture",
    "numRooms": 1,
    "numGuests": 2,
}


@pytest.fixture
def faculty_a():
    return Actor(email="a@nec.edu.in")


@pytest.fixture
def faculty_b():
    return Actor(email="b@nec.edu.in")


@pytest.fixture
def admin():
    return Actor(email="office@nec.edu.in", is_admin=True)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def mock_publisher():
    publisher = MagicMock()
    publisher.enabled = True
    publisher.publish = AsyncMock(return_value=None)
    return publisher


@pytest.fixture
def mock_mailer():
    mailer = MagicMock()
    mailer.send_decision_email = AsyncMock(return_value=True)
    return mailer


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = make_engine(tmp_path / "bookings.db")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessions(engine):
    return get_session(engine)


@pytest.fixture
def notifier():
    return ChangeNotifier(queue_size=10)


@pytest.fixture
def svc(sessions, notifier, mock_publisher, mock_mailer, clock):
    return BookingService(
        sessions,
        notifier=notifier,
        locks=SlotLocks(timeout=5),
        publisher=mock_publisher,
        mailer=mock_mailer,
        clock=clock,
    )


@pytest.fixture
def sync_service(tmp_path, mock_publisher, mock_mailer, clock):
    """Service for TestClient-driven tests, which run their own event loop."""
    eng = make_engine(tmp_path / "http.db")
    asyncio.run(init_db(eng))
    service = BookingService(
        get_session(eng),
        notifier=ChangeNotifier(queue_size=10),
        locks=SlotLocks(timeout=5),
        publisher=mock_publisher,
        mailer=mock_mailer,
        clock=clock,
    )
    yield service
    asyncio.run(eng.dispose())
