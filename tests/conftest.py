import os

# Configure the app for tests before anything from homeview is imported
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("SEND_EMAILS", "false")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from homeview.core.security import create_access_token
from homeview.database import get_db
from homeview.db.base import Base
from homeview.main import app
from homeview.models.viewing import Viewing  # noqa: F401
from homeview.schemas.viewing import ViewingCreate
from homeview.services.notification_service import ViewingDetails, get_notification_service

NOW = datetime(2026, 3, 1, 12, 0)


class FakeNotifier:
    """Records every email instead of sending it."""

    def __init__(self):
        self.confirmations: List[ViewingDetails] = []
        self.reminders: List[ViewingDetails] = []
        self.cancellations: List[tuple] = []
        self.fail_for = set()
        self.raise_on_send = False

    def _result(self, recipient: str) -> bool:
        if self.raise_on_send:
            raise RuntimeError("mail transport exploded")
        return recipient not in self.fail_for

    def send_confirmation(self, details: ViewingDetails) -> bool:
        self.confirmations.append(details)
        return self._result(details.visitor_email)

    def send_reminder(self, details: ViewingDetails) -> bool:
        self.reminders.append(details)
        return self._result(details.visitor_email)

    def send_cancellation(self, recipient, name, property_title, viewing_date) -> bool:
        self.cancellations.append((recipient, name, property_title, viewing_date))
        return self._result(recipient)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(db, notifier):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(user_id: str = "user-1", role: str = "user") -> str:
    return create_access_token({"sub": user_id, "role": role})


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {make_token('user-1')}"}


@pytest.fixture
def other_user_headers():
    return {"Authorization": f"Bearer {make_token('user-2')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin-1', 'admin')}"}


def booking(
    property_id: int = 42,
    viewing_date: datetime = datetime(2026, 3, 1, 10, 0),
    viewing_time: str = "10:00",
    **overrides,
) -> ViewingCreate:
    data = {
        "property_id": property_id,
        "visitor_name": "Jane Doe",
        "visitor_email": "jane@example.com",
        "visitor_phone": "+15550100",
        "viewing_date": viewing_date,
        "viewing_time": viewing_time,
    }
    data.update(overrides)
    return ViewingCreate(**data)


def in_hours(hours: float, now: datetime = NOW) -> datetime:
    return now + timedelta(hours=hours)


def booking_payload(**overrides) -> dict:
    payload = {
        "property_id": 42,
        "visitor_name": "Jane Doe",
        "visitor_email": "jane@example.com",
        "visitor_phone": "+15550100",
        "viewing_date": "2026-03-01T10:00:00Z",
        "viewing_time": "10:00",
        "notes": "Interested in the garden",
    }
    payload.update(overrides)
    return payload


def book_via_api(client, headers, **overrides) -> dict:
    response = client.post("/api/viewings/", json=booking_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()
