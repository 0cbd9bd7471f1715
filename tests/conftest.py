"""Shared fixtures for the notification core test-suite."""

from __future__ import annotations

import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_DB_PATH = Path(tempfile.gettempdir()) / f"medical-notifications-{os.getpid()}.db"

# Configure the application before the ``app`` package reads its settings.
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["APP_TIMEZONE"] = "UTC"
for _name in ("SENDGRID_API_KEY", "SENDGRID_SENDER", "SUPPORT_TEAM_EMAIL"):
    os.environ.pop(_name, None)

from app.domain.entities import User  # noqa: E402
from app.infrastructure import database  # noqa: E402
from app.infrastructure.notifications import message_broker, session_registry  # noqa: E402
from app.infrastructure.repositories import UserRepository  # noqa: E402
from app.infrastructure.security import create_access_token  # noqa: E402


def at(hour: int, minute: int = 0) -> datetime:
    """Return a fixed UTC instant at ``hour:minute`` for quiet-hour checks."""

    return datetime(2026, 3, 4, hour, minute, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_realtime_state():
    """Start every test with an empty broker and session registry."""

    message_broker.clear()
    session_registry.clear()
    yield
    message_broker.clear()
    session_registry.clear()


@pytest.fixture()
def db_session():
    """Yield a session bound to freshly created tables."""

    database.Base.metadata.drop_all(bind=database.engine, checkfirst=True)
    database.initialize_database()
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()
        database.Base.metadata.drop_all(bind=database.engine, checkfirst=True)


@pytest.fixture()
def make_user(db_session):
    """Persist users with sensible defaults for the fields a test omits."""

    repository = UserRepository(db_session)
    counter = iter(range(1, 10_000))

    def _make_user(**overrides) -> User:
        index = next(counter)
        values = {
            "id": None,
            "username": f"patient{index}",
            "email": f"patient{index}@example.com",
            "first_name": "Pat",
            "last_name": f"Ient{index}",
        }
        values.update(overrides)
        return repository.create(User(**values))

    return _make_user


@pytest.fixture()
def token_for():
    """Return a helper issuing access tokens for a username."""

    def _token_for(username: str) -> str:
        return create_access_token({"sub": username})

    return _token_for
