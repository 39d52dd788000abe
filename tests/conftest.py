import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from dotenv import load_dotenv

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["SMTP_HOST"] = "localhost"

# .env files never override the values above
backend_dir = Path(__file__).parent.parent
for env_file in (backend_dir / ".env", backend_dir.parent / ".env"):
    if env_file.exists():
        load_dotenv(env_file, override=False)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.core.activities.service import ActivityService  # noqa: E402
from app.core.auth import create_access_token  # noqa: E402
from app.core.db.deps import get_db  # noqa: E402
from app.core.db.session import Base, build_engine  # noqa: E402
from app.core.notifications import ActivityNotificationService  # noqa: E402
from app.main import app  # noqa: E402



class FakeClock:
    """Controllable UTC time source for the lifecycle service."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture
def test_engine(tmp_path):
    """SQLite database file per test; each session gets its own connection."""
    engine = build_engine(f"sqlite:///{tmp_path / 'activities.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db_session(session_factory):
    """Create test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def organization_id():
    return uuid4()


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def notifier():
    """Notification service double that records calls."""
    mock = MagicMock(spec=ActivityNotificationService)
    mock.notify = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def service(db_session, notifier, clock):
    return ActivityService(db_session, notifier=notifier, clock=clock)


@pytest.fixture
def client(session_factory):
    """Test client whose requests use the per-test database."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(user_id, organization_id, roles):
    token = create_access_token(
        {
            "sub": str(user_id),
            "organization_id": str(organization_id),
            "roles": roles,
        }
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(user_id, organization_id):
    """Headers for a user allowed to view and manage activities."""
    return _headers(user_id, organization_id, ["admin"])


@pytest.fixture
def viewer_headers(organization_id):
    """Headers for a read-only user of the same organization."""
    return _headers(uuid4(), organization_id, ["viewer"])
