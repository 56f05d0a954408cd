"""
Shared fixtures: a throwaway SQLite document store and a temporary blob directory
"""

import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.dml import Update
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.models import EventRecord, UserRecord  # noqa: F401  registers the tables
from app.schemas.event import EventCreate
from app.services.event_service import EventLifecycleService
from app.services.storage import LocalBlobStore
from app.services.user_service import Identity, UserService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_frameit.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def session_factory():
    return TestingSessionLocal

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(root=str(tmp_path / "blobs"), base_url="http://test")

@pytest.fixture
def event_service(blob_store):
    return EventLifecycleService(blob_store)

@pytest.fixture
def make_user(db_session):
    """Provision a user document the way the auth dependency does"""
    def _make(user_id: str, email: str = None, display_name: str = None):
        identity = Identity(
            id=user_id,
            display_name=display_name or user_id.title(),
            email=email or f"{user_id}@example.com",
        )
        UserService.ensure_user(db_session, identity)
        return identity
    return _make

def future_start(days: int = 30) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)

@pytest.fixture
def sample_event(db_session, event_service, make_user):
    """An upcoming event created by user 'host'"""
    make_user("host", email="host@example.com", display_name="Hannah Host")
    return event_service.create_event(
        db_session,
        EventCreate(
            name="Summer Party",
            location="Rooftop Garden",
            start_time=future_start(),
            tags="party, summer, party",
        ),
        creator_id="host",
    )

class FakeClock:
    """Manually advanced clock in seconds"""
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

@pytest.fixture
def clock():
    return FakeClock()

class LockedOnWriteSession:
    """Session wrapper whose UPDATE statements fail the way a busy sqlite file does"""
    def __init__(self, session, message: str = "database is locked"):
        self.session = session
        self.message = message
        self.update_attempts = 0

    def execute(self, statement, *args, **kwargs):
        if isinstance(statement, Update):
            self.update_attempts += 1
            raise OperationalError(str(statement), {}, Exception(self.message))
        return self.session.execute(statement, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.session, name)
