import os

# Settings are read at import time by several modules
os.environ["TESTING"] = "1"
os.environ.setdefault("TASK_RECOVERY_ENABLED", "false")

import dotenv  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import pillcount.database as _db_mod  # noqa: E402
from pillcount.database import Base  # noqa: E402
from pillcount.database import make_engine  # noqa: E402
from pillcount.database import make_sessionmaker  # noqa: E402
from pillcount.dependencies import reset_services  # noqa: E402
from pillcount.events import EventBus  # noqa: E402
from pillcount.events import publisher as _publisher  # noqa: E402
from pillcount.models.models import CacheEntry  # noqa: E402,F401
from pillcount.models.models import DeferredTask  # noqa: E402,F401
from pillcount.services.memory_store import InMemoryCacheStore  # noqa: E402
from pillcount.services.memory_store import InMemoryTaskStore  # noqa: E402

dotenv.load_dotenv()


# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# Create test engine and session factory
test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool for in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

# Point the application at the test database
_db_mod.default_engine = test_engine
_db_mod.default_session_factory = TestingSessionLocal

# Import app after all engine setup is in place
from pillcount.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def _forget_event_tasks():
    """Fire-and-forget tasks belong to the loop of the test that created them."""
    yield
    _publisher._active_tasks.clear()


@pytest.fixture
def db_session():
    """
    Creates a fresh database for each test, then tears it down after the test is done.
    """
    # Create the tables
    Base.metadata.create_all(bind=test_engine)

    # Create a session
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Drop all tables after the test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def test_session_factory(db_session):
    """
    Returns the session factory bound to the test database.
    Used for stores that open their own sessions.
    """
    return TestingSessionLocal


@pytest.fixture
def client():
    """
    Create a FastAPI TestClient against a fresh database.

    The client is entered as a context manager so the lifespan runs (the
    deferred worker subscribes) and background tasks keep a live loop.
    """
    Base.metadata.create_all(bind=test_engine)
    reset_services()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}
    reset_services()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def bus():
    """An isolated event bus so unit tests never touch the global one."""
    return EventBus()


@pytest.fixture
def cache():
    return InMemoryCacheStore()


@pytest.fixture
def task_store(bus):
    return InMemoryTaskStore(bus)
