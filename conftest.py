import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from taskboard.config import RATE_LIMITS
from taskboard.database import get_db
from taskboard.dependencies import get_rate_limiter
from taskboard.main import app
from taskboard.rate_limiter import RateLimiter
from taskboard.services.dashboard import Dashboard
from taskboard.services.tasks import TaskService
from taskboard.validation import TaskValidator

START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture()
def clock(monkeypatch):
    fake = FakeClock()
    # Store timestamps follow the same clock so ordering is deterministic.
    monkeypatch.setattr("taskboard.store.tasks.now_ms", fake)
    return fake


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def limiter(clock):
    return RateLimiter(RATE_LIMITS, clock=clock)


@pytest.fixture()
def service(session, limiter, clock):
    return TaskService(session, limiter, TaskValidator(clock=clock))


@pytest.fixture()
def dashboard(session):
    return Dashboard(session)


@pytest.fixture()
def client(engine, limiter):
    def override_get_db():
        with Session(engine) as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
