"""
Shared fixtures for the tutorbook test-suite.

Every test gets a fresh in-memory SQLite schema. A single connection is
shared (StaticPool) so sessions opened by worker threads see the same data.
Time never comes from the wall clock: services receive a FrozenClock.
"""

from typing import Iterator, Optional

from fastapi import Request
from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.factories.scheduling_builders import SchedulingBuilder
from tests.helpers.frozen_clock import NOW, FrozenClock
from tutorbook.api.dependencies import get_availability_service, get_clock, get_db
from tutorbook.core.enums import PrincipalRole
from tutorbook.database import Base
from tutorbook.main import create_app
import tutorbook.models  # noqa: F401  (register tables)
from tutorbook.monitoring.time_check_sink import TimeCheckSink
from tutorbook.principal import Principal
from tutorbook.services.availability_service import AvailabilityService

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture(scope="function")
def db() -> Iterator[Session]:
    """Create a new database session (and schema) for each test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def builder(db: Session) -> SchedulingBuilder:
    return SchedulingBuilder(db)


@pytest.fixture
def sink() -> TimeCheckSink:
    return TimeCheckSink(20)


@pytest.fixture
def principal_holder() -> dict:
    """Mutable slot the test client middleware reads the principal from."""
    return {"principal": Principal(id="admin-1", role=PrincipalRole.ADMIN)}


@pytest.fixture
def client(
    db: Session, clock: FrozenClock, sink: TimeCheckSink, principal_holder: dict
) -> Iterator[TestClient]:
    """Test client on the test database, with an upstream-auth stand-in."""
    app = create_app()
    app.state.time_check_sink = sink

    @app.middleware("http")
    async def attach_principal(request: Request, call_next):  # type: ignore[no-untyped-def]
        principal: Optional[Principal] = principal_holder.get("principal")
        if principal is not None:
            request.state.principal = principal
        return await call_next(request)

    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_availability_service] = lambda: AvailabilityService(
        db, clock, session_factory=TestSessionLocal, max_workers=1
    )

    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
