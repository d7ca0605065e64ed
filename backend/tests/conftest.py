"""Pytest configuration and fixtures for herbtrace tests.

Tests run against a throwaway SQLite file (aiosqlite) whose schema is
created from the ORM metadata, so no PostgreSQL or Redis is needed.
"""

from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

import herbtrace.models  # noqa: F401  (registers every mapper)
from herbtrace.auth.deps import Actor, Role
from herbtrace.auth.jwt import create_access_token
from herbtrace.database import Base, get_db, transaction
from herbtrace.main import app
from herbtrace.schemas.harvest import GeoLocation, HarvestCreate
from herbtrace.services.notifications import Notifier, get_notifier


# ── Notification capture ─────────────────────────────────────────

class RecordingNotifier(Notifier):
    """Collects published events instead of sending them anywhere."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    async def publish(self, event_type, payload):
        self.events.append((event_type, payload))

    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Fresh SQLite database per test, one pooled connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'herbtrace_test.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for a single test; rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests share the test session and notifier.

    Each request commits (or rolls back) like production, so events reach
    the notifier only after the commit.
    """

    async def override_get_db():
        async with transaction(db_session):
            yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Actors and tokens ────────────────────────────────────────────

@pytest.fixture
def farmer() -> Actor:
    return Actor(user_id="farmer-001", role=Role.FARMER, name="Ravi Kumar")


@pytest.fixture
def lab_tech() -> Actor:
    return Actor(user_id="lab-001", role=Role.LAB_TECHNICIAN, name="Dr. Meera Shah")


@pytest.fixture
def processor() -> Actor:
    return Actor(user_id="facility-001", role=Role.PROCESSOR, name="Green Leaf Processing")


@pytest.fixture
def manager() -> Actor:
    return Actor(user_id="manager-001", role=Role.SUPPLY_MANAGER, name="Anita Rao")


def auth_headers_for(actor: Actor) -> dict:
    token = create_access_token(actor.user_id, actor.role.value, name=actor.name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def farmer_headers(farmer) -> dict:
    return auth_headers_for(farmer)


@pytest.fixture
def lab_headers(lab_tech) -> dict:
    return auth_headers_for(lab_tech)


@pytest.fixture
def processor_headers(processor) -> dict:
    return auth_headers_for(processor)


@pytest.fixture
def manager_headers(manager) -> dict:
    return auth_headers_for(manager)


# ── Payload builders ─────────────────────────────────────────────

def harvest_payload(
    species: str = "Tulsi",
    quantity: float = 50,
    unit: str = "kg",
    variety: str | None = None,
) -> HarvestCreate:
    return HarvestCreate(
        species=species,
        variety=variety,
        quantity=quantity,
        unit=unit,
        location=GeoLocation(
            coordinates=[77.59, 12.97],
            address="Plot 14, Hosakote",
            region="Karnataka",
            country="India",
        ),
        harvest_date=datetime(2026, 10, 1, 6, 30),
    )


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
    config.addinivalue_line("markers", "workflow: Workflow engine tests")
