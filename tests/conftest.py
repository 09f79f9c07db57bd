"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from addiscare.db.engine import create_db_engine, create_tables
from addiscare.db.models.user import UserRow
from addiscare.security import create_access_token
from addiscare_client.coordinator import MutationCoordinator
from addiscare_client.store import NotificationStore
from addiscare_client.sync import SyncEngine
from helpers import FakeClock, FakeNotificationApi, make_notification, settle

USERS = [
    ("usr_admin", "Admin Abebe", "admin@addiscare.test", "admin"),
    ("usr_gov", "Gov Hana", "gov@addiscare.test", "government"),
    ("usr_rep1", "Reporter Dawit", "rep1@addiscare.test", "reporter"),
    ("usr_rep2", "Reporter Sara", "rep2@addiscare.test", "reporter"),
]


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_db_engine("sqlite+aiosqlite:///")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a test database session."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def users(db_session):
    """Seed one admin, one government officer and two reporters."""
    db_session.add_all(
        UserRow(user_id=uid, name=name, email=email, role=role) for uid, name, email, role in USERS
    )
    await db_session.commit()
    return {uid: role for uid, _, _, role in USERS}


@pytest.fixture
def app(db_engine):
    """Create a test application instance with in-memory DB."""
    from addiscare.main import create_app

    _app = create_app()
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth(users):
    """``auth("usr_rep1")`` -> Authorization header for a seeded user."""

    def _headers(user_id: str) -> dict:
        token = create_access_token(user_id, users[user_id])
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ---------------------------------------------------------------------------
# Client-side fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_api():
    return FakeNotificationApi(
        [
            make_notification("n1", read=False, minutes_ago=0),
            make_notification("n2", read=True, minutes_ago=5),
        ]
    )


@pytest.fixture
async def engine(fake_api, clock):
    """Active SyncEngine over ``fake_api`` with the first sync completed."""
    store = NotificationStore()
    sync = SyncEngine(store, fake_api, sleep=clock.sleep)
    sync.activate()
    await settle()
    yield sync
    await sync.deactivate()


@pytest.fixture
def store(engine):
    return engine.store


@pytest.fixture
def coordinator(engine, fake_api):
    return MutationCoordinator(engine.store, fake_api, engine)
