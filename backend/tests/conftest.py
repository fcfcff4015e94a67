"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.background import drain
from backend.app.models.base_location import BaseLocation
from backend.app.models.enums import SettingName
from backend.app.models.user import AppUser, AppUserRole
from backend.app.schemas.auth import CurrentUser
from backend.app.services.container import Services
from backend.app.services.external import MockDocumentSource
from backend.app.services.settings_cache import SettingsCache
from backend.tests.factories import ALL_USERS, RecordingStatusSync, RecordingSmsSender, FakeEtaProvider

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Apply overrides once for the session."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    app.dependency_overrides = {}

@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    await drain()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
def settings_cache():
    return SettingsCache({
        SettingName.COOL_OFF_SECONDS_BTWN_DIFF_ROUTE_SCANS.value: "120",
        SettingName.MINS_BETWEEN_LOCATION_HEARTBEATS.value: "5",
        SettingName.UPDATE_DOC_STATUS_TO_ERP.value: "true",
        SettingName.SEND_TRACKING_SMS.value: "true",
    })

@pytest.fixture
def mock_source():
    return MockDocumentSource()

@pytest.fixture
def status_sync():
    return RecordingStatusSync()

@pytest.fixture
def sms_sender():
    return RecordingSmsSender()

@pytest.fixture
def eta_provider():
    return FakeEtaProvider()

@pytest.fixture
def session_factory():
    return TestingSessionLocal

@pytest.fixture
def services(settings_cache, mock_source, status_sync, sms_sender, eta_provider):
    """Service container wired to fakes, also installed on the app."""
    container = Services(
        settings_cache=settings_cache,
        mock_source=mock_source,
        document_source=mock_source,
        status_sync=status_sync,
        sms_sender=sms_sender,
        eta_provider=eta_provider,
        session_factory=TestingSessionLocal,
    )
    original = app.state.services
    app.state.services = container
    yield container
    app.state.services = original

@pytest.fixture
async def users(db_session):
    """Base locations LOC-A / LOC-B and one user per role, as CurrentUser objects."""
    db_session.add_all([
        BaseLocation(id="LOC-A", name="Kochi Warehouse"),
        BaseLocation(id="LOC-B", name="Thodupuzha Warehouse"),
    ])
    await db_session.flush()

    resolved = {}
    for key, (mobile, name, location, roles) in ALL_USERS.items():
        db_session.add(AppUser(id=mobile, person_name=name, base_location_id=location, vehicle_nbr="KL-07-1234", is_active=True))
        await db_session.flush()
        for role in roles:
            db_session.add(AppUserRole(app_user_id=mobile, role_name=role))
        resolved[key] = CurrentUser(id=mobile, username=name, base_location_id=location, roles=roles)
    await db_session.commit()
    return resolved

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session
