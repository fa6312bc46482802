"""Test configuration and fixtures."""

import os

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment variables BEFORE importing the package
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"

from gated_calc.config import get_settings
from gated_calc.database.migrations import create_tables, seed_roles
from gated_calc.models.role import RoleName
from gated_calc.security.permissions import PermissionChecker
from gated_calc.services.gateway import OperationGateway
from gated_calc.services.history import HistoryRecorder
from gated_calc.services.quota import QuotaTracker
from gated_calc.services.users import UserDirectory

TEST_PASSWORD = "correct-horse-battery"

DPIS = {
    RoleName.BASIC: "1000000000001",
    RoleName.PREMIUM: "1000000000002",
    RoleName.ADMIN: "1000000000003",
}


def _sessionmaker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def settings():
    """Settings as seen by the package under test."""
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """A file-backed SQLite engine so concurrent sessions use real locking."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gated_calc.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Session factory on a database with tables and seeded roles."""
    await create_tables(engine)
    factory = _sessionmaker(engine)
    await seed_roles(factory)
    return factory


@pytest_asyncio.fixture
async def broken_session_factory(tmp_path):
    """Session factory on a database without tables: every query fails."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    yield _sessionmaker(engine)
    await engine.dispose()


@pytest.fixture
def directory(session_factory, settings) -> UserDirectory:
    return UserDirectory(session_factory, settings=settings)


@pytest.fixture
def permission_checker(session_factory) -> PermissionChecker:
    return PermissionChecker(session_factory)


@pytest.fixture
def quota_tracker(session_factory) -> QuotaTracker:
    return QuotaTracker(session_factory)


@pytest.fixture
def history_recorder(session_factory) -> HistoryRecorder:
    return HistoryRecorder(session_factory)


@pytest.fixture
def gateway(permission_checker, quota_tracker, history_recorder) -> OperationGateway:
    return OperationGateway(permission_checker, quota_tracker, history_recorder)


async def register_and_login(directory: UserDirectory, role: RoleName):
    await directory.register(
        DPIS[role],
        f"{role.value.title()} User",
        f"{role.value}@example.com",
        TEST_PASSWORD,
        role.value,
    )
    return await directory.authenticate(DPIS[role], TEST_PASSWORD)


@pytest_asyncio.fixture
async def basic_session(directory):
    return await register_and_login(directory, RoleName.BASIC)


@pytest_asyncio.fixture
async def premium_session(directory):
    return await register_and_login(directory, RoleName.PREMIUM)


@pytest_asyncio.fixture
async def admin_session(directory):
    return await register_and_login(directory, RoleName.ADMIN)
