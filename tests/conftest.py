"""Shared test fixtures: a throwaway SQLite file database per test."""
import os

# Must be set before app.core.config is imported anywhere
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./unused-test.db")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from app.core.database.engine import build_engine, build_sessionmaker, init_db  # noqa: E402
from app.features.permissions.repository import PermissionRepository  # noqa: E402


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "rbac.db"


@pytest_asyncio.fixture
async def engine(db_path):
    engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async with build_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def repository(session):
    return PermissionRepository(session)
