"""Shared fixtures.

Every test gets its own SQLite database file so concurrent-writer tests see
real lock contention and tests never share state.
"""

import os
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock


# The application engine is created at import time; point it somewhere harmless first
_BOOTSTRAP_DIR = Path(tempfile.mkdtemp(prefix="starpath-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_BOOTSTRAP_DIR / 'bootstrap.db'}"
os.environ["ENVIRONMENT"] = "test"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from starpath.database.engine import create_app_engine
from starpath.database.init import init_database
from starpath.database.session import get_db_session, make_session_maker
from starpath.dependencies import get_moderation_gateway
from starpath.main import app
from starpath.middleware.security import limiter


@pytest_asyncio.fixture
async def engine(tmp_path: Path):
    test_engine = create_app_engine(f"sqlite+aiosqlite:///{tmp_path / 'starpath.db'}")
    await init_database(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_maker(engine)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def moderation() -> AsyncMock:
    """Moderation gateway that has approved nothing yet."""
    gateway = AsyncMock()
    gateway.is_submission_approved = AsyncMock(return_value=False)
    return gateway


@pytest_asyncio.fixture
async def client(session_maker, moderation):
    async def override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_moderation_gateway] = lambda: moderation
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
