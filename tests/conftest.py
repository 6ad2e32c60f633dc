"""Shared test fixtures.

Every test that touches storage gets its own SQLite file (via aiosqlite), so
concurrent sessions contend on real locks and version checks.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dancehub.achievements.activity import ensure_user
from dancehub.achievements.catalog import seed_achievements
from dancehub.config import Settings
from dancehub.database import close_db, get_engine, get_session_factory, init_db
from dancehub.db.base import Base


@pytest.fixture
def settings() -> Settings:
    """Engine settings tuned for tests: no backoff sleeps, no Redis."""
    return Settings(
        redis_enabled=False,
        award_max_attempts=8,
        award_retry_backoff_seconds=0.0,
        notification_max_attempts=2,
        io_timeout_seconds=30.0,
        sweep_concurrency=4,
    )


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[None, None]:
    """Fresh schema with the built-in catalog seeded."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'dancehub.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with get_session_factory()() as session:
        await seed_achievements(session)
    yield
    await close_db()


@pytest_asyncio.fixture
async def session_factory(database) -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user_id(db_session: AsyncSession) -> str:
    """A known user with no activity yet."""
    await ensure_user(db_session, "dancer-1")
    await db_session.commit()
    return "dancer-1"


@pytest_asyncio.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the per-test database."""
    from dancehub.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
