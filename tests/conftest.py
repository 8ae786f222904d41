"""Shared pytest fixtures for the HTTP-level tests.

Provides:
- db_engine: in-memory SQLite async engine with all tables
- session_factory: sessions bound to that engine
- demo: the seeded demo hierarchy (ids of users, workspace, space, board, task)
- client: AsyncClient with get_db overridden to use the test engine
- auth_headers: bearer headers for a demo user by name
"""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskhub.core.database.base import Base
from taskhub.core.database.engine import get_db, import_models
from taskhub.features.users.auth import create_access_token
from taskhub.features.workspaces.seed import seed_demo_hierarchy


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
    import_models()
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def demo(session_factory):
    async with session_factory() as db:
        return await seed_demo_hierarchy(db)


@pytest.fixture
async def client(session_factory):
    """AsyncClient with get_db overridden to use the test engine."""
    from taskhub.main import app
    from taskhub.features.workspaces.routes import transfer_rate_limit

    async def _override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_db
    await transfer_rate_limit.limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(demo):
    def _headers(name: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(demo.users[name])}"}
    return _headers
