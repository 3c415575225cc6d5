"""
Shared pytest fixtures.

Engine tests run against FakeGoalRepository (no database). Repository
tests use a temporary SQLite file through aiosqlite, so no Postgres
is required.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import app.models  # noqa: F401  (registers every table on Base.metadata)
from app.core.dependency import get_goal_loader
from app.db.base import Base, get_db
from app.main import app
from app.services.goal_loader import GoalDataLoader

from factories import NOW, FakeGoalRepository

SQLITE_URL = "sqlite+aiosqlite://"


async def override_get_db():
    # Fresh engine per request: TestClient runs requests on its own event loop.
    engine = create_async_engine(SQLITE_URL)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as session:
            yield session
    finally:
        await engine.dispose()


@pytest.fixture()
def repo():
    return FakeGoalRepository()


@pytest.fixture()
def loader(repo):
    return GoalDataLoader(repo, clock=lambda: NOW)


@pytest.fixture()
def client(loader):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_goal_loader] = lambda: loader
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
async def session_factory(tmp_path):
    # File-backed so concurrent sessions get their own connections.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'growth.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()
