"""Integration fixtures: file-backed SQLite store and an ASGI client bound to it."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ballot_api.core.config import Settings, get_settings
from ballot_api.core.dependencies import get_async_session
from ballot_api.main import create_app
from ballot_api.models.base import Base


@pytest.fixture
def now() -> datetime:
    """Endpoints evaluate lifecycle against the wall clock."""
    return datetime.now(UTC)


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """A per-test SQLite file so each request gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ballots.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def app(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> FastAPI:
    """Application wired to the test store and settings."""
    application = create_app(settings)

    async def _session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_async_session] = _session
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

