"""Process-wide async engine and session factory.

The API lifespan calls :func:`init_engine` once; CLI commands that run outside
it use :func:`standalone_session` instead.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Failures that roll back cleanly; callers may retry the whole transaction.
TRANSIENT_DB_ERRORS: tuple[type[Exception], ...] = (OperationalError, InterfaceError, PoolTimeoutError)

_POOL_DEFAULTS: dict[str, Any] = {"pool_size": 10, "max_overflow": 5, "pool_pre_ping": True}

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        msg = "Database engine not initialized. Call init_engine() first."
        raise RuntimeError(msg)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        msg = "Session factory not initialized. Call init_engine() first."
        raise RuntimeError(msg)
    return _session_factory


def _with_search_path(kwargs: dict[str, Any], schema: str) -> None:
    connect_args = kwargs.get("connect_args", {})
    if not isinstance(connect_args, dict):
        msg = "connect_args must be a dict"
        raise TypeError(msg)
    # asyncpg applies server_settings on every new connection
    kwargs["connect_args"] = {**connect_args, "server_settings": {"search_path": f"{schema},public"}}


def init_engine(database_url: str, *, schema: str | None = None, **kwargs: Any) -> AsyncEngine:
    """Create the engine and session factory, replacing any previous pair.

    Args:
        database_url: Async SQLAlchemy URL.
        schema: Postgres schema to search before ``public``.
        **kwargs: Passed through to ``create_async_engine``. Pool sizing
            defaults apply only to pooled (non-SQLite) engines.
    """
    global _engine, _session_factory  # noqa: PLW0603
    if schema is not None:
        _with_search_path(kwargs, schema)
    pooled = kwargs.get("poolclass") is not StaticPool and not database_url.startswith("sqlite")
    if pooled:
        kwargs = {**_POOL_DEFAULTS, **kwargs}
    _engine = create_async_engine(database_url, **kwargs)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


async def dispose_engine() -> None:
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def standalone_session(database_url: str, *, schema: str | None = None) -> AsyncGenerator[AsyncSession]:
    """Yield one session on a short-lived engine, disposing it on exit."""
    init_engine(database_url, schema=schema, echo=False)
    try:
        async with get_session_factory()() as session:
            yield session
    finally:
        await dispose_engine()
