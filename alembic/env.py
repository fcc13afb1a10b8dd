"""Alembic environment for the ballot schema (async SQLAlchemy engine)."""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from ballot_api.core.config import get_settings

# Importing the models registers them with Base.metadata
from ballot_api.models import Candidate, Election, User, Vote  # noqa: F401
from ballot_api.models.base import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
settings = get_settings()


def _configure_kwargs(**extra: object) -> dict[str, object]:
    """Options shared by offline and online runs."""
    kwargs: dict[str, object] = {
        "target_metadata": target_metadata,
        "compare_type": True,
        # SQLite cannot ALTER constraints in place
        "render_as_batch": settings.database_url.startswith("sqlite"),
        **extra,
    }
    if settings.database_schema is not None:
        kwargs["version_table_schema"] = settings.database_schema
    return kwargs


def run_migrations_offline() -> None:
    """Emit migration SQL without a live connection."""
    context.configure(
        **_configure_kwargs(
            url=settings.database_url,
            literal_binds=True,
            dialect_opts={"paramstyle": "named"},
        )
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Run migrations synchronously on an open connection."""
    if settings.database_schema is not None:
        connection.execute(text(f'SET search_path TO "{settings.database_schema}", public'))
    context.configure(**_configure_kwargs(connection=connection))
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Open an async engine and run migrations through ``run_sync``."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = settings.database_url
    connectable = async_engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    async with connectable.connect() as connection:
        if settings.database_schema is not None:
            await connection.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{settings.database_schema}"'))
            await connection.commit()
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
