"""Alembic environment for the keyadmin schema.

Migrations run against the same DATABASE_URL the service uses, read through
keyadmin.config, so ``alembic upgrade head`` needs no separate connection
settings. Online runs go through the async engine (asyncpg in production,
aiosqlite locally); offline runs emit SQL for review.

The CHECK constraint on the ratelimit_* columns and the audit_logs foreign
keys live in the migrations; autogenerate compares against
keyadmin.models so drift in either shows up as a diff.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from keyadmin.config import get_settings
from keyadmin.database import Base
import keyadmin.models  # noqa: F401 - registers workspaces, key_auth, keys, audit_logs

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

config.set_main_option("sqlalchemy.url", get_settings().database_url)


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Render the key tables as SQL without a database connection."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Apply pending revisions over a single async connection."""
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
