"""Alembic environment for the coursemart schema.

The database URL and TLS options come from ``coursemart.config.Settings``
(environment / ``.env``), falling back to ``sqlalchemy.url`` in alembic.ini
only when the settings value is empty. ``prepend_sys_path = .`` in the ini
makes the repo root importable.
"""
import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection

import coursemart.models  # noqa: F401  (registers every table on Base.metadata)
from coursemart.config import Settings
from shared.database.postgres import Base, get_async_engine

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

settings = Settings()
database_url = settings.database_url or config.get_main_option("sqlalchemy.url")

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of executing it."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = get_async_engine(
        database_url,
        ssl_mode=settings.database_ssl,
        ssl_cert=settings.database_ssl_cert,
        poolclass=pool.NullPool,
    )
    async with engine.connect() as connection:
        await connection.run_sync(_run_sync)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
