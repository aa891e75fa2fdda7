import ssl
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

AsyncSessionFactory = async_sessionmaker[AsyncSession]


def ssl_connect_args(mode: str, cert_path: str = "") -> dict[str, Any]:
    """asyncpg ``connect_args`` for the given SSL mode.

    ``""``/``disable`` means plain TCP. With a readable CA bundle the server
    certificate is verified; otherwise the connection is encrypted only.
    """
    mode = mode.lower()
    if mode in ("", "disable"):
        return {}
    if cert_path and Path(cert_path).is_file():
        return {"ssl": ssl.create_default_context(cafile=cert_path)}
    return {"ssl": "require"}


def get_async_engine(
    database_url: str,
    *,
    ssl_mode: str = "",
    ssl_cert: str = "",
    pool_size: int = 5,
    max_overflow: int = 10,
    **kwargs: Any,
) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # SQLite pools don't accept sizing arguments
        return create_async_engine(database_url, **kwargs)

    connect_args = {**ssl_connect_args(ssl_mode, ssl_cert), **kwargs.pop("connect_args", {})}
    if "poolclass" not in kwargs:
        # Sizing applies to the default QueuePool only (NullPool rejects it)
        kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600)
    return create_async_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=connect_args,
        **kwargs,
    )


def get_async_session_factory(
    database_url: str,
    *,
    expire_on_commit: bool = False,
    **engine_kwargs: Any,
) -> AsyncSessionFactory:
    return async_sessionmaker(
        get_async_engine(database_url, **engine_kwargs),
        class_=AsyncSession,
        expire_on_commit=expire_on_commit,
        autoflush=False,
    )


async def get_session(session_factory: AsyncSessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: commit after the handler returns, roll back if it raised."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def insert_for(session: AsyncSession, table: Any) -> Any:
    """Return a dialect-specific INSERT supporting ``on_conflict_*`` clauses.

    PostgreSQL in production, SQLite in the test suite. Both expose the same
    ``on_conflict_do_nothing`` / ``on_conflict_do_update`` API.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(table)
    if dialect == "sqlite":
        return sqlite_insert(table)
    raise NotImplementedError(f"Upserts are not supported on dialect {dialect!r}")
