import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursemart.config import Settings
from coursemart.exceptions import AppError, TransactionAbortError
from shared.database.postgres import get_async_session_factory, get_session

# Import all models so SQLAlchemy's Base.metadata is populated.
# Required for Alembic autogenerate and create_all().
import coursemart.models  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(settings: Settings) -> async_sessionmaker[AsyncSession]:
    return get_async_session_factory(
        settings.database_url,
        expire_on_commit=False,
        ssl_mode=settings.database_ssl,
        ssl_cert=settings.database_ssl_cert,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        raise RuntimeError("Database not initialized")
    return factory


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session(get_session_factory(request)):
        yield session


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session inside one transaction.

    Commits when the block exits normally and rolls back on every other exit.
    Domain errors propagate unchanged; database errors surface as
    ``TransactionAbortError``.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except AppError:
            await session.rollback()
            raise
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("Transaction aborted")
            raise TransactionAbortError("The operation could not be completed.") from exc
        except BaseException:
            await session.rollback()
            raise
