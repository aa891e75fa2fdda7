from shared.database.postgres import (
    AsyncSessionFactory,
    Base,
    get_async_session_factory,
    get_session,
    insert_for,
)

__all__ = [
    "AsyncSessionFactory",
    "Base",
    "get_async_session_factory",
    "get_session",
    "insert_for",
]
