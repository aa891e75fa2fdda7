"""User service — local mirror of identity-provider subjects.

Rows are written only from identity webhooks and the sync endpoint. Deletion
is a soft delete that redacts PII and keeps the row so purchases still
reference a valid user.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.exceptions import NotFoundError
from coursemart.models.user import User
from shared.constants.roles import Role
from shared.database.postgres import insert_for

logger = logging.getLogger(__name__)

REDACTED_NAME = "Deleted User"
REDACTED_EMAIL = "redacted@deleted.com"


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None or user.is_deleted:
        raise NotFoundError("User", user_id)
    return user


async def get_user_by_external_id(db: AsyncSession, external_user_id: str) -> User | None:
    result = await db.execute(
        select(User).where(
            User.external_user_id == external_user_id,
            User.deleted_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def upsert_user(
    db: AsyncSession,
    *,
    external_user_id: str,
    email: str,
    name: str,
    image_url: str | None,
    role: Role = Role.USER,
) -> User | None:
    """Insert the user, or refresh its profile when the external id already exists.

    ``role`` only applies to new rows; an existing user's role is kept.
    A soft-deleted row is left redacted and ``None`` is returned.
    """
    now = datetime.now(timezone.utc)
    stmt = insert_for(db, User).values(
        user_id=uuid4(),
        external_user_id=external_user_id,
        email=email,
        name=name,
        image_url=image_url,
        role=role,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[User.external_user_id],
        set_={
            "email": stmt.excluded.email,
            "name": stmt.excluded.name,
            "image_url": stmt.excluded.image_url,
            "updated_at": now,
        },
        where=User.deleted_at.is_(None),
    ).returning(User.user_id)
    user_id = (await db.execute(stmt)).scalar_one_or_none()
    if user_id is None:
        return None
    user = await db.get(User, user_id, populate_existing=True)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def update_user_by_external_id(
    db: AsyncSession,
    external_user_id: str,
    *,
    email: str,
    name: str,
    image_url: str | None,
    role: Role | None = None,
) -> User:
    result = await db.execute(
        select(User)
        .where(User.external_user_id == external_user_id, User.deleted_at.is_(None))
        .with_for_update()
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", external_user_id)

    user.email = email
    user.name = name
    user.image_url = image_url
    if role is not None:
        user.role = role
    await db.flush()
    return user


async def soft_delete_user(db: AsyncSession, external_user_id: str) -> User | None:
    """Redact and tombstone the user. Returns ``None`` when there is nothing to delete."""
    user = await get_user_by_external_id(db, external_user_id)
    if user is None:
        return None

    user.name = REDACTED_NAME
    user.email = REDACTED_EMAIL
    user.image_url = None
    user.deleted_at = datetime.now(timezone.utc)
    await db.flush()
    return user
