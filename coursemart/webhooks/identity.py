"""Identity-provider event reconciliation.

Keeps the local ``users`` table in step with the provider. Every handler is
safe to re-apply: ``user.created`` upserts by external id, ``user.updated``
overwrites, ``user.deleted`` is a no-op once the row is gone. A deleted
user stays deleted: later creates for the same external id are ignored.

``sync_user`` runs the same upsert on demand, from the provider's API
instead of a webhook body.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursemart.database import transaction
from coursemart.exceptions import ConflictError, NotFoundError, ValidationError
from coursemart.models.user import User
from coursemart.users import service as user_service
from coursemart.webhooks.schemas import (
    IdentityEvent,
    IdentityUserData,
    Outcome,
    UserCreatedEvent,
    UserDeletedEvent,
    UserUpdatedEvent,
    parse_identity_user,
)
from shared.constants.roles import Role

logger = logging.getLogger(__name__)


class IdentityDirectory(Protocol):
    async def get_user(self, external_user_id: str) -> dict[str, Any]: ...

    async def update_user_metadata(
        self, external_user_id: str, public_metadata: dict[str, Any]
    ) -> None: ...


def _profile(data: IdentityUserData) -> tuple[str, str]:
    email = data.primary_email
    if not email:
        raise ValidationError(f"Identity user {data.id} has no primary email address.")
    name = data.display_name
    if not name:
        raise ValidationError(f"Identity user {data.id} has no name or username.")
    return email, name


def _role_from_metadata(data: IdentityUserData) -> Role | None:
    raw = data.public_metadata.get("role")
    if raw is None:
        return None
    try:
        return Role(raw)
    except ValueError:
        logger.warning("Ignoring unknown role %r for identity user %s", raw, data.id)
        return None


class IdentityEventReconciler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identity_client: IdentityDirectory,
    ) -> None:
        self._session_factory = session_factory
        self._identity_client = identity_client
        self._handlers: dict[str, Callable[[Any], Awaitable[Outcome]]] = {
            "user.created": self._on_created,
            "user.updated": self._on_updated,
            "user.deleted": self._on_deleted,
        }

    async def handle(self, event: IdentityEvent) -> Outcome:
        logger.info("Reconciling identity event %s", event.type)
        return await self._handlers[event.type](event)

    async def _on_created(self, event: UserCreatedEvent) -> Outcome:
        email, name = _profile(event.data)
        async with transaction(self._session_factory) as db:
            user = await user_service.upsert_user(
                db,
                external_user_id=event.data.id,
                email=email,
                name=name,
                image_url=event.data.image_url,
            )
        if user is None:
            logger.info("user.created for deleted identity user %s, ignoring", event.data.id)
            return Outcome.IGNORED
        logger.info("Upserted user %s for identity user %s", user.user_id, event.data.id)
        await self._push_identity(event.data.id, user)
        return Outcome.APPLIED

    async def _on_updated(self, event: UserUpdatedEvent) -> Outcome:
        email, name = _profile(event.data)
        async with transaction(self._session_factory) as db:
            try:
                user = await user_service.update_user_by_external_id(
                    db,
                    event.data.id,
                    email=email,
                    name=name,
                    image_url=event.data.image_url,
                    role=_role_from_metadata(event.data),
                )
            except NotFoundError:
                logger.error("user.updated for unknown identity user %s", event.data.id)
                raise
        await self._push_identity(event.data.id, user)
        return Outcome.APPLIED

    async def _on_deleted(self, event: UserDeletedEvent) -> Outcome:
        if not event.data.id:
            logger.warning("user.deleted event without a user id, ignoring")
            return Outcome.IGNORED
        async with transaction(self._session_factory) as db:
            user = await user_service.soft_delete_user(db, event.data.id)
        if user is None:
            logger.info("user.deleted for %s: no live user, nothing to do", event.data.id)
            return Outcome.IGNORED
        logger.info("Soft-deleted user %s (identity user %s)", user.user_id, event.data.id)
        return Outcome.APPLIED

    async def sync_user(self, external_user_id: str) -> User:
        """Fetch the user from the provider, upsert it locally and push the ids back."""
        data = parse_identity_user(await self._identity_client.get_user(external_user_id))
        email, name = _profile(data)
        async with transaction(self._session_factory) as db:
            user = await user_service.upsert_user(
                db,
                external_user_id=data.id,
                email=email,
                name=name,
                image_url=data.image_url,
                role=_role_from_metadata(data) or Role.USER,
            )
        if user is None:
            raise ConflictError(f"Identity user {external_user_id} has been deleted.")
        logger.info("Synced user %s for identity user %s", user.user_id, data.id)
        await self._push_identity(data.id, user)
        return user

    async def _push_identity(self, external_user_id: str, user: User) -> None:
        await self._identity_client.update_user_metadata(
            external_user_id,
            {"dbId": str(user.user_id), "role": Role(user.role).value},
        )
