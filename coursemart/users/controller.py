"""Users controller — maps reconciler results to HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from coursemart.exceptions import ConflictError, IdentityProviderError, ValidationError
from coursemart.users.schemas import UserResponse
from coursemart.webhooks.identity import IdentityEventReconciler

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, IdentityProviderError):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Identity user not found.")
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    logger.exception("Unhandled users error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def sync_current_user(reconciler: IdentityEventReconciler, external_user_id: str) -> UserResponse:
    try:
        user = await reconciler.sync_user(external_user_id)
        return UserResponse.model_validate(user)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
