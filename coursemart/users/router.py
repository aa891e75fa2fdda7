"""Users router — pull the signed-in subject's profile from the identity provider."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from coursemart.dependencies import get_identity_subject
from coursemart.users import controller
from coursemart.users.schemas import UserResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "/sync",
    response_model=UserResponse,
    summary="Create or refresh the local row for the signed-in user",
    description="Reads the profile from the identity provider instead of waiting for "
    "its ``user.created`` webhook, then writes the local id back into its metadata.",
)
async def sync_current_user(
    request: Request,
    subject: str = Depends(get_identity_subject),
) -> UserResponse:
    return await controller.sync_current_user(request.app.state.identity_reconciler, subject)
