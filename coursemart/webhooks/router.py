"""Webhooks router — HTTP layer only.

POST-only endpoints for the identity and payment providers. The raw body is
handed to the controller untouched; it is verified before it is parsed.
Any other method answers 405.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from coursemart.rate_limit import limiter
from coursemart.webhooks import controller

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/identity",
    summary="Identity provider user events",
    description="Handles ``user.created``, ``user.updated`` and ``user.deleted``. "
    "Other event types are acknowledged and ignored.",
)
@limiter.exempt
async def identity_webhook(request: Request) -> dict:
    body = await request.body()
    return await controller.receive_identity_event(
        body,
        request.headers,
        request.app.state.identity_verifier,
        request.app.state.identity_reconciler,
    )


@router.post(
    "/payment",
    summary="Payment provider events",
    description="Fulfils one-time ``payment.succeeded`` events. Replays and other "
    "event types are acknowledged without changes.",
)
@limiter.exempt
async def payment_webhook(request: Request) -> dict:
    body = await request.body()
    return await controller.receive_payment_event(
        body,
        request.headers,
        request.app.state.payment_verifier,
        request.app.state.payment_reconciler,
    )
