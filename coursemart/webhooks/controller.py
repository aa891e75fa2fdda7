"""Webhooks controller — verify, parse, reconcile, then map the result to a status code.

Providers redeliver on any non-2xx answer, so everything that is safe to
acknowledge (ignored event types, replays) answers 200.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from fastapi import HTTPException, status

from coursemart.exceptions import (
    AppError,
    AuthenticationError,
    ConflictError,
    IdentityProviderError,
    NotFoundError,
    ValidationError,
)
from coursemart.webhooks.identity import IdentityEventReconciler
from coursemart.webhooks.payments import PaymentEventReconciler
from coursemart.webhooks.schemas import (
    Outcome,
    parse_identity_event,
    parse_payment_event,
)
from coursemart.webhooks.signature import WebhookVerifier

logger = logging.getLogger(__name__)

SUCCESS = {"message": "Success"}


def _handle_domain_error(exc: Exception, source: str) -> HTTPException:
    if isinstance(exc, (AuthenticationError, ValidationError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, IdentityProviderError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    logger.exception("Unhandled error while processing %s webhook", source)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def _receive(
    source: str,
    body: bytes,
    headers: Mapping[str, str],
    verifier: WebhookVerifier,
    parse: Callable[[bytes], Any],
    reconcile: Callable[[Any], Any],
) -> dict:
    try:
        verifier.verify(body, headers)
    except (AuthenticationError, ValidationError) as exc:
        logger.warning("Rejected %s webhook: %s", source, exc)
        raise _handle_domain_error(exc, source) from exc

    try:
        event = parse(body)
        if event is None:
            logger.info("Ignoring unhandled %s webhook event", source)
            return SUCCESS
        outcome: Outcome = await reconcile(event)
    except ValidationError as exc:
        logger.warning("Invalid %s webhook: %s", source, exc)
        raise _handle_domain_error(exc, source) from exc
    except AppError as exc:
        logger.error("%s webhook failed: %s", source, exc)
        raise _handle_domain_error(exc, source) from exc
    except Exception as exc:
        raise _handle_domain_error(exc, source) from exc

    logger.info("%s webhook %s: %s", source, event.type, outcome.value)
    return SUCCESS


async def receive_identity_event(
    body: bytes,
    headers: Mapping[str, str],
    verifier: WebhookVerifier,
    reconciler: IdentityEventReconciler,
) -> dict:
    return await _receive("identity", body, headers, verifier, parse_identity_event, reconciler.handle)


async def receive_payment_event(
    body: bytes,
    headers: Mapping[str, str],
    verifier: WebhookVerifier,
    reconciler: PaymentEventReconciler,
) -> dict:
    return await _receive("payment", body, headers, verifier, parse_payment_event, reconciler.handle)
