"""
Identity provider (Clerk) backend API client — async httpx REST calls.

Two calls are needed here. After a user row is written locally, its
``user_id`` and role are pushed into the provider's public metadata so
session tokens carry the local id. The sync endpoint also reads a user's
profile back when the webhook for it has not arrived yet.

Unlike fire-and-forget notification clients, failures raise
``IdentityProviderError``: the webhook must answer non-2xx so the provider
redelivers the event.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from coursemart.exceptions import IdentityProviderError

logger = logging.getLogger(__name__)


class IdentityProviderClient:
    def __init__(
        self,
        base_url: str,
        secret_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {secret_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def get_user(self, external_user_id: str) -> dict[str, Any]:
        try:
            r = await self._client.get(f"/users/{external_user_id}")
        except httpx.HTTPError as exc:
            logger.error("Identity provider user lookup failed for %s: %s", external_user_id, exc)
            raise IdentityProviderError("Identity provider is unreachable.") from exc
        if r.status_code >= 400:
            logger.error(
                "Identity provider user lookup error %s for %s: %s",
                r.status_code, external_user_id, r.text[:300],
            )
            raise IdentityProviderError(
                "Identity provider rejected the user lookup.", status_code=r.status_code
            )
        return r.json()

    async def update_user_metadata(
        self, external_user_id: str, public_metadata: dict[str, Any]
    ) -> None:
        try:
            r = await self._client.patch(
                f"/users/{external_user_id}/metadata",
                json={"public_metadata": public_metadata},
            )
        except httpx.HTTPError as exc:
            logger.error("Identity provider metadata update failed for %s: %s", external_user_id, exc)
            raise IdentityProviderError("Identity provider is unreachable.") from exc
        if r.status_code >= 400:
            logger.error(
                "Identity provider metadata update error %s for %s: %s",
                r.status_code, external_user_id, r.text[:300],
            )
            raise IdentityProviderError(
                "Identity provider rejected the metadata update.", status_code=r.status_code
            )

    async def aclose(self) -> None:
        await self._client.aclose()
