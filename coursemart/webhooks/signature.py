"""Webhook signature verification.

Both providers sign with the Standard Webhooks scheme, which the ``svix``
library verifies: the identity provider sends ``svix-*`` headers, the
payment provider ``webhook-*`` headers, and ``Webhook.verify`` accepts
either family. Verification runs on the raw request bytes, before the body
is parsed into an event, and rejects timestamps more than five minutes off.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime, timezone

from svix.webhooks import Webhook, WebhookVerificationError

from coursemart.exceptions import AuthenticationError, ValidationError


class WebhookVerifier:
    """Wraps ``svix.webhooks.Webhook`` and raises the service's own errors.

    ``header_prefix`` only names the headers ``sign`` callers should send;
    verification looks at both header families.
    """

    def __init__(self, secret: str, *, header_prefix: str = "webhook") -> None:
        # An unset secret leaves the endpoint closed instead of failing startup
        self._webhook = Webhook(secret) if secret else None
        self.id_header = f"{header_prefix}-id"
        self.timestamp_header = f"{header_prefix}-timestamp"
        self.signature_header = f"{header_prefix}-signature"

    def sign(self, msg_id: str, timestamp: int, body: bytes) -> str:
        """Signature header value for ``body``, as the provider would send it."""
        if self._webhook is None:
            raise AuthenticationError("Webhook secret is not configured.")
        sent_at = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        return self._webhook.sign(msg_id, sent_at, body.decode())

    def verify(self, body: bytes, headers: Mapping[str, str]) -> None:
        """Raise ``AuthenticationError`` unless ``body`` carries a valid, fresh signature.

        A correctly signed body that is not JSON is a ``ValidationError``.
        """
        if self._webhook is None:
            raise AuthenticationError("Webhook secret is not configured.")
        try:
            self._webhook.verify(body, dict(headers))
        except WebhookVerificationError as exc:
            raise AuthenticationError(f"Webhook verification failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ValidationError("Webhook body is not valid JSON.") from exc
        except ValueError as exc:
            # Undecodable base64 signature entries or a non UTF-8 body
            raise AuthenticationError("Malformed webhook signature.") from exc
