import base64
import hashlib
import hmac
import time

import pytest

from coursemart.exceptions import AuthenticationError, ValidationError
from coursemart.webhooks.signature import WebhookVerifier

SECRET = "whsec_" + base64.b64encode(b"signature-test-secret").decode()
FIXED_TS = 1_700_000_000
BODY = b'{"type":"user.created","data":{"id":"user_1"}}'


def _headers(
    verifier: WebhookVerifier, body: bytes = BODY, *, ts: int | None = None, msg_id: str = "msg_1"
) -> dict:
    ts = int(time.time()) if ts is None else ts
    return {
        verifier.id_header: msg_id,
        verifier.timestamp_header: str(ts),
        verifier.signature_header: verifier.sign(msg_id, ts, body),
    }


def test_sign_matches_standard_webhooks_scheme() -> None:
    verifier = WebhookVerifier(SECRET)
    expected = base64.b64encode(
        hmac.new(b"signature-test-secret", b"msg_1.1700000000." + BODY, hashlib.sha256).digest()
    ).decode()
    assert verifier.sign("msg_1", FIXED_TS, BODY) == f"v1,{expected}"


def test_valid_signature_passes() -> None:
    verifier = WebhookVerifier(SECRET)
    verifier.verify(BODY, _headers(verifier))


def test_header_prefix_names_headers() -> None:
    verifier = WebhookVerifier(SECRET, header_prefix="svix")
    headers = _headers(verifier)
    assert set(headers) == {"svix-id", "svix-timestamp", "svix-signature"}
    verifier.verify(BODY, headers)


def test_header_names_are_case_insensitive() -> None:
    verifier = WebhookVerifier(SECRET)
    headers = {key.title(): value for key, value in _headers(verifier).items()}
    verifier.verify(BODY, headers)


def test_any_matching_entry_is_accepted() -> None:
    verifier = WebhookVerifier(SECRET)
    headers = _headers(verifier)
    headers[verifier.signature_header] = "v1,bm90LWl0 v2,ignored " + headers[verifier.signature_header]
    verifier.verify(BODY, headers)


def test_tampered_body_is_rejected() -> None:
    verifier = WebhookVerifier(SECRET)
    headers = _headers(verifier)
    with pytest.raises(AuthenticationError, match="No matching signature"):
        verifier.verify(BODY.replace(b"user_1", b"user_2"), headers)


def test_reserialized_body_is_rejected() -> None:
    verifier = WebhookVerifier(SECRET)
    headers = _headers(verifier)
    with pytest.raises(AuthenticationError):
        verifier.verify(b'{"type": "user.created", "data": {"id": "user_1"}}', headers)


def test_wrong_secret_is_rejected() -> None:
    signer = WebhookVerifier("whsec_" + base64.b64encode(b"someone-else").decode())
    verifier = WebhookVerifier(SECRET)
    with pytest.raises(AuthenticationError):
        verifier.verify(BODY, _headers(signer))


@pytest.mark.parametrize("missing", ["webhook-id", "webhook-timestamp", "webhook-signature"])
def test_missing_header_is_rejected(missing: str) -> None:
    verifier = WebhookVerifier(SECRET)
    headers = _headers(verifier)
    del headers[missing]
    with pytest.raises(AuthenticationError, match="Missing"):
        verifier.verify(BODY, headers)


@pytest.mark.parametrize(("skew", "reason"), [(-600, "too old"), (600, "too new")])
def test_timestamp_outside_window_is_rejected(skew: int, reason: str) -> None:
    verifier = WebhookVerifier(SECRET)
    headers = _headers(verifier, ts=int(time.time()) + skew)
    with pytest.raises(AuthenticationError, match=reason):
        verifier.verify(BODY, headers)


def test_non_numeric_timestamp_is_rejected() -> None:
    verifier = WebhookVerifier(SECRET)
    headers = _headers(verifier)
    headers[verifier.timestamp_header] = "yesterday"
    with pytest.raises(AuthenticationError):
        verifier.verify(BODY, headers)


def test_signature_entry_without_version_is_rejected() -> None:
    verifier = WebhookVerifier(SECRET)
    headers = _headers(verifier)
    headers[verifier.signature_header] = "garbage"
    with pytest.raises(AuthenticationError, match="Malformed"):
        verifier.verify(BODY, headers)


def test_signed_body_that_is_not_json_is_a_validation_error() -> None:
    verifier = WebhookVerifier(SECRET)
    body = b"not json"
    with pytest.raises(ValidationError):
        verifier.verify(body, _headers(verifier, body))


def test_unconfigured_secret_rejects_everything() -> None:
    verifier = WebhookVerifier("")
    with pytest.raises(AuthenticationError, match="not configured"):
        verifier.verify(BODY, {})


def test_secret_must_be_base64() -> None:
    with pytest.raises(ValueError):
        WebhookVerifier("whsec_abc")
