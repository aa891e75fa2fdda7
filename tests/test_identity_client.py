import json

import httpx
import pytest

from coursemart.clients.identity_provider import IdentityProviderClient
from coursemart.exceptions import IdentityProviderError


@pytest.mark.asyncio
async def test_metadata_update_request_shape() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user_1"})

    client = IdentityProviderClient(
        "https://idp.example.com/v1/", "sk_test", transport=httpx.MockTransport(handler)
    )
    await client.update_user_metadata("user_1", {"dbId": "abc", "role": "user"})
    await client.aclose()

    [request] = seen
    assert request.method == "PATCH"
    assert str(request.url) == "https://idp.example.com/v1/users/user_1/metadata"
    assert request.headers["Authorization"] == "Bearer sk_test"
    assert json.loads(request.content) == {"public_metadata": {"dbId": "abc", "role": "user"}}


@pytest.mark.asyncio
async def test_error_status_raises() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(422, text="bad metadata"))
    client = IdentityProviderClient("https://idp.example.com/v1", "sk_test", transport=transport)

    with pytest.raises(IdentityProviderError) as exc_info:
        await client.update_user_metadata("user_1", {})
    await client.aclose()

    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_transport_failure_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = IdentityProviderClient(
        "https://idp.example.com/v1", "sk_test", transport=httpx.MockTransport(handler)
    )

    with pytest.raises(IdentityProviderError, match="unreachable"):
        await client.update_user_metadata("user_1", {})
    await client.aclose()


@pytest.mark.asyncio
async def test_get_user_returns_profile() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user_1", "username": "ada"})

    client = IdentityProviderClient(
        "https://idp.example.com/v1", "sk_test", transport=httpx.MockTransport(handler)
    )
    profile = await client.get_user("user_1")
    await client.aclose()

    assert profile == {"id": "user_1", "username": "ada"}
    [request] = seen
    assert request.method == "GET"
    assert str(request.url) == "https://idp.example.com/v1/users/user_1"


@pytest.mark.asyncio
async def test_get_user_not_found_keeps_status() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(404, json={"errors": []}))
    client = IdentityProviderClient("https://idp.example.com/v1", "sk_test", transport=transport)

    with pytest.raises(IdentityProviderError) as exc_info:
        await client.get_user("user_missing")
    await client.aclose()

    assert exc_info.value.status_code == 404
