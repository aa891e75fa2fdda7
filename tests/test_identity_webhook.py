import json
import time
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from coursemart.models import Purchase, User
from shared.constants.roles import Role

URL = "/api/webhooks/identity"


def _user_payload(event_type: str, external_id: str = "user_2abc", **data) -> dict:
    payload = {
        "id": external_id,
        "email_addresses": [
            {"id": "idn_secondary", "email_address": "other@example.com"},
            {"id": "idn_primary", "email_address": "ada@example.com"},
        ],
        "primary_email_address_id": "idn_primary",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "username": "ada",
        "image_url": "https://img.example.com/ada.png",
        "public_metadata": {},
    }
    payload.update(data)
    return {"type": event_type, "data": payload, "object": "event"}


async def _post(async_client, app, payload: dict, *, tamper: bool = False):
    body = json.dumps(payload).encode()
    verifier = app.state.identity_verifier
    ts = int(time.time())
    msg_id = f"msg_{uuid4().hex}"
    headers = {
        verifier.id_header: msg_id,
        verifier.timestamp_header: str(ts),
        verifier.signature_header: verifier.sign(msg_id, ts, body),
        "content-type": "application/json",
    }
    if tamper:
        body = body.replace(b"Ada", b"Eve")
    return await async_client.post(URL, content=body, headers=headers)


async def _users(session_factory) -> list[User]:
    async with session_factory() as session:
        return list((await session.execute(select(User))).scalars().all())


@pytest.mark.asyncio
async def test_user_created_inserts_and_pushes_metadata(async_client, app, session_factory, identity_client) -> None:
    response = await _post(async_client, app, _user_payload("user.created"))

    assert response.status_code == 200
    assert response.json() == {"message": "Success"}
    [user] = await _users(session_factory)
    assert user.external_user_id == "user_2abc"
    assert user.email == "ada@example.com"
    assert user.name == "Ada Lovelace"
    assert user.role == Role.USER
    assert identity_client.calls == [
        ("user_2abc", {"dbId": str(user.user_id), "role": "user"})
    ]


@pytest.mark.asyncio
async def test_duplicate_user_created_is_idempotent(async_client, app, session_factory) -> None:
    first = await _post(async_client, app, _user_payload("user.created"))
    second = await _post(
        async_client, app, _user_payload("user.created", first_name=None, username="ada_l")
    )

    assert first.status_code == 200
    assert second.status_code == 200
    [user] = await _users(session_factory)
    assert user.name == "ada_l"


@pytest.mark.asyncio
async def test_user_created_without_email_is_rejected(async_client, app, session_factory, identity_client) -> None:
    payload = _user_payload("user.created", primary_email_address_id="idn_missing")

    response = await _post(async_client, app, payload)

    assert response.status_code == 400
    assert "email" in response.json()["detail"]
    assert await _users(session_factory) == []
    assert identity_client.calls == []


@pytest.mark.asyncio
async def test_user_created_without_name_is_rejected(async_client, app, session_factory) -> None:
    payload = _user_payload("user.created", first_name=None, last_name=None, username=None)

    response = await _post(async_client, app, payload)

    assert response.status_code == 400
    assert await _users(session_factory) == []


@pytest.mark.asyncio
async def test_user_updated_for_unknown_user_is_surfaced(async_client, app, session_factory, identity_client) -> None:
    response = await _post(async_client, app, _user_payload("user.updated", "user_nobody"))

    assert response.status_code == 404
    assert "user_nobody" in response.json()["detail"]
    assert await _users(session_factory) == []
    assert identity_client.calls == []


@pytest.mark.asyncio
async def test_user_updated_overwrites_profile_and_role(async_client, app, seed, session_factory, identity_client) -> None:
    existing = await seed.user("user_2abc", name="Old Name", email="old@example.com")

    response = await _post(
        async_client,
        app,
        _user_payload("user.updated", public_metadata={"role": "admin", "dbId": "ignored"}),
    )

    assert response.status_code == 200
    [user] = await _users(session_factory)
    assert user.user_id == existing.user_id
    assert user.name == "Ada Lovelace"
    assert user.email == "ada@example.com"
    assert user.role == Role.ADMIN
    assert identity_client.calls == [
        ("user_2abc", {"dbId": str(existing.user_id), "role": "admin"})
    ]


@pytest.mark.asyncio
async def test_user_deleted_redacts_and_keeps_purchases(async_client, app, seed, session_factory) -> None:
    user = await seed.user("user_2abc", image_url="https://img.example.com/me.png")
    course = await seed.course()
    product = await seed.product([course.course_id])
    async with session_factory() as session:
        session.add(
            Purchase(
                payment_session_id="pay_1",
                price_paid_in_cents=4900,
                product_details={"id": str(product.product_id), "name": product.name},
                user_id=user.user_id,
                product_id=product.product_id,
            )
        )
        await session.commit()

    response = await _post(async_client, app, {"type": "user.deleted", "data": {"id": "user_2abc", "deleted": True}})

    assert response.status_code == 200
    [row] = await _users(session_factory)
    assert row.user_id == user.user_id
    assert row.name == "Deleted User"
    assert row.email == "redacted@deleted.com"
    assert row.image_url is None
    assert row.deleted_at is not None
    async with session_factory() as session:
        purchase = (await session.execute(select(Purchase))).scalar_one()
    assert purchase.user_id == user.user_id


@pytest.mark.asyncio
async def test_user_deleted_for_unknown_user_is_noop(async_client, app) -> None:
    response = await _post(async_client, app, {"type": "user.deleted", "data": {"id": "user_gone", "deleted": True}})

    assert response.status_code == 200
    assert response.json() == {"message": "Success"}


@pytest.mark.asyncio
async def test_user_created_after_delete_keeps_row_redacted(async_client, app, session_factory, identity_client) -> None:
    await _post(async_client, app, _user_payload("user.created"))
    await _post(async_client, app, {"type": "user.deleted", "data": {"id": "user_2abc", "deleted": True}})

    response = await _post(async_client, app, _user_payload("user.created"))

    assert response.status_code == 200
    [row] = await _users(session_factory)
    assert row.deleted_at is not None
    assert row.name == "Deleted User"
    assert row.email == "redacted@deleted.com"
    assert row.image_url is None
    assert len(identity_client.calls) == 1


@pytest.mark.asyncio
async def test_bad_signature_is_rejected_before_any_write(async_client, app, session_factory, identity_client) -> None:
    response = await _post(async_client, app, _user_payload("user.created"), tamper=True)

    assert response.status_code == 400
    assert await _users(session_factory) == []
    assert identity_client.calls == []


@pytest.mark.asyncio
async def test_missing_verification_headers_are_rejected(async_client, session_factory) -> None:
    response = await async_client.post(URL, json=_user_payload("user.created"))

    assert response.status_code == 400
    assert await _users(session_factory) == []


@pytest.mark.asyncio
async def test_unhandled_event_type_is_acknowledged(async_client, app) -> None:
    response = await _post(async_client, app, {"type": "session.created", "data": {"id": "sess_1"}})

    assert response.status_code == 200
    assert response.json() == {"message": "Success"}


@pytest.mark.asyncio
async def test_identity_provider_failure_is_a_bad_gateway(async_client, app, session_factory, identity_client) -> None:
    identity_client.fail_with = 503

    response = await _post(async_client, app, _user_payload("user.created"))

    assert response.status_code == 502
    # The local write is committed; the provider's redelivery upserts again.
    assert len(await _users(session_factory)) == 1


@pytest.mark.asyncio
async def test_get_is_not_allowed(async_client) -> None:
    response = await async_client.get(URL)
    assert response.status_code == 405


@pytest.mark.asyncio
async def test_user_count_after_mixed_events(async_client, app, session_factory) -> None:
    await _post(async_client, app, _user_payload("user.created", "user_a"))
    await _post(async_client, app, _user_payload("user.created", "user_b"))
    await _post(async_client, app, {"type": "user.deleted", "data": {"id": "user_a", "deleted": True}})

    async with session_factory() as session:
        live = (
            await session.execute(select(func.count()).select_from(User).where(User.deleted_at.is_(None)))
        ).scalar_one()
    assert live == 1
