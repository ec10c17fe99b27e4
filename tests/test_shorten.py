"""Short link creation endpoint tests."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import TEST_BASE_URL, add_subscription, auth
from shortlinks.codec import ALPHABET
from shortlinks.enums import ErrorKind


@pytest.mark.asyncio
async def test_shorten_generates_alias(client: AsyncClient, pro_user: uuid.UUID) -> None:
    response = await client.post("/shortlinks", json={"url": "example.com"}, headers=auth(pro_user))

    assert response.status_code == 201
    data = response.json()
    assert len(data["alias"]) == 7
    assert all(c in ALPHABET for c in data["alias"])
    assert data["shortUrl"] == f"{TEST_BASE_URL}/{data['alias']}"
    assert data["qrUrl"] is None
    uuid.UUID(data["id"])


@pytest.mark.asyncio
async def test_shorten_custom_alias_with_qr(client: AsyncClient, pro_user: uuid.UUID) -> None:
    response = await client.post(
        "/shortlinks",
        json={"url": "example.com", "customAlias": "docs", "enableQr": True},
        headers=auth(pro_user),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["alias"] == "docs"
    assert data["shortUrl"] == f"{TEST_BASE_URL}/docs"
    assert data["qrUrl"].startswith("https://api.qrserver.com/v1/create-qr-code/?size=220x220&data=")
    assert "https%3A%2F%2Fsho.rt%2Fdocs" in data["qrUrl"]


@pytest.mark.asyncio
async def test_shorten_accepts_snake_case_body(client: AsyncClient, pro_user: uuid.UUID) -> None:
    response = await client.post(
        "/shortlinks",
        json={"url": "https://example.com", "custom_alias": "snake", "enable_qr": False},
        headers=auth(pro_user),
    )
    assert response.status_code == 201
    assert response.json()["alias"] == "snake"


@pytest.mark.asyncio
async def test_shorten_blank_custom_alias_is_ignored(client: AsyncClient, db_session: AsyncSession) -> None:
    user_id = uuid.uuid4()
    await add_subscription(db_session, user_id, custom_alias_enabled=False)

    response = await client.post("/shortlinks", json={"url": "example.com", "customAlias": "  "}, headers=auth(user_id))

    assert response.status_code == 201
    assert len(response.json()["alias"]) == 7


@pytest.mark.asyncio
async def test_shorten_requires_identity(client: AsyncClient) -> None:
    response = await client.post("/shortlinks", json={"url": "example.com"})

    assert response.status_code == 401
    assert response.json()["detail"]["kind"] == ErrorKind.UNAUTHORIZED.value


@pytest.mark.asyncio
async def test_shorten_rejects_malformed_identity(client: AsyncClient) -> None:
    response = await client.post("/shortlinks", json={"url": "example.com"}, headers={"X-User-Id": "nobody"})
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["", "   ", "ftp://example.com", "not a url"])
async def test_shorten_invalid_url(client: AsyncClient, pro_user: uuid.UUID, url: str) -> None:
    response = await client.post("/shortlinks", json={"url": url}, headers=auth(pro_user))

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["kind"] == ErrorKind.INVALID_INPUT.value
    assert detail["upgradeRequired"] is False


@pytest.mark.asyncio
async def test_shorten_invalid_custom_alias(client: AsyncClient, pro_user: uuid.UUID) -> None:
    response = await client.post(
        "/shortlinks", json={"url": "example.com", "customAlias": "no way!"}, headers=auth(pro_user)
    )

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Custom alias must be 3–32 chars (letters, numbers, - or _)."


@pytest.mark.asyncio
async def test_shorten_duplicate_custom_alias(client: AsyncClient, pro_user: uuid.UUID) -> None:
    first = await client.post("/shortlinks", json={"url": "example.com", "customAlias": "taken"}, headers=auth(pro_user))
    second = await client.post(
        "/shortlinks", json={"url": "example.org", "customAlias": "taken"}, headers=auth(pro_user)
    )

    assert first.status_code == 201
    assert second.status_code == 400
    detail = second.json()["detail"]
    assert detail["kind"] == ErrorKind.CONFLICT.value
    assert detail["message"] == "Custom alias is already taken."


@pytest.mark.asyncio
async def test_shorten_without_plan(client: AsyncClient, user_id: uuid.UUID) -> None:
    response = await client.post("/shortlinks", json={"url": "example.com"}, headers=auth(user_id))

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["kind"] == ErrorKind.UPGRADE_REQUIRED.value
    assert detail["upgradeRequired"] is True
    assert detail["message"] == "Upgrade required: No active plan."


@pytest.mark.asyncio
async def test_shorten_inactive_subscription_counts_as_no_plan(
    client: AsyncClient, db_session: AsyncSession, user_id: uuid.UUID
) -> None:
    await add_subscription(db_session, user_id, active=False)

    response = await client.post("/shortlinks", json={"url": "example.com"}, headers=auth(user_id))

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Upgrade required: No active plan."


@pytest.mark.asyncio
async def test_shorten_monthly_limit(client: AsyncClient, db_session: AsyncSession, user_id: uuid.UUID) -> None:
    await add_subscription(db_session, user_id, max_links_per_month=2)

    for _ in range(2):
        response = await client.post("/shortlinks", json={"url": "example.com"}, headers=auth(user_id))
        assert response.status_code == 201

    response = await client.post("/shortlinks", json={"url": "example.com"}, headers=auth(user_id))
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == (
        "Upgrade required: You reached the monthly limit (2 links/month)."
    )


@pytest.mark.asyncio
async def test_deleting_does_not_restore_quota(
    client: AsyncClient, db_session: AsyncSession, user_id: uuid.UUID
) -> None:
    await add_subscription(db_session, user_id, max_links_per_month=1)
    created = await client.post("/shortlinks", json={"url": "example.com"}, headers=auth(user_id))
    deleted = await client.delete(f"/shortlinks/{created.json()['id']}", headers=auth(user_id))

    response = await client.post("/shortlinks", json={"url": "example.com"}, headers=auth(user_id))

    assert deleted.status_code == 204
    assert response.status_code == 400
    assert "monthly limit" in response.json()["detail"]["message"]


@pytest.mark.asyncio
async def test_shorten_custom_alias_not_on_plan(
    client: AsyncClient, db_session: AsyncSession, user_id: uuid.UUID
) -> None:
    await add_subscription(db_session, user_id, custom_alias_enabled=False, qr_enabled=False)

    custom = await client.post("/shortlinks", json={"url": "example.com", "customAlias": "mine"}, headers=auth(user_id))
    qr = await client.post("/shortlinks", json={"url": "example.com", "enableQr": True}, headers=auth(user_id))

    assert custom.json()["detail"]["message"] == "Upgrade required: Custom alias is not available on your plan."
    assert qr.json()["detail"]["message"] == "Upgrade required: QR codes are not available on your plan."


@pytest.mark.asyncio
async def test_shorten_reserved_alias(client: AsyncClient, pro_user: uuid.UUID) -> None:
    response = await client.post(
        "/shortlinks", json={"url": "example.com", "customAlias": "health"}, headers=auth(pro_user)
    )
    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == ErrorKind.INVALID_INPUT.value


@pytest.mark.asyncio
async def test_list_links_newest_first(client: AsyncClient, pro_user: uuid.UUID) -> None:
    await client.post("/shortlinks", json={"url": "example.com", "customAlias": "first"}, headers=auth(pro_user))
    await client.post(
        "/shortlinks", json={"url": "example.org", "customAlias": "second", "enableQr": True}, headers=auth(pro_user)
    )
    await client.post("/shortlinks", json={"url": "example.net"}, headers=auth(uuid.uuid4()))

    response = await client.get("/shortlinks", headers=auth(pro_user))

    assert response.status_code == 200
    links = response.json()
    assert [link["alias"] for link in links] == ["second", "first"]
    assert links[0]["qrEnabled"] is True
    assert links[0]["originalUrl"] == "https://example.org"
    assert links[1]["clicks"] == 0
