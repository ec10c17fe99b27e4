"""Redirect endpoint behavior tests."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import auth
from shortlinks.cache import MemoryCache
from shortlinks.coordinator import resolve_key
from shortlinks.models import ShortLink


async def create_link(client: AsyncClient, user: uuid.UUID, **body) -> dict:
    payload = {"url": "https://example.com/landing?utm=1"}
    payload.update(body)
    response = await client.post("/shortlinks", json=payload, headers=auth(user))
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_redirect_valid_alias(client: AsyncClient, pro_user: uuid.UUID) -> None:
    created = await create_link(client, pro_user)

    response = await client.get(f"/{created['alias']}", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "https://example.com/landing?utm=1"


@pytest.mark.asyncio
async def test_redirect_unknown_alias(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_redirect_malformed_alias_is_not_found(client: AsyncClient) -> None:
    response = await client.get("/ab", follow_redirects=False)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_redirect_is_case_sensitive(client: AsyncClient, pro_user: uuid.UUID) -> None:
    await create_link(client, pro_user, customAlias="Docs")

    assert (await client.get("/Docs", follow_redirects=False)).status_code == 307
    assert (await client.get("/docs", follow_redirects=False)).status_code == 404


@pytest.mark.asyncio
async def test_create_primes_resolve_cache(
    client: AsyncClient, pro_user: uuid.UUID, memory_cache: MemoryCache
) -> None:
    created = await create_link(client, pro_user, customAlias="primed")

    assert await memory_cache.get(resolve_key("primed")) is not None
    assert created["alias"] == "primed"


@pytest.mark.asyncio
async def test_redirect_increments_clicks(client: AsyncClient, pro_user: uuid.UUID) -> None:
    created = await create_link(client, pro_user)

    for _ in range(3):
        await client.get(f"/{created['alias']}", follow_redirects=False, headers={"Referer": "https://t.co/x"})

    details = await client.get(f"/shortlinks/{created['id']}", headers=auth(pro_user))
    assert details.status_code == 200
    data = details.json()
    assert data["totalClicks"] == 3
    assert len(data["recentEvents"]) == 3
    assert data["topReferrers"] == [{"referrer": "t.co", "count": 3}]


@pytest.mark.asyncio
async def test_redirect_inactive_link_is_not_found(
    client: AsyncClient, pro_user: uuid.UUID, db_session: AsyncSession, memory_cache: MemoryCache
) -> None:
    created = await create_link(client, pro_user, customAlias="paused")
    await db_session.execute(update(ShortLink).where(ShortLink.short_code == "paused").values(is_active=False))
    await db_session.commit()

    # the primed resolve entry is still there; the guarded increment catches it
    assert await memory_cache.get(resolve_key("paused")) is not None
    response = await client.get("/paused", follow_redirects=False)

    assert response.status_code == 404
    assert await memory_cache.get(resolve_key("paused")) is None
    details = await client.get(f"/shortlinks/{created['id']}", headers=auth(pro_user))
    assert details.json()["totalClicks"] == 0


@pytest.mark.asyncio
async def test_redirect_after_delete_is_not_found(client: AsyncClient, pro_user: uuid.UUID) -> None:
    created = await create_link(client, pro_user, customAlias="bye")

    assert (await client.get("/bye", follow_redirects=False)).status_code == 307
    deleted = await client.delete(f"/shortlinks/{created['id']}", headers=auth(pro_user))
    assert deleted.status_code == 204

    assert (await client.get("/bye", follow_redirects=False)).status_code == 404


@pytest.mark.asyncio
async def test_deleted_alias_can_be_claimed_again(client: AsyncClient, pro_user: uuid.UUID) -> None:
    first = await create_link(client, pro_user, customAlias="again")
    await client.delete(f"/shortlinks/{first['id']}", headers=auth(pro_user))

    second = await create_link(client, pro_user, url="https://example.org", customAlias="again")

    assert second["id"] != first["id"]
    response = await client.get("/again", follow_redirects=False)
    assert response.headers["location"] == "https://example.org"
