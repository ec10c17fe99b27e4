"""ShortLinkService tests for paths that are hard to reach over HTTP."""

import asyncio
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import add_subscription
from shortlinks.dependencies import RequestContext, ServiceManager
from shortlinks.enums import LinkEventType
from shortlinks.errors import (
    AliasCollisionError,
    AllocationExhaustedError,
    ConflictError,
    UnauthorizedError,
    UpgradeRequiredError,
)
from shortlinks.schemas import ShortLinkCreate
from shortlinks.service import ShortLinkService


@pytest.fixture
def service(db_session: AsyncSession, services: ServiceManager) -> ShortLinkService:
    return ShortLinkService.from_context(RequestContext(database=db_session, service_manager=services))


@pytest.mark.asyncio
async def test_custom_alias_lost_insert_race_is_conflict(
    service: ShortLinkService, db_session: AsyncSession, user_id: uuid.UUID
) -> None:
    await add_subscription(db_session, user_id)

    with patch("shortlinks.store.LinkStore.add", AsyncMock(side_effect=AliasCollisionError())):
        with pytest.raises(ConflictError):
            await service.create_short_link(user_id, ShortLinkCreate(url="example.com", custom_alias="race"))


@pytest.mark.asyncio
async def test_generated_alias_lost_insert_race_is_exhausted(
    service: ShortLinkService, db_session: AsyncSession, user_id: uuid.UUID
) -> None:
    await add_subscription(db_session, user_id)

    with patch("shortlinks.store.LinkStore.add", AsyncMock(side_effect=AliasCollisionError())):
        with pytest.raises(AllocationExhaustedError):
            await service.create_short_link(user_id, ShortLinkCreate(url="example.com"))


@pytest.mark.asyncio
async def test_create_publishes_link_created(
    service: ShortLinkService, db_session: AsyncSession, services: ServiceManager, user_id: uuid.UUID
) -> None:
    await add_subscription(db_session, user_id)
    received = []

    async def capture(event) -> None:
        received.append(event)

    services.events.subscribe_all(capture)
    created = await service.create_short_link(user_id, ShortLinkCreate(url="example.com"))

    assert [event.type for event in received] == [LinkEventType.LINK_CREATED]
    assert received[0].link_id == created.id
    assert received[0].owner_id == user_id


@pytest.mark.asyncio
async def test_failed_create_publishes_nothing(
    service: ShortLinkService, services: ServiceManager, user_id: uuid.UUID
) -> None:
    handler = AsyncMock()
    services.events.subscribe_all(handler)

    with pytest.raises(UpgradeRequiredError):
        await service.create_short_link(user_id, ShortLinkCreate(url="example.com"))

    handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_list_requires_identity(service: ShortLinkService) -> None:
    with pytest.raises(UnauthorizedError):
        await service.list_links(None)


@pytest.mark.asyncio
async def test_operation_deadline(service: ShortLinkService, services: ServiceManager) -> None:
    services.settings.REQUEST_TIMEOUT_SECONDS = 0.01

    async def slow_fetch(*args, **kwargs):
        await asyncio.sleep(1)

    with patch("shortlinks.store.LinkStore.fetch_by_code", side_effect=slow_fetch):
        with pytest.raises(TimeoutError):
            await service.resolve("docs", None, None)
