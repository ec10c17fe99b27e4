"""Short-link service layer - request-scoped facade over the engine.

Architecture Overview
==================
::
    ┌──────────────────────────────────────────────────────────────────┐
    │                       ShortLinkService                           │
    │  ┌────────────┐ ┌───────────────┐ ┌─────────────┐ ┌────────────┐ │
    │  │ QuotaGate  │ │ AliasAllocator│ │ ClickTracker│ │ Analytics  │ │
    │  └─────┬──────┘ └──────┬────────┘ └──────┬──────┘ └─────┬──────┘ │
    └────────┼───────────────┼─────────────────┼──────────────┼────────┘
             ▼               ▼                 ▼              ▼
    ┌─────────────────┐ ┌─────────────────┐ ┌─────────────────────────┐
    │ Subscriptions   │ │   LinkStore     │ │ CacheCoordinator        │
    │ (plans, read)   │ │  (PostgreSQL)   │ │ + EventBus (Redis/Kafka)│
    └─────────────────┘ └─────────────────┘ └─────────────────────────┘

Request Flow Diagrams
=====================

Link Creation Flow
------------------
::
    ┌─────────────┐
    │ POST        │
    │ /shortlinks │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Normalize   │
    │ URL         │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ QuotaGate   │
    │ .authorize  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Allocate    │
    │ alias       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Save link   │
    │ (+ QR)      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ link_created│
    │ event       │
    └─────────────┘

Details Flow
------------
::
    ┌─────────────┐
    │ GET         │
    │ /shortlinks │
    │ /:id        │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Details     │
    │ cache       │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Load    │  │ Owner   │
│ link +  │  │ check   │
│ clicks  │  └─────────┘
└────┬────┘
     ▼
┌─────────┐
│ Compute │
│ + cache │
└─────────┘

Usage Examples
=============

```python
@router.post("/shortlinks")
async def create_short_link(
    payload: ShortLinkCreate,
    service: ShortLinkService = Depends(get_link_service),
) -> ShortLinkCreateResponse:
    return await service.create_short_link(user_id, payload)
```

Every public method runs under ``asyncio.timeout(REQUEST_TIMEOUT_SECONDS)``;
a timeout cancels the in-flight store call, which rolls back, and no event
is published.
"""

import asyncio
import datetime
import time
import uuid
from typing import TYPE_CHECKING

from shortlinks.allocator import AliasAllocator
from shortlinks.analytics import AnalyticsAggregator
from shortlinks.codec import build_qr_url, build_short_url, normalize_url
from shortlinks.enums import CacheStatus, LinkEventType, RequestStatus
from shortlinks.errors import (
    AliasCollisionError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
    ShortLinkError,
    UnauthorizedError,
)
from shortlinks.metrics import DETAILS_REQUESTS_TOTAL, LINK_CREATION_DURATION, LINK_CREATION_REQUESTS_TOTAL
from shortlinks.models import QrCode, ShortLink
from shortlinks.quota import QuotaGate
from shortlinks.schemas import (
    LinkEvent,
    ShortLinkCreate,
    ShortLinkCreateResponse,
    ShortLinkDetails,
    ShortLinkSummary,
)
from shortlinks.store import LinkStore
from shortlinks.subscriptions import SqlSubscriptionDirectory
from shortlinks.tracker import ClickTracker

if TYPE_CHECKING:
    from shortlinks.dependencies import RequestContext

__all__ = ["ShortLinkService"]


class ShortLinkService:
    """Request-scoped entry point for create, resolve, details, list and delete.

    Example:
        >>> service = ShortLinkService.from_context(ctx)
        >>> created = await service.create_short_link(user_id, ShortLinkCreate(url="example.com"))
        >>> print(created.short_url)
    """

    def __init__(self, ctx: "RequestContext") -> None:
        self._settings = ctx.settings
        self._logger = ctx.logger
        self._events = ctx.events
        self._coordinator = ctx.coordinator
        self._store = LinkStore(ctx.database)
        self._quota = QuotaGate(SqlSubscriptionDirectory(ctx.database), self._store, self._logger)
        self._allocator = AliasAllocator(
            self._store,
            self._logger,
            length=self._settings.SHORT_CODE_LENGTH,
            attempts=self._settings.ALIAS_GENERATION_ATTEMPTS,
        )
        self._tracker = ClickTracker(
            self._store,
            self._coordinator,
            self._events,
            self._logger,
            failure_policy=self._settings.TRACKING_FAILURE_POLICY,
        )
        self._aggregator = AnalyticsAggregator(self._settings.BASE_URL)

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "ShortLinkService":
        return cls(ctx)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_short_link(
        self, user_id: uuid.UUID | None, request: ShortLinkCreate
    ) -> ShortLinkCreateResponse:
        """Create a short link for ``user_id``.

        Raises:
            UnauthorizedError: no caller identity.
            InvalidInputError: malformed URL or custom alias.
            UpgradeRequiredError: plan missing, over quota, or lacking a feature.
            ConflictError: custom alias already taken.
            AllocationExhaustedError: no free generated alias within the retry bound.
            PersistenceError: the save failed.
        """
        start_time = time.perf_counter()
        try:
            async with asyncio.timeout(self._settings.REQUEST_TIMEOUT_SECONDS):
                response = await self._create(user_id, request)
        except ShortLinkError as exc:
            status = RequestStatus.ERROR if isinstance(exc, PersistenceError) else RequestStatus.VALIDATION_ERROR
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)
            LINK_CREATION_REQUESTS_TOTAL.labels(status=status).inc()
            self._logger.warning(f"Create short link failed: {exc.message}")
            raise

        duration = time.perf_counter() - start_time
        LINK_CREATION_DURATION.observe(duration)
        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        self._logger.info(f"Short link created: {response.alias} in {duration:.3f}s")
        return response

    async def resolve(self, alias: str, referrer: str | None, user_agent: str | None) -> str:
        async with asyncio.timeout(self._settings.REQUEST_TIMEOUT_SECONDS):
            return await self._tracker.resolve_and_track(alias, referrer, user_agent)

    async def get_details(self, user_id: uuid.UUID | None, link_id: uuid.UUID) -> ShortLinkDetails:
        async with asyncio.timeout(self._settings.REQUEST_TIMEOUT_SECONDS):
            return await self._get_details(user_id, link_id)

    async def list_links(self, user_id: uuid.UUID | None) -> list[ShortLinkSummary]:
        if user_id is None:
            raise UnauthorizedError()
        async with asyncio.timeout(self._settings.REQUEST_TIMEOUT_SECONDS):
            links = await self._store.list_by_owner(user_id)
        return [
            ShortLinkSummary(
                id=link.id,
                alias=link.short_code,
                short_url=build_short_url(self._settings.BASE_URL, link.short_code),
                original_url=link.original_url,
                created_at=link.created_at,
                qr_enabled=link.qr_code is not None,
                clicks=link.total_clicks,
            )
            for link in links
        ]

    async def delete_link(self, user_id: uuid.UUID | None, link_id: uuid.UUID) -> None:
        if user_id is None:
            raise UnauthorizedError()
        async with asyncio.timeout(self._settings.REQUEST_TIMEOUT_SECONDS):
            link = await self._owned_link(user_id, link_id)
            await self._store.soft_delete(link)
            await self._events.publish(
                LinkEvent(
                    type=LinkEventType.LINK_DELETED,
                    owner_id=link.owner_id,
                    link_id=link.id,
                    short_code=link.short_code,
                )
            )
        self._logger.info(f"Short link soft-deleted. UserId={user_id}, LinkId={link_id}")

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _create(self, user_id: uuid.UUID | None, request: ShortLinkCreate) -> ShortLinkCreateResponse:
        if user_id is None:
            raise UnauthorizedError()

        normalized = normalize_url(request.url)
        if normalized is None:
            self._logger.warning(f"Create short link failed: invalid URL. UserId={user_id}, Url={request.url!r}")
            raise InvalidInputError("Invalid URL.")

        custom_alias = request.custom_alias if request.custom_alias and request.custom_alias.strip() else None
        self._logger.info(
            f"Creating short link. UserId={user_id}, HasCustomAlias={custom_alias is not None}, "
            f"EnableQr={request.enable_qr}"
        )

        plan = await self._quota.authorize(user_id, custom_alias is not None, request.enable_qr)
        allocation = await self._allocator.allocate(plan, custom_alias)

        short_url = build_short_url(self._settings.BASE_URL, allocation.code)
        link = ShortLink(
            id=uuid.uuid4(),
            owner_id=user_id,
            original_url=normalized,
            short_code=allocation.code,
            is_active=True,
            is_deleted=False,
            total_clicks=0,
            created_at=datetime.datetime.now(datetime.UTC),
        )
        qr_url = None
        if request.enable_qr:
            qr_url = build_qr_url(self._settings.QR_SERVICE_URL, self._settings.QR_IMAGE_SIZE, short_url)
            link.qr_code = QrCode(id=uuid.uuid4(), short_link_id=link.id, format=self._settings.QR_FORMAT, file_url=qr_url)

        try:
            await self._store.add(link)
        except AliasCollisionError as exc:
            raise self._allocator.collision_error(allocation) from exc

        await self._events.publish(
            LinkEvent(
                type=LinkEventType.LINK_CREATED,
                owner_id=user_id,
                link_id=link.id,
                short_code=link.short_code,
                original_url=link.original_url,
            )
        )
        return ShortLinkCreateResponse(id=link.id, alias=link.short_code, short_url=short_url, qr_url=qr_url)

    async def _get_details(self, user_id: uuid.UUID | None, link_id: uuid.UUID) -> ShortLinkDetails:
        if user_id is None:
            raise UnauthorizedError()

        cached = await self._coordinator.try_details(link_id)
        if cached is not None:
            DETAILS_REQUESTS_TOTAL.labels(cache_hit=CacheStatus.HIT).inc()
            if cached.owner_id != user_id:
                self._logger.warning(f"GetDetails forbidden. UserId={user_id}, LinkId={link_id}")
                raise ForbiddenError()
            self._logger.debug(f"Short link details loaded from cache. LinkId={link_id}")
            return cached.view

        DETAILS_REQUESTS_TOTAL.labels(cache_hit=CacheStatus.MISS).inc()
        link = await self._store.fetch_with_clicks(link_id)
        if link is None:
            self._logger.warning(f"GetDetails failed: link not found. LinkId={link_id}")
            raise NotFoundError()
        if link.owner_id != user_id:
            self._logger.warning(f"GetDetails forbidden. UserId={user_id}, LinkId={link_id}, Owner={link.owner_id}")
            raise ForbiddenError()

        view = self._aggregator.compute(link, list(link.clicks))
        await self._coordinator.cache_details(link.owner_id, view)
        self._logger.info(f"Short link details cached. LinkId={link_id}, TotalClicks={view.total_clicks}")
        return view

    async def _owned_link(self, user_id: uuid.UUID, link_id: uuid.UUID) -> ShortLink:
        link = await self._store.fetch_by_id(link_id)
        if link is None:
            raise NotFoundError()
        if link.owner_id != user_id:
            raise ForbiddenError()
        return link
