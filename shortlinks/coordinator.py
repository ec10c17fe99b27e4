"""Cache-aside coordination for resolve results and details views.

Two independent entry families live in the injected cache:

::
    shortlink:resolve:{alias}    → CachedResolvePayload   (600 s absolute, 120 s sliding)
    shortlink:details:{link_id}  → CachedDetailsPayload   (30 s absolute)

Flow Diagram — event driven invalidation
========================================
::
    link_created   ──► prime_resolve(alias)
    click_recorded ──► invalidate_details(link_id) + prime_resolve(alias)
    link_deleted   ──► evict_resolve(alias) + invalidate_details(link_id)

Key Behaviours
===============
- Nothing is invalidated on a schedule; entries only go away by TTL or by
  the hooks above.
- Miss-then-populate is not deduplicated; two concurrent misses both compute.
- No consistency is promised between the two families.
- A payload that fails to deserialize is dropped and treated as a miss.
"""

import logging
import uuid

from pydantic import ValidationError

from shortlinks.cache import CachePort
from shortlinks.config import Settings
from shortlinks.enums import LinkEventType
from shortlinks.events import EventBus
from shortlinks.schemas import CachedDetailsPayload, CachedResolvePayload, LinkEvent, ShortLinkDetails

__all__ = ["CacheCoordinator", "resolve_key", "details_key"]


def resolve_key(alias: str) -> str:
    return f"shortlink:resolve:{alias}"


def details_key(link_id: uuid.UUID) -> str:
    return f"shortlink:details:{link_id}"


class CacheCoordinator:
    def __init__(
        self,
        cache: CachePort,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._cache = cache
        self._resolve_ttl = settings.RESOLVE_CACHE_TTL_SECONDS
        self._resolve_sliding = settings.RESOLVE_CACHE_SLIDING_SECONDS
        self._details_ttl = settings.DETAILS_CACHE_TTL_SECONDS
        self._logger = logger or logging.getLogger("shortlinks")

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(LinkEventType.LINK_CREATED, self._on_link_created)
        bus.subscribe(LinkEventType.CLICK_RECORDED, self._on_click_recorded)
        bus.subscribe(LinkEventType.LINK_DELETED, self._on_link_deleted)

    # ------------------------------------------------------------------
    # resolve:{alias}
    # ------------------------------------------------------------------

    async def try_resolve(self, alias: str) -> CachedResolvePayload | None:
        key = resolve_key(alias)
        raw = await self._cache.get(key)
        if raw is None:
            self._logger.debug(f"Resolve cache miss. Alias={alias}")
            return None
        try:
            payload = CachedResolvePayload.model_validate_json(raw)
        except ValidationError as exc:
            self._logger.error(f"Resolve cache deserialization error for {alias}: {exc}")
            await self._cache.remove(key)
            return None
        self._logger.debug(f"Resolve cache hit. Alias={alias}")
        return payload

    async def prime_resolve(self, alias: str, payload: CachedResolvePayload) -> None:
        await self._cache.set(
            resolve_key(alias),
            payload.model_dump_json(),
            ttl=self._resolve_ttl,
            sliding=self._resolve_sliding,
        )

    async def evict_resolve(self, alias: str) -> None:
        await self._cache.remove(resolve_key(alias))

    # ------------------------------------------------------------------
    # details:{link_id}
    # ------------------------------------------------------------------

    async def try_details(self, link_id: uuid.UUID) -> CachedDetailsPayload | None:
        key = details_key(link_id)
        raw = await self._cache.get(key)
        if raw is None:
            return None
        try:
            return CachedDetailsPayload.model_validate_json(raw)
        except ValidationError as exc:
            self._logger.error(f"Details cache deserialization error for {link_id}: {exc}")
            await self._cache.remove(key)
            return None

    async def cache_details(self, owner_id: uuid.UUID, view: ShortLinkDetails) -> None:
        payload = CachedDetailsPayload(owner_id=owner_id, view=view)
        await self._cache.set(details_key(view.id), payload.model_dump_json(), ttl=self._details_ttl)

    async def invalidate_details(self, link_id: uuid.UUID) -> None:
        await self._cache.remove(details_key(link_id))
        self._logger.debug(f"Invalidated details cache. LinkId={link_id}")

    # ------------------------------------------------------------------
    # event handlers
    # ------------------------------------------------------------------

    async def _on_link_created(self, event: LinkEvent) -> None:
        await self._prime_from_event(event)

    async def _on_click_recorded(self, event: LinkEvent) -> None:
        if event.link_id is not None:
            await self.invalidate_details(event.link_id)
        await self._prime_from_event(event)

    async def _on_link_deleted(self, event: LinkEvent) -> None:
        if event.short_code:
            await self.evict_resolve(event.short_code)
        if event.link_id is not None:
            await self.invalidate_details(event.link_id)

    async def _prime_from_event(self, event: LinkEvent) -> None:
        if event.link_id is None or not event.short_code or not event.original_url:
            return
        await self.prime_resolve(
            event.short_code,
            CachedResolvePayload(
                link_id=event.link_id,
                owner_id=event.owner_id,
                original_url=event.original_url,
            ),
        )
