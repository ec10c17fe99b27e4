"""Alias resolution with click tracking.

Flow Diagram — resolve_and_track()
==================================
::
    ┌─────────────┐
    │  GET /:alias │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Alias shape  │──── bad ──► InvalidInputError (no store lookup)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Resolve cache│
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────────────┐
    │ YES                │ NO
    ▼                    ▼
┌──────────────┐   ┌──────────────┐
│ record click │   │ fetch_by_code│── none ──► NotFoundError
│ by link id   │   └──────┬───────┘
└──────┬───────┘          │ inactive ──► InactiveError
  LIVE?│                  ▼
  ├─ NO → evict, ───►┌──────────────┐
  │   slow path      │ record click │
  ▼                  └──────┬───────┘
┌──────────────────────────────────┐
│ publish click_recorded           │
│ (details invalidated, resolve    │
│  refreshed, profile invalidated) │
└──────┬───────────────────────────┘
       ▼
  original URL

Key Behaviours
===============
- The counter increment and click row are one transaction in the store.
- No event is published (so no cache is touched) unless the click committed.
- Under TrackingFailurePolicy.BEST_EFFORT a persistence failure is logged
  and the URL is still returned; under FAIL it is raised.
"""

import datetime
import logging
import time
import uuid

from shortlinks.codec import is_valid_alias
from shortlinks.coordinator import CacheCoordinator
from shortlinks.enums import CacheStatus, LinkEventType, RequestStatus, TrackingFailurePolicy, TrackOutcome
from shortlinks.errors import InactiveError, InvalidInputError, NotFoundError, PersistenceError, ShortLinkError
from shortlinks.events import EventBus
from shortlinks.metrics import (
    CLICK_TRACKING_FAILURES_TOTAL,
    CLICKS_RECORDED_TOTAL,
    RESOLVE_DURATION,
    RESOLVE_REQUESTS_TOTAL,
)
from shortlinks.schemas import LinkEvent
from shortlinks.store import LinkStore

__all__ = ["ClickTracker"]


class ClickTracker:
    def __init__(
        self,
        store: LinkStore,
        coordinator: CacheCoordinator,
        events: EventBus,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        failure_policy: TrackingFailurePolicy = TrackingFailurePolicy.FAIL,
    ) -> None:
        self._store = store
        self._coordinator = coordinator
        self._events = events
        self._logger = logger or logging.getLogger("shortlinks")
        self._failure_policy = failure_policy

    async def resolve_and_track(self, alias: str, referrer: str | None, user_agent: str | None) -> str:
        start_time = time.perf_counter()
        cache_status = CacheStatus.MISS
        try:
            if not is_valid_alias(alias):
                self._logger.warning(f"Resolve failed: invalid alias format. Alias={alias!r}")
                raise InvalidInputError("Invalid alias.")

            cached = await self._coordinator.try_resolve(alias)
            if cached is not None:
                cache_status = CacheStatus.HIT
                outcome = await self._track(cached.link_id, cached.owner_id, alias, cached.original_url, referrer, user_agent)
                if outcome is not TrackOutcome.NOT_LIVE:
                    self._observe(RequestStatus.SUCCESS, cache_status, start_time)
                    return cached.original_url
                self._logger.info(f"Resolve cache entry no longer live, evicting. Alias={alias}")
                await self._coordinator.evict_resolve(alias)

            link = await self._store.fetch_by_code(alias)
            if link is None:
                self._logger.warning(f"Resolve failed: link not found. Alias={alias}")
                raise NotFoundError()
            if not link.is_active:
                self._logger.warning(f"Resolve blocked: link inactive. Alias={alias}, LinkId={link.id}")
                raise InactiveError()

            outcome = await self._track(link.id, link.owner_id, alias, link.original_url, referrer, user_agent)
            if outcome is TrackOutcome.NOT_LIVE:
                # deactivated between the read and the increment
                raise InactiveError()

            self._observe(RequestStatus.SUCCESS, cache_status, start_time)
            return link.original_url

        except (NotFoundError, InactiveError, InvalidInputError):
            self._observe(RequestStatus.NOT_FOUND, cache_status, start_time)
            raise
        except ShortLinkError:
            self._observe(RequestStatus.ERROR, cache_status, start_time)
            raise

    async def _track(
        self,
        link_id: uuid.UUID,
        owner_id: uuid.UUID,
        alias: str,
        original_url: str,
        referrer: str | None,
        user_agent: str | None,
    ) -> TrackOutcome:
        clicked_at = datetime.datetime.now(datetime.UTC)
        try:
            click = await self._store.record_click(link_id, referrer or "", user_agent or "", clicked_at)
        except PersistenceError as exc:
            CLICK_TRACKING_FAILURES_TOTAL.inc()
            self._logger.error(f"Error tracking click. Alias={alias}, LinkId={link_id}: {exc.__cause__ or exc}")
            if self._failure_policy is TrackingFailurePolicy.BEST_EFFORT:
                return TrackOutcome.SKIPPED
            raise

        if click is None:
            return TrackOutcome.NOT_LIVE

        CLICKS_RECORDED_TOTAL.inc()
        await self._events.publish(
            LinkEvent(
                type=LinkEventType.CLICK_RECORDED,
                owner_id=owner_id,
                link_id=link_id,
                short_code=alias,
                original_url=original_url,
                occurred_at=clicked_at,
            )
        )
        self._logger.info(f"Resolve & track success. Alias={alias}, LinkId={link_id}")
        return TrackOutcome.RECORDED

    def _observe(self, status: RequestStatus, cache_status: CacheStatus, start_time: float) -> None:
        RESOLVE_DURATION.observe(time.perf_counter() - start_time)
        RESOLVE_REQUESTS_TOTAL.labels(status=status, cache_hit=cache_status).inc()
