"""Contracts with the billing and profile sides of the product.

Plans, subscriptions and profile pages are owned elsewhere. The engine only
needs two things from them: the caller's active plan limits, and a way to
drop the caller's cached profile after their usage changes.
"""

import logging
import uuid
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shortlinks.cache import CachePort
from shortlinks.enums import LinkEventType
from shortlinks.events import EventBus
from shortlinks.models import Plan, Subscription
from shortlinks.schemas import LinkEvent, PlanSnapshot

__all__ = ["SubscriptionDirectory", "SqlSubscriptionDirectory", "CacheProfileInvalidator"]


class SubscriptionDirectory(Protocol):
    async def get_active_plan(self, user_id: uuid.UUID) -> PlanSnapshot | None: ...


class SqlSubscriptionDirectory:
    """Reads the active plan from the shared plans/subscriptions tables."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_active_plan(self, user_id: uuid.UUID) -> PlanSnapshot | None:
        stmt = (
            select(Plan)
            .join(Subscription, Subscription.plan_id == Plan.id)
            .where(Subscription.user_id == user_id, Subscription.active.is_(True))
            .limit(1)
        )
        result = await self._db.execute(stmt)
        plan = result.scalar_one_or_none()
        if plan is None:
            return None
        return PlanSnapshot.model_validate(plan)


class CacheProfileInvalidator:
    """Drops ``{prefix}:{user_id}`` whenever the user's links, clicks or plan change."""

    EVENT_TYPES = (
        LinkEventType.LINK_CREATED,
        LinkEventType.CLICK_RECORDED,
        LinkEventType.LINK_DELETED,
        LinkEventType.SUBSCRIPTION_CHANGED,
    )

    def __init__(
        self,
        cache: CachePort,
        key_prefix: str = "profile:me",
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._cache = cache
        self._key_prefix = key_prefix
        self._logger = logger or logging.getLogger("shortlinks")

    def key_for(self, user_id: uuid.UUID) -> str:
        return f"{self._key_prefix}:{user_id}"

    def subscribe(self, bus: EventBus) -> None:
        for event_type in self.EVENT_TYPES:
            bus.subscribe(event_type, self.handle)

    async def invalidate(self, user_id: uuid.UUID) -> None:
        await self._cache.remove(self.key_for(user_id))
        self._logger.debug(f"Profile cache invalidated for user {user_id}")

    async def handle(self, event: LinkEvent) -> None:
        await self.invalidate(event.owner_id)
