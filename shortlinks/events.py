"""In-process notification bus for committed writes.

Cache owners subscribe to the event types they care about instead of the
services calling each other's invalidation methods directly.

Flow Diagram — publish()
========================
::
    ┌─────────────┐
    │ Store commit│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ publish(evt) │
    └──────┬──────┘
           ▼
    ┌──────────────────────────────┐
    │ handlers for evt.type        │
    │ + handlers subscribed to all │
    │ (in subscription order)      │
    └──────┬───────────────────────┘
    FAILED?  │
    ┌─────┴─────┐
    │ YES        │ NO
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Log and │  │ Next    │
│ continue│  │ handler │
└─────────┘  └─────────┘

Key Behaviours
===============
- Events are only published after the write they describe has committed.
- A failing handler is logged and does not stop the remaining handlers;
  the committed write is never undone by a cache-side failure.
- Cancellation propagates to the publisher.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from shortlinks.enums import LinkEventType
from shortlinks.metrics import LINK_EVENTS_PUBLISHED_TOTAL
from shortlinks.schemas import LinkEvent

__all__ = ["EventBus", "EventHandler"]

EventHandler = Callable[[LinkEvent], Awaitable[None]]


class EventBus:
    def __init__(self, logger: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self._handlers: dict[LinkEventType, list[EventHandler]] = defaultdict(list)
        self._catch_all: list[EventHandler] = []
        self._logger = logger or logging.getLogger("shortlinks")

    def subscribe(self, event_type: LinkEventType, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        self._catch_all.append(handler)

    def handlers_for(self, event_type: LinkEventType) -> list[EventHandler]:
        return [*self._handlers.get(event_type, []), *self._catch_all]

    async def publish(self, event: LinkEvent) -> None:
        LINK_EVENTS_PUBLISHED_TOTAL.labels(type=event.type.value).inc()
        for handler in self.handlers_for(event.type):
            try:
                await handler(event)
            except Exception as exc:
                name = getattr(handler, "__qualname__", repr(handler))
                self._logger.error(f"Event handler {name} failed for {event.type.value}: {exc}")
