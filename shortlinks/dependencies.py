"""Dependency injection for the short-link API.

Shared resources (settings, logger, cache, event bus, cache coordinator) are
built once per application by :class:`ServiceManager` and kept on
``app.state.services``. Only the database session is created per request.

Flow Diagram — Per-request wiring
=================================
::
    ┌─────────────┐     ┌──────────────────┐
    │  Request    │────►│ get_db()         │ (per request)
    └──────┬──────┘     └────────┬─────────┘
           │                     ▼
           │            ┌──────────────────┐
           └───────────►│ RequestContext   │◄── app.state.services
                        └────────┬─────────┘
                                 ▼
                        ┌──────────────────┐
                        │ ShortLinkService │
                        │ .from_context()  │
                        └──────────────────┘

Caller identity is supplied by the authentication layer in front of this
service as an ``X-User-Id`` header holding the user's UUID.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shortlinks.cache import CachePort, build_cache
from shortlinks.config import Settings, get_settings
from shortlinks.coordinator import CacheCoordinator
from shortlinks.database import get_db
from shortlinks.events import EventBus
from shortlinks.kafka import publish_link_event
from shortlinks.metrics import KAFKA_EVENTS_FAILED_TOTAL, KAFKA_EVENTS_PUBLISHED_TOTAL
from shortlinks.schemas import LinkEvent
from shortlinks.service import ShortLinkService
from shortlinks.subscriptions import CacheProfileInvalidator

__all__ = [
    "ServiceManager",
    "RequestContext",
    "USER_ID_HEADER",
    "get_service_manager",
    "get_request_context",
    "get_current_user_id",
    "get_link_service",
]

USER_ID_HEADER = "X-User-Id"


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Application-scoped shared resources.

    Built in the application lifespan; tests build their own with a
    :class:`~shortlinks.cache.MemoryCache` and a test settings object.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: CachePort | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.logger = logger if logger is not None else self._setup_logger()
        self.cache = cache if cache is not None else build_cache(self.settings, self.logger)
        self.events = EventBus(self.logger)
        self.coordinator = CacheCoordinator(self.cache, self.settings, self.logger)
        self.profiles = CacheProfileInvalidator(self.cache, self.settings.PROFILE_CACHE_KEY_PREFIX, self.logger)

        self.coordinator.subscribe(self.events)
        self.profiles.subscribe(self.events)
        if self.settings.KAFKA_ENABLED:
            self.events.subscribe_all(self._forward_to_kafka)

    def _setup_logger(self) -> logging.Logger:
        logger = logging.getLogger("shortlinks")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    async def _forward_to_kafka(self, event: LinkEvent) -> None:
        try:
            sent = await publish_link_event(event)
        except Exception:
            KAFKA_EVENTS_FAILED_TOTAL.inc()
            raise
        if sent:
            KAFKA_EVENTS_PUBLISHED_TOTAL.inc()

    async def cleanup(self) -> None:
        await self.cache.close()


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request view over the shared resources.

    Attributes:
        database: Async database session (the only per-request resource)
        service_manager: Application-scoped shared resources
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: str | None = None
    user_agent: str | None = None
    client_ip: str | None = None
    start_time: float = field(default_factory=lambda: time.time())

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def cache(self) -> CachePort:
        return self.service_manager.cache

    @property
    def events(self) -> EventBus:
        return self.service_manager.events

    @property
    def coordinator(self) -> CacheCoordinator:
        return self.service_manager.coordinator

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with the request identifiers attached."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_service_manager(request: Request) -> ServiceManager:
    return request.app.state.services


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    client_ip = request.client.host if request.client else None
    return RequestContext(
        database=db,
        service_manager=manager,
        trace_id=request.headers.get("x-trace-id"),
        user_agent=request.headers.get("user-agent"),
        client_ip=client_ip,
    )


def get_current_user_id(request: Request) -> uuid.UUID | None:
    """Caller identity from the ``X-User-Id`` header; ``None`` when absent or malformed."""
    raw = request.headers.get(USER_ID_HEADER)
    if not raw:
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        return None


def get_link_service(ctx: RequestContext = Depends(get_request_context)) -> ShortLinkService:
    return ShortLinkService.from_context(ctx)
