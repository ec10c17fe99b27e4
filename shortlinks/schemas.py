"""Pydantic schemas for request/response validation in the short-link engine.

This module defines Pydantic models for API input and output serialization,
the cache payloads shared by the cache coordinator, and the link events
passed over the event bus.

Schema Hierarchy
=================
::
    ShortLinkCreate (Input)
    ├─ url: str
    ├─ custom_alias: str | None
    └─ enable_qr: bool

    ShortLinkCreateResponse (Output)
    ├─ id, alias, short_url
    └─ qr_url: str | None

    ShortLinkDetails (Output)
    ├─ id, alias, short_url, original_url, created_at
    ├─ qr_enabled, qr_url, total_clicks, unique_referrers
    ├─ clicks_last_7_days: list[DailyClicks]   (always 7, ascending)
    ├─ top_referrers: list[TopReferrer]        (at most 10)
    └─ recent_events: list[ClickEventView]     (at most 100, newest first)

    CachedResolvePayload / CachedDetailsPayload (Cache)
    LinkEvent (Event bus / Kafka)
    PlanSnapshot (Subscription directory)

Key Behaviours
===============
- JSON field names are camelCase (``customAlias``, ``clicksLast7Days``);
  snake_case names are accepted on input too.
- Raw referrer and user-agent strings never appear in output models.
- URL validation happens in the service so that it maps to a 400, not a 422.
"""

import datetime
import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shortlinks.enums import ErrorKind, HealthStatus, LinkEventType

__all__ = [
    "ShortLinkCreate",
    "ShortLinkCreateResponse",
    "ShortLinkSummary",
    "DailyClicks",
    "TopReferrer",
    "ClickEventView",
    "ShortLinkDetails",
    "HealthResponse",
    "ErrorDetail",
    "PlanSnapshot",
    "CachedResolvePayload",
    "CachedDetailsPayload",
    "LinkEvent",
]

_api_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ShortLinkCreate(BaseModel):
    model_config = _api_config

    url: str
    custom_alias: str | None = None
    enable_qr: bool = False


class ShortLinkCreateResponse(BaseModel):
    model_config = _api_config

    id: uuid.UUID
    alias: str
    short_url: str
    qr_url: str | None = None


class ShortLinkSummary(BaseModel):
    model_config = _api_config

    id: uuid.UUID
    alias: str
    short_url: str
    original_url: str
    created_at: datetime.datetime
    qr_enabled: bool
    clicks: int


class DailyClicks(BaseModel):
    model_config = _api_config

    date: str = Field(..., description="UTC day, e.g. '2026-10-18'")
    count: int


class TopReferrer(BaseModel):
    model_config = _api_config

    referrer: str
    count: int


class ClickEventView(BaseModel):
    model_config = _api_config

    id: uuid.UUID
    clicked_at: datetime.datetime
    referrer: str
    ua: str


class ShortLinkDetails(BaseModel):
    model_config = _api_config

    id: uuid.UUID
    alias: str
    short_url: str
    original_url: str
    created_at: datetime.datetime
    qr_enabled: bool
    qr_url: str | None = None
    total_clicks: int
    unique_referrers: int
    clicks_last_7_days: list[DailyClicks] = Field(..., alias="clicksLast7Days")
    top_referrers: list[TopReferrer]
    recent_events: list[ClickEventView]


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class ErrorDetail(BaseModel):
    model_config = _api_config

    kind: ErrorKind
    message: str
    upgrade_required: bool = False


class PlanSnapshot(BaseModel):
    """Read-only view of the caller's active plan."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    name: str
    price_monthly: Decimal
    max_links_per_month: int
    custom_alias_enabled: bool
    qr_enabled: bool


class CachedResolvePayload(BaseModel):
    """Redis cache payload for ``shortlink:resolve:{alias}``."""

    link_id: uuid.UUID
    owner_id: uuid.UUID
    original_url: str


class CachedDetailsPayload(BaseModel):
    """Redis cache payload for ``shortlink:details:{link_id}``; carries the owner for access checks."""

    owner_id: uuid.UUID
    view: ShortLinkDetails


class LinkEvent(BaseModel):
    """Event bus payload, keyed by link_id for partition affinity when sent to Kafka."""

    type: LinkEventType
    owner_id: uuid.UUID
    link_id: uuid.UUID | None = None
    short_code: str | None = None
    original_url: str | None = None
    occurred_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
