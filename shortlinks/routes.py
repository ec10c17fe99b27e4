"""FastAPI route definitions for the short-link REST API.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /shortlinks
        ├─ ShortLinkCreate (request body)
        └─ ShortLinkCreateResponse (201) or 400/401/500

    GET    /shortlinks
        └─ list[ShortLinkSummary] (200) or 401

    GET    /shortlinks/:id
        └─ ShortLinkDetails (200) or 401/403/404

    DELETE /shortlinks/:id
        └─ 204 or 401/403/404

    GET    /:alias
        └─ 307 Redirect or 404

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate &  │
    │ Parse       │
    │ (Pydantic)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ context +   │
    │ X-User-Id   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Call Service│──── ShortLinkError ──► HTTPException(status, detail)
    │ Layer       │──── TimeoutError ────► 503
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serialize   │
    │ (camelCase) │
    └─────────────┘

Key Behaviours
===============
- Error bodies are ``{"detail": {"kind", "message", "upgradeRequired"}}``.
- Every creation failure except Unauthorized and Persistence is a 400.
- The redirect reports a missing, inactive or malformed alias as 404 and
  never reveals which one it was.
- 307 redirects preserve the HTTP method.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from shortlinks.dependencies import (
    RequestContext,
    get_current_user_id,
    get_link_service,
    get_request_context,
)
from shortlinks.enums import ErrorKind, HealthStatus
from shortlinks.errors import ShortLinkError
from shortlinks.schemas import (
    ErrorDetail,
    HealthResponse,
    ShortLinkCreate,
    ShortLinkCreateResponse,
    ShortLinkDetails,
    ShortLinkSummary,
)
from shortlinks.service import ShortLinkService

__all__ = ["router", "error_status"]

router = APIRouter()

_BASE_STATUS = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INACTIVE: 404,
    ErrorKind.UPGRADE_REQUIRED: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.ALLOCATION_EXHAUSTED: 400,
    ErrorKind.PERSISTENCE: 500,
}

_REDIRECT_NOT_FOUND = frozenset({ErrorKind.INVALID_INPUT, ErrorKind.NOT_FOUND, ErrorKind.INACTIVE})


def error_status(exc: ShortLinkError) -> int:
    return _BASE_STATUS.get(exc.kind, 500)


def _http_error(exc: ShortLinkError, status_code: int | None = None) -> HTTPException:
    detail = ErrorDetail(kind=exc.kind, message=exc.message, upgrade_required=exc.upgrade_required)
    return HTTPException(
        status_code=status_code or error_status(exc),
        detail=detail.model_dump(mode="json", by_alias=True),
    )


def _timeout_error() -> HTTPException:
    return HTTPException(status_code=503, detail="Request timed out.")


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        if not await ctx.cache.ping():
            cache_status = HealthStatus.UNHEALTHY
    except Exception as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/shortlinks", response_model=ShortLinkCreateResponse, status_code=201, tags=["shortlinks"])
async def create_short_link(
    payload: ShortLinkCreate,
    ctx: RequestContext = Depends(get_request_context),
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    service: ShortLinkService = Depends(get_link_service),
) -> ShortLinkCreateResponse:
    try:
        created = await service.create_short_link(user_id, payload)
    except ShortLinkError as exc:
        raise _http_error(exc) from exc
    except TimeoutError as exc:
        ctx.logger.error(f"Create short link timed out after {ctx.get_duration():.0f}ms")
        raise _timeout_error() from exc
    return created


@router.get("/shortlinks", response_model=list[ShortLinkSummary], tags=["shortlinks"])
async def list_short_links(
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    service: ShortLinkService = Depends(get_link_service),
) -> list[ShortLinkSummary]:
    try:
        return await service.list_links(user_id)
    except ShortLinkError as exc:
        raise _http_error(exc) from exc
    except TimeoutError as exc:
        raise _timeout_error() from exc


@router.get("/shortlinks/{link_id}", response_model=ShortLinkDetails, tags=["shortlinks"])
async def get_short_link_details(
    link_id: uuid.UUID,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    service: ShortLinkService = Depends(get_link_service),
) -> ShortLinkDetails:
    try:
        return await service.get_details(user_id, link_id)
    except ShortLinkError as exc:
        raise _http_error(exc) from exc
    except TimeoutError as exc:
        raise _timeout_error() from exc


@router.delete("/shortlinks/{link_id}", status_code=204, tags=["shortlinks"])
async def delete_short_link(
    link_id: uuid.UUID,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    service: ShortLinkService = Depends(get_link_service),
) -> Response:
    try:
        await service.delete_link(user_id, link_id)
    except ShortLinkError as exc:
        raise _http_error(exc) from exc
    except TimeoutError as exc:
        raise _timeout_error() from exc
    return Response(status_code=204)


@router.get("/{alias}", tags=["redirect"])
async def redirect_to_url(
    alias: str,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    service: ShortLinkService = Depends(get_link_service),
) -> RedirectResponse:
    try:
        original_url = await service.resolve(
            alias,
            referrer=request.headers.get("referer"),
            user_agent=ctx.user_agent,
        )
    except ShortLinkError as exc:
        if exc.kind in _REDIRECT_NOT_FOUND:
            raise HTTPException(status_code=404, detail="Link not found.") from exc
        raise _http_error(exc) from exc
    except TimeoutError as exc:
        raise _timeout_error() from exc

    return RedirectResponse(url=original_url, status_code=307)
