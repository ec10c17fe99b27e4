"""FastAPI application entry point for the short-link service.

Application Lifecycle Diagram
=============================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌──────────────┐
    │ create_app() │
    │ CORS, metrics│
    │ routes       │
    └──────┬───────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ init_db()   │
    │ init_kafka()│
    │ services    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ cache close │
    │ close_kafka │
    │ close_db()  │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortlinks.main:app --host 0.0.0.0 --port 8080

**Step 2 — Access interactive docs**::
    http://localhost:8080/api/docs
    http://localhost:8080/api/redoc

**Step 3 — Make API calls**::
    curl -X POST http://localhost:8080/shortlinks \
         -H "Content-Type: application/json" \
         -H "X-User-Id: 2f0c6a52-8f0e-4a57-9f3a-5b1f0b0c9d11" \
         -d '{"url": "example.com", "customAlias": "docs", "enableQr": true}'

    curl -i http://localhost:8080/docs

Key Behaviours
===============
- Database tables are created automatically on startup.
- The Kafka producer is only started when KAFKA_ENABLED is set.
- Interactive docs live under /api/ so that top-level paths stay free for aliases.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from shortlinks.config import get_settings
from shortlinks.database import close_db, init_db
from shortlinks.dependencies import ServiceManager
from shortlinks.kafka import close_kafka, init_kafka
from shortlinks.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    # Startup
    await init_db()
    if settings.KAFKA_ENABLED:
        await init_kafka()
    app.state.services = ServiceManager(settings)
    yield
    # Shutdown
    await app.state.services.cleanup()
    await close_kafka()
    await close_db()


def create_app() -> FastAPI:
    settings = get_settings()
    application = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Short links with plan quotas, QR codes and click analytics",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
    ).instrument(application).expose(application)

    application.include_router(router)
    return application


app = create_app()
