"""Health and metrics endpoint tests."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from shortlinks.dependencies import ServiceManager
from shortlinks.enums import HealthStatus


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.HEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value
    assert data["cache"] == HealthStatus.HEALTHY.value


@pytest.mark.asyncio
async def test_health_check_reports_cache_failure(client: AsyncClient, services: ServiceManager) -> None:
    services.cache.ping = AsyncMock(side_effect=ConnectionError("down"))

    response = await client.get("/health")

    data = response.json()
    assert data["status"] == HealthStatus.UNHEALTHY.value
    assert data["cache"] == HealthStatus.UNHEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient) -> None:
    await client.get("/health")
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "shortlinks_clicks_recorded_total" in response.text
