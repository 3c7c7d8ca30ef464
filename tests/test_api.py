"""
Tests for the HTTP surface: health, movements listing and crawl trigger.
"""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from api.main import app
from core.database import get_db
from core.models import ImpactLevel, MovementCategory, PageType

from conftest import BASE_URL, make_result, make_session


@pytest.fixture
def api_session():
    session = make_session()
    app.dependency_overrides[get_db] = lambda: session
    yield session
    app.dependency_overrides.clear()
    app.state.arq = None


@pytest.fixture
async def client():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "competitive-change-intelligence"}


class TestMovementsEndpoint:
    async def test_unknown_competitor_is_404(self, client, api_session, competitor_id):
        response = await client.get(f"/api/competitors/{competitor_id}/movements")

        assert response.status_code == 404

    async def test_lists_movements(self, client, api_session, competitor_id, job_id):
        movement = SimpleNamespace(
            id=job_id,
            crawl_job_id=job_id,
            page_url=f"{BASE_URL}/",
            page_type=PageType.HOMEPAGE,
            change_cluster_count=2,
            movement_category=MovementCategory.CONVERSION_OPTIMIZATION,
            impact_level=ImpactLevel.HIGH,
            summary="Detected 2 changes (cta_text_change) on https://acme.com/.",
            interpretation="Conversion path is being tuned.",
            suggested_action="Review the updated call to action.",
            created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )
        api_session.get = AsyncMock(return_value=SimpleNamespace(id=competitor_id))
        api_session.execute = AsyncMock(return_value=make_result(rows=[movement]))

        response = await client.get(f"/api/competitors/{competitor_id}/movements")

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 1
        assert body[0]["page_type"] == "homepage"
        assert body[0]["impact_level"] == ImpactLevel.HIGH.value


class TestCrawlTrigger:
    async def test_queue_unavailable(self, client, api_session, competitor_id):
        api_session.get = AsyncMock(return_value=SimpleNamespace(id=competitor_id))
        app.state.arq = None

        response = await client.post(f"/api/competitors/{competitor_id}/crawl")

        assert response.status_code == 503

    async def test_enqueues_job(self, client, api_session, competitor_id):
        api_session.get = AsyncMock(return_value=SimpleNamespace(id=competitor_id))
        pool = SimpleNamespace(enqueue_job=AsyncMock(return_value=SimpleNamespace(job_id="job-1")))
        app.state.arq = pool

        response = await client.post(f"/api/competitors/{competitor_id}/crawl")

        assert response.status_code == 202
        assert response.json() == {
            "competitor_id": str(competitor_id),
            "job_id": "job-1",
            "status": "queued",
        }
        pool.enqueue_job.assert_awaited_once_with("run_competitor_crawl", str(competitor_id))
