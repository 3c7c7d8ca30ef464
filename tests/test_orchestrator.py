"""
Tests for the crawl loop: per-page capture and failure isolation.
"""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from curl_cffi.requests import RequestsError
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import PersistenceError
from core.models import CrawlJob, Page, PageType, Snapshot
from workers.web_monitor.discovery import CrawlTarget
from workers.web_monitor.models import FetchResult
from workers.web_monitor.orchestrator import CrawlProgress, capture_target, crawl_pages

from conftest import BASE_URL, build_page, build_pricing_page, make_session

HOME_URL = f"{BASE_URL}/"
PRICING_URL = f"{BASE_URL}/pricing"
CUSTOMERS_URL = f"{BASE_URL}/customers"
PRODUCTS_URL = f"{BASE_URL}/products"

TARGETS = [
    CrawlTarget(HOME_URL, PageType.HOMEPAGE, "homepage"),
    CrawlTarget(PRICING_URL, PageType.PRICING, "navigation"),
    CrawlTarget(CUSTOMERS_URL, PageType.CASE_STUDIES_OR_CUSTOMERS, "navigation"),
]


def _fetcher(pages: dict, failing: tuple = ()):
    async def fetch(url):
        if url in failing:
            raise RequestsError("timed out")
        return FetchResult(url=url, html=pages.get(url, ""), http_status=404 if url not in pages else 200)

    return SimpleNamespace(fetch=AsyncMock(side_effect=fetch))


# ============================================================
# SINGLE CAPTURE
# ============================================================

class TestCaptureTarget:
    async def test_stores_versioned_snapshot(self, competitor_id, job_id):
        session = make_session()
        job = CrawlJob(id=job_id, competitor_id=competitor_id)
        page = Page(id=uuid.uuid4(), competitor_id=competitor_id, url=HOME_URL, page_type=PageType.HOMEPAGE)
        fetched = FetchResult(url=HOME_URL, html=build_page(h1="Analytics for modern teams"), http_status=200)
        errors: list[str] = []

        with patch("workers.web_monitor.orchestrator.upsert_page", AsyncMock(return_value=page)), \
                patch("workers.web_monitor.orchestrator.next_version_number", AsyncMock(return_value=3)), \
                patch("workers.web_monitor.orchestrator.load_previous_snapshot", AsyncMock(return_value=None)), \
                patch("workers.web_monitor.orchestrator.persist_pricing_intelligence", AsyncMock()) as pricing:
            signal = await capture_target(session, job, TARGETS[0], fetched, errors)

        snapshot = session.add.call_args.args[0]
        assert isinstance(snapshot, Snapshot)
        assert snapshot.version_number == 3
        assert snapshot.crawl_job_id == job_id
        assert snapshot.h1_text == "Analytics for modern teams"
        assert signal.h1_text == "Analytics for modern teams"
        assert errors == []
        pricing.assert_not_awaited()

    async def test_pricing_failure_is_recorded(self, competitor_id, job_id):
        session = make_session()
        job = CrawlJob(id=job_id, competitor_id=competitor_id)
        page = Page(id=uuid.uuid4(), competitor_id=competitor_id, url=PRICING_URL, page_type=PageType.PRICING)
        html = build_pricing_page([("Starter", "$10 per month", "Start now")])
        fetched = FetchResult(url=PRICING_URL, html=html, http_status=200)
        errors: list[str] = []

        with patch("workers.web_monitor.orchestrator.upsert_page", AsyncMock(return_value=page)), \
                patch("workers.web_monitor.orchestrator.next_version_number", AsyncMock(return_value=1)), \
                patch("workers.web_monitor.orchestrator.load_previous_snapshot", AsyncMock(return_value=None)), \
                patch(
                    "workers.web_monitor.orchestrator.persist_pricing_intelligence",
                    AsyncMock(side_effect=PersistenceError("pricing snapshot", "insert failed")),
                ) as pricing:
            signal = await capture_target(session, job, TARGETS[1], fetched, errors)

        pricing.assert_awaited_once()
        assert pricing.await_args.kwargs["page_url"] == PRICING_URL
        assert signal.h1_text == "Simple pricing"
        assert len(errors) == 1
        assert errors[0].startswith(f"Pricing intelligence failed for {PRICING_URL}")


# ============================================================
# CRAWL LOOP
# ============================================================

class TestCrawlPages:
    async def _crawl(self, session, fetcher, capture, targets=TARGETS):
        job = SimpleNamespace(pages_crawled=0)
        competitor = SimpleNamespace(url=BASE_URL)
        progress = CrawlProgress()
        with patch("workers.web_monitor.orchestrator.discover_targets", return_value=list(targets)), \
                patch("workers.web_monitor.orchestrator.load_robots_group", AsyncMock(return_value=None)), \
                patch("workers.web_monitor.orchestrator.capture_target", capture):
            await crawl_pages(session, job, competitor, fetcher, progress)
        return job, competitor, progress

    async def test_fetch_error_is_recorded_and_loop_continues(self):
        session = make_session()
        capture = AsyncMock(return_value=SimpleNamespace(logo_url=None))
        fetcher = _fetcher({HOME_URL: build_page(), CUSTOMERS_URL: build_page()}, failing=(PRICING_URL,))

        job, _, progress = await self._crawl(session, fetcher, capture)

        assert progress.captured == 2
        assert len(progress.errors) == 1
        assert progress.errors[0].startswith(f"Failed to fetch {PRICING_URL}")
        assert [call.args[2].url for call in capture.await_args_list] == [HOME_URL, CUSTOMERS_URL]
        assert job.pages_crawled == 2
        assert session.commit.await_count == 2

    async def test_homepage_fetch_failure_stops_crawl(self):
        session = make_session()
        capture = AsyncMock()
        fetcher = _fetcher({}, failing=(HOME_URL,))

        _, _, progress = await self._crawl(session, fetcher, capture)

        assert progress.captured == 0
        assert progress.errors[0].startswith(f"Failed to fetch {HOME_URL}")
        capture.assert_not_awaited()

    async def test_store_failure_resets_session_and_continues(self):
        session = make_session()
        capture = AsyncMock(
            side_effect=[SQLAlchemyError("deadlock"), SimpleNamespace(logo_url=None), SimpleNamespace(logo_url=None)]
        )
        pages = {HOME_URL: build_page(), PRICING_URL: build_page(), CUSTOMERS_URL: build_page()}

        job, competitor, progress = await self._crawl(session, _fetcher(pages), capture)

        assert progress.captured == 2
        assert progress.errors[0].startswith(f"Failed to store {HOME_URL}")
        session.rollback.assert_awaited_once()
        assert [call.args[0] for call in session.refresh.await_args_list] == [job, competitor]

    async def test_missing_mandatory_page_is_not_captured(self):
        session = make_session()
        capture = AsyncMock(return_value=SimpleNamespace(logo_url=None))
        targets = [TARGETS[0], CrawlTarget(PRODUCTS_URL, PageType.PRODUCT_OR_SERVICES, "mandatory")]

        _, _, progress = await self._crawl(session, _fetcher({HOME_URL: build_page()}), capture, targets)

        assert progress.captured == 1
        assert progress.errors == []
        assert [call.args[2].url for call in capture.await_args_list] == [HOME_URL]
