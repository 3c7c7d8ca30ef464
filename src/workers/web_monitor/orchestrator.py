"""
Web Monitor Orchestrator — ARQ Job
====================================
Main ARQ job that, for one competitor:
1. Opens a CrawlJob (RUNNING)
2. Fetches the homepage (curl_cffi) and discovers the capture queue
3. Per page: upserts Page, stores a versioned Snapshot, compares it with
   the previous capture and runs pricing intelligence on pricing pages
4. Backfills logo, webpage-signal and observational insights (best-effort)
5. Closes the job and aggregates strategic movements (HIGH → Slack)

The page loop runs under ``settings.crawl_budget_seconds``. Each page is
committed on its own, so a timeout abandons the rest of the queue without
losing completed captures.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import urljoin

from curl_cffi.requests import RequestsError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import PersistenceError
from core.models import Competitor, CompetitorStatus, CrawlJob, JobStatus, Page, PageType, Snapshot
from core.notifications.dispatch import HighImpactNotifier, WorkspaceCache
from workers.diff_engine.compare import compare_snapshots
from workers.diff_engine.persistence import load_previous_snapshot
from workers.insights.persistence import persist_observational_insights, persist_webpage_signal_insights
from workers.intelligence.loader import load_tracked_page_types
from workers.movements.processor import process_movements_for_job
from workers.pricing.persistence import persist_pricing_intelligence
from workers.web_monitor.discovery import (
    CrawlTarget,
    discover_targets,
    is_robots_allowed,
    origin_of,
    parse_robots_txt,
    select_robots_group,
)
from workers.web_monitor.extractors import extract_structural_signal
from workers.web_monitor.fetcher import DEFAULT_HEADERS, PageFetcher
from workers.web_monitor.models import FetchResult, StructuralSignal

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Page / snapshot rows ──────────────────────────────────────────────


async def upsert_page(
    session: AsyncSession, competitor_id: uuid.UUID, url: str, page_type: PageType
) -> Page:
    """One ``Page`` row per (competitor, url); the page type follows the latest classification."""
    result = await session.execute(
        select(Page).where(Page.competitor_id == competitor_id, Page.url == url)
    )
    page = result.scalar_one_or_none()
    if page is None:
        page = Page(competitor_id=competitor_id, url=url, page_type=page_type)
        session.add(page)
        await session.flush()
    elif page.page_type != page_type:
        page.page_type = page_type
    return page


async def next_version_number(session: AsyncSession, page_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.max(Snapshot.version_number)).where(Snapshot.page_id == page_id)
    )
    return int(result.scalar_one_or_none() or 0) + 1


def build_snapshot(
    *,
    page: Page,
    job: CrawlJob,
    version_number: int,
    fetched: FetchResult,
    signal: StructuralSignal,
    captured_at: datetime,
) -> Snapshot:
    return Snapshot(
        page_id=page.id,
        competitor_id=page.competitor_id,
        crawl_job_id=job.id,
        url=page.url,
        page_type=page.page_type,
        version_number=version_number,
        captured_at=captured_at,
        http_status=fetched.http_status,
        html=fetched.html[: settings.max_snapshot_html_chars],
        html_hash=signal.html_hash,
        title=signal.title,
        h1_text=signal.h1_text,
        h2_headings=signal.h2_headings,
        h3_headings=signal.h3_headings,
        nav_labels=signal.nav_labels,
        nav_items=signal.nav_items,
        list_items=signal.list_items,
        primary_cta_text=signal.primary_cta_text,
        secondary_cta_text=signal.secondary_cta_text,
        structured_content=signal.structured_content,
    )


async def capture_target(
    session: AsyncSession,
    job: CrawlJob,
    target: CrawlTarget,
    fetched: FetchResult,
    errors: list[str],
) -> StructuralSignal:
    """Store one capture and run change detection and pricing on it."""
    captured_at = _now()
    page = await upsert_page(session, job.competitor_id, target.url, target.page_type)
    version = await next_version_number(session, page.id)
    signal = extract_structural_signal(
        fetched.html, target.url, http_status=fetched.http_status, page_type=target.page_type
    )

    snapshot = build_snapshot(
        page=page, job=job, version_number=version, fetched=fetched, signal=signal, captured_at=captured_at
    )
    session.add(snapshot)
    await session.flush()

    previous = await load_previous_snapshot(session, snapshot)
    result = await compare_snapshots(session, previous, snapshot)
    if result.diffs:
        logger.info("  %d changes on %s (v%d)", len(result.diffs), target.url, version)

    if target.page_type == PageType.PRICING:
        try:
            await persist_pricing_intelligence(
                session,
                competitor_id=job.competitor_id,
                snapshot_id=snapshot.id,
                html=fetched.html,
                page_url=target.url,
                captured_at=captured_at,
            )
        except PersistenceError as exc:
            logger.exception("Pricing intelligence failed for %s", target.url)
            errors.append(f"Pricing intelligence failed for {target.url}: {exc}")

    return signal


# ── Crawl loop ────────────────────────────────────────────────────────


async def load_robots_group(fetcher: PageFetcher, base_url: str):
    """Rules that apply to our user agent, or ``None`` when robots.txt is unavailable."""
    try:
        fetched = await fetcher.fetch(urljoin(origin_of(base_url), "/robots.txt"))
    except RequestsError as exc:
        logger.debug("robots.txt unavailable for %s: %s", base_url, exc)
        return None
    if not 200 <= fetched.http_status < 300:
        return None
    return select_robots_group(parse_robots_txt(fetched.html), DEFAULT_HEADERS["User-Agent"])


@dataclass
class CrawlProgress:
    """Mutated in place so completed work is still visible after a budget timeout."""

    captured: int = 0
    signals: list[StructuralSignal] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


async def _reset_session(session: AsyncSession, *rows) -> None:
    await session.rollback()
    for row in rows:
        await session.refresh(row)


async def crawl_pages(
    session: AsyncSession,
    job: CrawlJob,
    competitor: Competitor,
    fetcher: PageFetcher,
    progress: CrawlProgress,
) -> None:
    """
    Fetch the homepage, discover the queue and capture every target.

    A fetch failure on one page is recorded in ``progress.errors`` and the
    loop moves on.
    """
    homepage_url = origin_of(competitor.url) + "/"
    try:
        homepage = await fetcher.fetch(homepage_url)
    except RequestsError as exc:
        logger.warning("Failed to fetch homepage %s: %s", homepage_url, exc)
        progress.errors.append(f"Failed to fetch {homepage_url}: {exc}")
        return

    targets = discover_targets(homepage.html, homepage_url, max_pages=settings.max_pages_per_crawl)
    robots = await load_robots_group(fetcher, homepage_url)

    for target in targets:
        if target.page_type == PageType.HOMEPAGE:
            fetched = FetchResult(url=target.url, html=homepage.html, http_status=homepage.http_status)
        else:
            if not is_robots_allowed(robots, target.url):
                progress.errors.append(f"Skipping {target.url}: blocked by robots.txt")
                continue
            try:
                fetched = await fetcher.fetch(target.url)
            except RequestsError as exc:
                logger.warning("Failed to fetch %s: %s", target.url, exc)
                progress.errors.append(f"Failed to fetch {target.url}: {exc}")
                continue
            # Mandatory paths that do not exist are not captures.
            if target.source == "mandatory" and fetched.http_status == 404:
                continue

        logger.info("Processing page: %s (%s)", target.url, target.page_type.value)
        try:
            signal = await capture_target(session, job, target, fetched, progress.errors)
            job.pages_crawled = progress.captured + 1
            await session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to store capture of %s", target.url)
            progress.errors.append(f"Failed to store {target.url}: {exc}")
            await _reset_session(session, job, competitor)
            continue
        progress.captured += 1
        progress.signals.append(signal)


async def update_logo(session: AsyncSession, competitor: Competitor, signals: list[StructuralSignal]) -> None:
    """Best-effort: the first logo found on the homepage capture."""
    logo_url = next((s.logo_url for s in signals if s.logo_url), None)
    if not logo_url or logo_url == competitor.logo_url:
        return
    try:
        async with session.begin_nested():
            competitor.logo_url = logo_url
            await session.flush()
    except SQLAlchemyError as exc:
        logger.warning("Logo update failed for %s: %s", competitor.id, exc)


async def backfill_insights(session: AsyncSession, competitor_id: uuid.UUID) -> None:
    """Webpage-signal and observational insights; both log and continue on failure."""
    try:
        page_types = await load_tracked_page_types(session, competitor_id)
    except SQLAlchemyError as exc:
        logger.warning("Tracked page types unavailable for %s: %s", competitor_id, exc)
        page_types = ()
    signal_count = await persist_webpage_signal_insights(session, competitor_id)
    observational_count = await persist_observational_insights(session, competitor_id, page_types)
    if signal_count or observational_count:
        logger.info(
            "  Insights backfilled: %d webpage signals, %d observational",
            signal_count, observational_count,
        )


def final_status(captured: int, errors: list[str], timed_out: bool) -> JobStatus:
    if timed_out:
        return JobStatus.TIMED_OUT
    if captured == 0:
        return JobStatus.FAILED
    return JobStatus.FAILED_PARTIAL if errors else JobStatus.SUCCESS


async def run_crawl_job(session: AsyncSession, competitor: Competitor, job: CrawlJob) -> dict:
    """Drive one crawl job to completion on an open session."""
    job.status = JobStatus.RUNNING
    job.started_at = _now()
    await session.commit()
    logger.info("🕷️  CrawlJob %s started for %s (%s)", job.id, competitor.name, competitor.url)

    progress = CrawlProgress()
    timed_out = False
    async with PageFetcher() as fetcher:
        try:
            await asyncio.wait_for(
                crawl_pages(session, job, competitor, fetcher, progress),
                timeout=settings.crawl_budget_seconds,
            )
        except asyncio.TimeoutError:
            timed_out = True
            progress.errors.append(f"Crawl budget of {settings.crawl_budget_seconds:.0f}s exceeded")
            logger.warning("⏱️  CrawlJob %s timed out after %d pages", job.id, progress.captured)
            # The in-flight page never committed.
            await _reset_session(session, job, competitor)

    await update_logo(session, competitor, progress.signals)
    await backfill_insights(session, competitor.id)

    errors = progress.errors
    job.status = final_status(progress.captured, errors, timed_out)
    job.pages_crawled = progress.captured
    job.errors = errors or None
    job.error_message = errors[0] if errors else None
    job.finished_at = _now()
    competitor.last_crawled_at = job.finished_at
    await session.commit()

    movements = []
    try:
        movements = await process_movements_for_job(
            session, job.id, notifier=HighImpactNotifier(WorkspaceCache(session))
        )
        await session.commit()
    except PersistenceError:
        logger.exception("Movement aggregation failed for job %s", job.id)

    logger.info(
        "🏁 CrawlJob %s finished — %s, %d pages, %d errors, %d movements",
        job.id, job.status.value, progress.captured, len(errors), len(movements),
    )
    return {
        "crawl_job_id": str(job.id),
        "status": job.status.value,
        "pages_crawled": progress.captured,
        "errors": errors,
        "movements": len(movements),
    }


async def run_competitor_crawl(ctx: dict, competitor_id: str) -> dict:
    """
    ARQ job entry point.
    Crawls one competitor and returns a summary of the job.
    """
    from core.database import async_session_factory

    async with async_session_factory() as session:
        competitor = await session.get(Competitor, uuid.UUID(str(competitor_id)))
        if competitor is None:
            logger.warning("Competitor %s not found, skipping crawl", competitor_id)
            return {"status": "not_found", "competitor_id": str(competitor_id)}
        if competitor.status != CompetitorStatus.ACTIVE:
            logger.info("Competitor %s is %s, skipping crawl", competitor_id, competitor.status.value)
            return {"status": "skipped", "competitor_id": str(competitor_id)}

        job = CrawlJob(competitor_id=competitor.id, status=JobStatus.QUEUED)
        session.add(job)
        await session.flush()
        return await run_crawl_job(session, competitor, job)
