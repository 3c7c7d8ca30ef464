"""
ARQ Worker Settings — Registers all background jobs.

Usage:
    arq workers.worker_settings.WorkerSettings
"""

from __future__ import annotations

import logging
import uuid

from arq import cron
from arq.connections import RedisSettings

from core.config import settings

logger = logging.getLogger(__name__)


async def run_competitor_crawl(ctx: dict, competitor_id: str) -> dict:
    """ARQ job: crawl one competitor end to end."""
    from workers.web_monitor.orchestrator import run_competitor_crawl as _run
    return await _run(ctx, competitor_id)


async def process_movements(ctx: dict, crawl_job_id: str) -> int:
    """ARQ job: aggregate the strategic movements of a finished crawl job; idempotent per page."""
    from core.database import session_scope
    from core.notifications.dispatch import HighImpactNotifier, WorkspaceCache
    from workers.movements.processor import process_movements_for_job

    async with session_scope() as session:
        movements = await process_movements_for_job(
            session, uuid.UUID(crawl_job_id), notifier=HighImpactNotifier(WorkspaceCache(session))
        )
    return len(movements)


async def refresh_competitor_insights(ctx: dict, competitor_id: str) -> None:
    """ARQ job: backfill webpage-signal and observational insights without crawling."""
    from core.database import session_scope
    from workers.web_monitor.orchestrator import backfill_insights

    async with session_scope() as session:
        await backfill_insights(session, uuid.UUID(competitor_id))


async def run_scheduled_crawls(ctx: dict) -> int:
    """ARQ cron: enqueue one crawl per active competitor."""
    from sqlalchemy import select

    from core.database import async_session_factory
    from core.models import Competitor, CompetitorStatus

    async with async_session_factory() as session:
        result = await session.execute(
            select(Competitor.id).where(Competitor.status == CompetitorStatus.ACTIVE)
        )
        competitor_ids = list(result.scalars().all())

    for competitor_id in competitor_ids:
        await ctx["redis"].enqueue_job("run_competitor_crawl", str(competitor_id))
    logger.info("  📅 Scheduled %d competitor crawls", len(competitor_ids))
    return len(competitor_ids)


async def startup(ctx: dict) -> None:
    """Called on worker startup."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Worker started (%s)", settings.environment)


async def shutdown(ctx: dict) -> None:
    """Called on worker shutdown."""
    from core.database import engine

    await engine.dispose()


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [
        run_competitor_crawl,
        process_movements,
        refresh_competitor_insights,
        run_scheduled_crawls,
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = RedisSettings.from_dsn(settings.redis_url)

    # A crawl may use its whole budget plus movement aggregation afterwards.
    job_timeout = int(settings.crawl_budget_seconds) + 120

    cron_jobs = [
        cron(run_scheduled_crawls, hour={settings.crawl_cron_hour}, minute={0}),
    ]
