"""
Read side of the intelligence models.

Loads the latest stored captures, change counts, webpage-signal insights
and pricing state for one competitor and hands them to the pure models.
All reads; nothing here writes.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from urllib.parse import urlparse

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models import Change, Insight, Page, PageType, Snapshot
from workers.insights.persistence import SIGNAL_SNAPSHOT_LOOKBACK
from workers.insights.webpage_signals import WEBPAGE_SIGNAL, latest_by_page_type
from workers.intelligence.baseline import BaselineInput, BaselineResult, build_company_baseline_profile
from workers.intelligence.engine import IntelligenceReport, run_intelligence_engine
from workers.intelligence.seo import SeoIntelligenceResult, build_seo_intelligence, seo_page_from_dict
from workers.intelligence.signals import RawSignalsInput, ServiceSnapshotSignal, SnapshotSignal
from workers.intelligence.strategic import StrategicModelResult, build_strategic_raw_signals, run_strategic_model
from workers.pricing.persistence import load_latest_pricing_snapshot

logger = logging.getLogger(__name__)

ACTIVITY_WINDOW = timedelta(days=30)
_ABOUT_SEGMENTS = ("about", "company", "who-we-are", "our-story")


async def load_recent_snapshots(
    session: AsyncSession, competitor_id: uuid.UUID, limit: int = SIGNAL_SNAPSHOT_LOOKBACK
) -> list[Snapshot]:
    result = await session.execute(
        select(Snapshot)
        .where(Snapshot.competitor_id == competitor_id)
        .order_by(desc(Snapshot.captured_at), desc(Snapshot.version_number))
        .limit(limit)
    )
    return list(result.scalars().all())


async def load_tracked_page_types(session: AsyncSession, competitor_id: uuid.UUID) -> tuple[PageType, ...]:
    result = await session.execute(
        select(Page.page_type).where(Page.competitor_id == competitor_id).distinct()
    )
    return tuple(sorted(result.scalars().all(), key=lambda p: p.value))


async def count_recent_changes(session: AsyncSession, competitor_id: uuid.UUID, since: datetime) -> int:
    result = await session.execute(
        select(func.count(Change.id)).where(Change.competitor_id == competitor_id, Change.created_at >= since)
    )
    return int(result.scalar_one() or 0)


async def load_webpage_signal_texts(session: AsyncSession, competitor_id: uuid.UUID) -> tuple[str, ...]:
    result = await session.execute(
        select(Insight.insight_text)
        .where(Insight.competitor_id == competitor_id, Insight.insight_type == WEBPAGE_SIGNAL)
        .order_by(desc(Insight.created_at))
    )
    return tuple(result.scalars().all())


def find_about_page(snapshots: list[Snapshot]) -> Snapshot | None:
    """Newest capture whose path looks like an about / company page."""
    for snapshot in snapshots:
        path = urlparse(snapshot.url).path.lower()
        if any(segment in path for segment in _ABOUT_SEGMENTS):
            return snapshot
    return None


def _signal(snapshot: Snapshot | None) -> SnapshotSignal | None:
    return SnapshotSignal.from_row(snapshot) if snapshot is not None else None


async def load_intelligence_input(
    session: AsyncSession,
    competitor_id: uuid.UUID,
    *,
    now: datetime,
    snapshots: list[Snapshot] | None = None,
) -> RawSignalsInput:
    if snapshots is None:
        snapshots = await load_recent_snapshots(session, competitor_id)
    latest = latest_by_page_type(snapshots)
    return RawSignalsInput(
        competitor_id=str(competitor_id),
        tracked_page_types=await load_tracked_page_types(session, competitor_id),
        changes_last_30d_count=await count_recent_changes(session, competitor_id, now - ACTIVITY_WINDOW),
        latest_by_page_type={page_type: SnapshotSignal.from_row(s) for page_type, s in latest.items()},
        webpage_signal_texts=await load_webpage_signal_texts(session, competitor_id),
    )


def baseline_input_from(competitor_id: uuid.UUID, snapshots: list[Snapshot]) -> BaselineInput:
    latest = latest_by_page_type(snapshots)
    homepage = latest.get(PageType.HOMEPAGE)
    services = latest.get(PageType.SERVICES) or latest.get(PageType.PRODUCT_OR_SERVICES)
    return BaselineInput(
        competitor_id=str(competitor_id),
        homepage=_signal(homepage),
        about_page=_signal(find_about_page(snapshots)),
        services_page=_signal(services),
        nav_snapshot=_signal(latest.get(PageType.NAVIGATION) or homepage),
        case_studies_page=_signal(latest.get(PageType.CASE_STUDIES_OR_CUSTOMERS)),
    )


async def run_competitor_intelligence(
    session: AsyncSession, competitor_id: uuid.UUID, *, now: datetime
) -> tuple[IntelligenceReport, BaselineResult, StrategicModelResult, SeoIntelligenceResult]:
    """Engine report, baseline profile, strategic model and SEO dimensions for one competitor."""
    snapshots = await load_recent_snapshots(session, competitor_id)
    engine_input = await load_intelligence_input(session, competitor_id, now=now, snapshots=snapshots)
    report = run_intelligence_engine(engine_input)

    baseline = build_company_baseline_profile(baseline_input_from(competitor_id, snapshots))

    services = engine_input.latest_by_page_type.get(PageType.SERVICES)
    pricing = await load_latest_pricing_snapshot(session, competitor_id)
    strategic = run_strategic_model(
        build_strategic_raw_signals(
            str(competitor_id),
            services=ServiceSnapshotSignal.from_structured(services.structured_content) if services else None,
            baseline=baseline.profile,
            total_plans=pricing.total_plans if pricing is not None else 0,
            enterprise_present=pricing.enterprise_present if pricing is not None else False,
            recent_change_count_30d=engine_input.changes_last_30d_count,
        ),
        as_of=now,
    )

    pages = [
        seo_page_from_dict(s.structured_content["search_seo"])
        for s in snapshots
        if s.structured_content and s.structured_content.get("search_seo")
    ]
    seo = build_seo_intelligence(str(competitor_id), pages, as_of=now)

    logger.info(
        "🧠 Intelligence for %s: confidence=%s, archetype=%s, %d SEO pages",
        competitor_id, report.confidence.level.value, strategic.brief.archetype, len(pages),
    )
    return report, baseline, strategic, seo
