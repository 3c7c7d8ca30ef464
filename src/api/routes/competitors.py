"""Competitor API — movements, insights, intelligence and on-demand crawls."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db as get_session
from core.models import Change, Competitor, CrawlJob, Insight, InsightState, StrategicMovement
from workers.insights.competitive_state import (
    ChangeLike,
    InsightLike,
    derive_competitive_state,
    derive_focus_signals,
    derive_pm_interpretation,
    derive_strategic_watchlist,
)
from workers.intelligence.loader import ACTIVITY_WINDOW, load_tracked_page_types, run_competitor_intelligence

router = APIRouter(prefix="/api/competitors", tags=["competitors"])


# ── Response schemas ──────────────────────────────────────────────────

class MovementOut(BaseModel):
    id: uuid.UUID
    crawl_job_id: uuid.UUID
    page_url: str
    page_type: str | None
    change_cluster_count: int
    movement_category: str
    impact_level: str
    summary: str
    interpretation: str
    suggested_action: str
    created_at: datetime | None


class InsightOut(BaseModel):
    id: uuid.UUID
    page_type: str
    insight_type: str
    insight_text: str
    confidence: str
    state: str
    created_at: datetime | None


class CompetitiveStateOut(BaseModel):
    status: str
    tracking_confidence: str
    posture: str
    summary: list[str]
    primary_focus_areas: list[str]
    secondary_signals: list[str]
    focus_interpretation: str
    watchlist: list[dict[str, str]]
    pm_interpretation: list[str]


class InsightsResponse(BaseModel):
    competitor_id: uuid.UUID
    change_based: list[InsightOut]
    observational: list[InsightOut]
    competitive_state: CompetitiveStateOut


class CrawlQueued(BaseModel):
    competitor_id: uuid.UUID
    job_id: str | None
    status: str


async def _get_competitor(session: AsyncSession, competitor_id: uuid.UUID) -> Competitor:
    competitor = await session.get(Competitor, competitor_id)
    if competitor is None:
        raise HTTPException(status_code=404, detail="Competitor not found")
    return competitor


def _insight_out(row: Insight) -> InsightOut:
    return InsightOut(
        id=row.id,
        page_type=row.page_type.value,
        insight_type=row.insight_type,
        insight_text=row.insight_text,
        confidence=row.confidence.value,
        state=row.state.value,
        created_at=row.created_at,
    )


# ── Endpoints ─────────────────────────────────────────────────────────

@router.get("/{competitor_id}/movements", response_model=list[MovementOut])
async def list_movements(
    competitor_id: uuid.UUID,
    limit: int = 50,
    session: AsyncSession = Depends(get_session),
):
    """Strategic movements, newest crawl job first."""
    await _get_competitor(session, competitor_id)
    result = await session.execute(
        select(StrategicMovement)
        .join(CrawlJob, StrategicMovement.crawl_job_id == CrawlJob.id)
        .where(StrategicMovement.competitor_id == competitor_id)
        .order_by(desc(CrawlJob.created_at), StrategicMovement.created_at)
        .limit(limit)
    )
    return [
        MovementOut(
            id=m.id,
            crawl_job_id=m.crawl_job_id,
            page_url=m.page_url,
            page_type=m.page_type.value if m.page_type else None,
            change_cluster_count=m.change_cluster_count,
            movement_category=m.movement_category.value,
            impact_level=m.impact_level.value,
            summary=m.summary,
            interpretation=m.interpretation,
            suggested_action=m.suggested_action,
            created_at=m.created_at,
        )
        for m in result.scalars().all()
    ]


@router.get("/{competitor_id}/insights", response_model=InsightsResponse)
async def list_insights(competitor_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    """Change-based and observational insights plus the 30-day competitive state."""
    await _get_competitor(session, competitor_id)
    since = datetime.now(timezone.utc) - ACTIVITY_WINDOW

    insights = list(
        (
            await session.execute(
                select(Insight)
                .where(Insight.competitor_id == competitor_id)
                .order_by(desc(Insight.created_at))
            )
        ).scalars().all()
    )
    changes = list(
        (
            await session.execute(
                select(Change.page_type, Change.category).where(
                    Change.competitor_id == competitor_id, Change.created_at >= since
                )
            )
        ).all()
    )
    tracked = list(await load_tracked_page_types(session, competitor_id))

    recent = [
        InsightLike(page_type=i.page_type, insight_type=i.insight_type, insight_text=i.insight_text)
        for i in insights
        if i.created_at is None or i.created_at >= since
    ]
    state = derive_competitive_state(
        len(changes), tracked, recent, [ChangeLike(page_type=c.page_type, category=c.category) for c in changes]
    )
    focus = derive_focus_signals(tracked, recent)

    return InsightsResponse(
        competitor_id=competitor_id,
        change_based=[_insight_out(i) for i in insights if i.state == InsightState.CHANGE_BASED],
        observational=[_insight_out(i) for i in insights if i.state == InsightState.OBSERVATIONAL],
        competitive_state=CompetitiveStateOut(
            status=state.status.value,
            tracking_confidence=state.tracking_confidence.value,
            posture=state.posture.value,
            summary=state.summary,
            primary_focus_areas=focus.primary_focus_areas,
            secondary_signals=focus.secondary_signals,
            focus_interpretation=focus.interpretation,
            watchlist=derive_strategic_watchlist(tracked),
            pm_interpretation=derive_pm_interpretation(state.status, tracked, recent),
        ),
    )


@router.get("/{competitor_id}/intelligence")
async def get_intelligence(competitor_id: uuid.UUID, session: AsyncSession = Depends(get_session)) -> dict:
    """Engine report (with trace), company baseline, strategic model and SEO dimensions."""
    await _get_competitor(session, competitor_id)
    report, baseline, strategic, seo = await run_competitor_intelligence(
        session, competitor_id, now=datetime.now(timezone.utc)
    )
    return {
        "report": report.to_dict(),
        "baseline": baseline.to_dict(),
        "strategic": strategic.to_dict(),
        "seo": seo.to_dict(),
    }


@router.post("/{competitor_id}/crawl", response_model=CrawlQueued, status_code=202)
async def trigger_crawl(
    competitor_id: uuid.UUID,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Enqueue a crawl of one competitor on the ARQ worker."""
    await _get_competitor(session, competitor_id)
    pool = getattr(request.app.state, "arq", None)
    if pool is None:
        raise HTTPException(status_code=503, detail="Job queue unavailable")
    job = await pool.enqueue_job("run_competitor_crawl", str(competitor_id))
    return CrawlQueued(
        competitor_id=competitor_id,
        job_id=job.job_id if job is not None else None,
        status="queued" if job is not None else "already_queued",
    )
