"""
Insight persistence with trailing-window deduplication.

An insight is skipped when a row with the same (competitor, page type,
insight type, text) was created inside its window: 24h for change-based
insights, 7 days for observational and webpage-signal rows. The check is a
read before insert; two concurrent crawls of one competitor can still race.

``persist_insights`` is core-critical and raises ``PersistenceError``.
The observational / webpage-signal backfills log and return 0 on failure.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import PersistenceError
from core.models import Insight, InsightConfidence, InsightState, PageType, Snapshot
from workers.insights.competitive_state import OBSERVATIONAL
from workers.insights.generator import InsightData
from workers.insights.observational import observation_text_for
from workers.insights.webpage_signals import derive_webpage_signal_insights

logger = logging.getLogger(__name__)

SIGNAL_SNAPSHOT_LOOKBACK = 60


async def has_recent_insight(
    session: AsyncSession,
    insight: InsightData,
    since: datetime,
) -> bool:
    result = await session.execute(
        select(Insight.id)
        .where(
            Insight.competitor_id == insight.competitor_id,
            Insight.page_type == insight.page_type,
            Insight.insight_type == insight.insight_type,
            Insight.insight_text == insight.insight_text,
            Insight.created_at >= since,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


def _to_row(insight: InsightData) -> Insight:
    return Insight(
        competitor_id=insight.competitor_id,
        page_type=insight.page_type,
        insight_type=insight.insight_type,
        insight_text=insight.insight_text,
        confidence=insight.confidence,
        state=insight.state,
        related_change_ids=[str(change_id) for change_id in insight.related_change_ids],
    )


async def _insert_new(
    session: AsyncSession,
    insights: Iterable[InsightData],
    window: timedelta,
) -> int:
    since = datetime.now(timezone.utc) - window
    rows: list[Insight] = []
    seen: set[tuple] = set()
    for insight in insights:
        key = (insight.competitor_id, insight.page_type, insight.insight_type, insight.insight_text)
        if key in seen or await has_recent_insight(session, insight, since):
            continue
        seen.add(key)
        rows.append(_to_row(insight))

    if not rows:
        return 0

    async with session.begin_nested():
        session.add_all(rows)
        await session.flush()
    return len(rows)


async def persist_insights(session: AsyncSession, insights: list[InsightData]) -> int:
    """Insert change-based insights not seen in the last 24h. Returns rows inserted."""
    if not insights:
        return 0
    try:
        inserted = await _insert_new(
            session, insights, timedelta(hours=settings.change_insight_dedup_hours)
        )
    except SQLAlchemyError as exc:
        raise PersistenceError("insights", str(exc)) from exc
    if inserted:
        logger.info("Saved %d change-based insights", inserted)
    return inserted


async def persist_observational_insights(
    session: AsyncSession,
    competitor_id: uuid.UUID,
    page_types: Iterable[PageType],
) -> int:
    """Best-effort backfill of one ``observational`` row per tracked page type."""
    insights = [
        InsightData(
            competitor_id=competitor_id,
            page_type=page_type,
            insight_type=OBSERVATIONAL,
            insight_text=observation_text_for(page_type),
            confidence=InsightConfidence.HIGH,
            state=InsightState.OBSERVATIONAL,
        )
        for page_type in dict.fromkeys(page_types)
    ]
    if not insights:
        return 0
    try:
        return await _insert_new(
            session, insights, timedelta(days=settings.observational_dedup_days)
        )
    except SQLAlchemyError as exc:
        logger.warning("Observational insight backfill failed for %s: %s", competitor_id, exc)
        return 0


async def persist_webpage_signal_insights(
    session: AsyncSession,
    competitor_id: uuid.UUID,
) -> int:
    """Best-effort webpage-signal insights from the latest snapshot of each page type."""
    try:
        result = await session.execute(
            select(Snapshot)
            .where(Snapshot.competitor_id == competitor_id)
            .order_by(desc(Snapshot.captured_at))
            .limit(SIGNAL_SNAPSHOT_LOOKBACK)
        )
        snapshots = list(result.scalars().all())
        insights = derive_webpage_signal_insights(competitor_id, snapshots)
        if not insights:
            return 0
        return await _insert_new(
            session, insights, timedelta(days=settings.observational_dedup_days)
        )
    except SQLAlchemyError as exc:
        logger.warning("Webpage signal insights failed for %s: %s", competitor_id, exc)
        return 0
