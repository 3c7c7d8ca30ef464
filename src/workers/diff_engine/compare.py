"""
Snapshot comparison — detect, persist changes, derive insights.

Each stage is contained: a detection failure yields an empty result, a
failed change or insight write is logged and the remaining stages still
run. The crawl loop never aborts because one page could not be compared.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import PersistenceError
from core.models import Snapshot
from workers.diff_engine.detector import detect_changes
from workers.diff_engine.models import CompareResult, PmSignalSnapshot
from workers.diff_engine.persistence import persist_changes
from workers.diff_engine.pm_signals import detect_pm_signal_changes
from workers.insights.generator import generate_insights
from workers.insights.persistence import persist_insights

logger = logging.getLogger(__name__)


def to_pm_snapshot(snapshot: Snapshot) -> PmSignalSnapshot:
    return PmSignalSnapshot(
        page_type=snapshot.page_type,
        primary_headline=snapshot.h1_text,
        primary_cta_text=snapshot.primary_cta_text,
        nav_items=tuple(snapshot.nav_labels or ()),
        html=snapshot.html or "",
    )


async def compare_snapshots(
    session: AsyncSession,
    before: Snapshot | None,
    after: Snapshot,
    *,
    persist: bool = True,
) -> CompareResult:
    """
    Compare two captures of the same page.

    ``before`` is ``None`` for the first capture of a page, which is never
    a change.
    """
    result = CompareResult(
        before_snapshot_id=before.id if before is not None else None,
        after_snapshot_id=after.id,
        page_url=after.url,
        page_type=after.page_type,
    )
    if before is None:
        return result

    try:
        result.diffs = detect_changes(before.html, after.html, after.url, after.page_type)
        result.pm_diffs = detect_pm_signal_changes(to_pm_snapshot(before), to_pm_snapshot(after))
    except Exception:
        logger.exception("Change detection failed for %s", after.url)
        return CompareResult(
            before_snapshot_id=before.id,
            after_snapshot_id=after.id,
            page_url=after.url,
            page_type=after.page_type,
        )

    if persist and result.diffs:
        try:
            result.persisted_change_ids = await persist_changes(
                session,
                competitor_id=after.competitor_id,
                page_id=after.page_id,
                before_snapshot_id=before.id,
                after_snapshot_id=after.id,
                page_url=after.url,
                page_type=after.page_type,
                changes=result.diffs,
            )
        except PersistenceError:
            logger.exception("Failed to save changes for %s", after.url)

    if persist and result.pm_diffs:
        try:
            insights = generate_insights(
                after.competitor_id,
                after.page_type,
                result.pm_diffs,
                result.persisted_change_ids,
            )
            await persist_insights(session, insights)
        except PersistenceError:
            logger.exception("Failed to generate or save insights for %s", after.url)

    return result
