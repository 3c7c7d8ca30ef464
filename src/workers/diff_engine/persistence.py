"""
Change persistence — stores detected changes and loads snapshot pairs.

Changes are core-critical: a failed insert raises ``PersistenceError`` and
is rolled back to the savepoint opened here, leaving the caller's session
usable.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import PersistenceError
from core.models import Change, PageType, Snapshot
from workers.diff_engine.models import DetectedChange

logger = logging.getLogger(__name__)


async def load_previous_snapshot(session: AsyncSession, snapshot: Snapshot) -> Snapshot | None:
    """The capture of the same page immediately before ``snapshot``."""
    result = await session.execute(
        select(Snapshot)
        .where(
            Snapshot.page_id == snapshot.page_id,
            Snapshot.version_number < snapshot.version_number,
        )
        .order_by(desc(Snapshot.version_number))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def persist_changes(
    session: AsyncSession,
    *,
    competitor_id: uuid.UUID,
    page_id: uuid.UUID,
    before_snapshot_id: uuid.UUID,
    after_snapshot_id: uuid.UUID,
    page_url: str,
    page_type: PageType,
    changes: list[DetectedChange],
) -> list[uuid.UUID]:
    """
    Insert one ``Change`` row per detected change.

    Returns the new row ids in detection order.
    """
    if not changes:
        return []

    rows = [
        Change(
            competitor_id=competitor_id,
            page_id=page_id,
            before_snapshot_id=before_snapshot_id,
            after_snapshot_id=after_snapshot_id,
            page_url=page_url,
            page_type=page_type,
            change_type=change.change_type,
            category=change.category,
            summary=change.summary,
            details=change.to_row_details(),
            position=position,
        )
        for position, change in enumerate(changes)
    ]

    try:
        async with session.begin_nested():
            session.add_all(rows)
            await session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError("changes", str(exc)) from exc

    logger.info(
        "Detected %d changes for %s (competitor_id=%s)",
        len(rows), page_url, competitor_id,
    )
    return [row.id for row in rows]
