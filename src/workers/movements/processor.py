"""
Strategic Movement Aggregator
=============================

Groups the changes of one crawl job by page URL and turns every group into
one append-only ``StrategicMovement``. Category and impact are two
independent cascades: a CTA change on the homepage is a Conversion
Optimization movement whose impact is HIGH through the homepage rule.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import PersistenceError
from core.models import Change, ImpactLevel, MovementCategory, Snapshot, StrategicMovement

logger = logging.getLogger(__name__)

Notifier = Callable[[uuid.UUID, list[str]], Awaitable[bool]]

_CTA_CHANGE_TYPES = frozenset({"cta_text_change", "cta_change"})


@dataclass(frozen=True, slots=True)
class StrategicGuidance:
    interpretation: str
    suggested_action: str


def strategic_guidance(category: MovementCategory) -> StrategicGuidance:
    match category:
        case MovementCategory.PRICING_MOVEMENT:
            return StrategicGuidance(
                "Competitor may be refining monetization strategy.",
                "Review pricing tiers and CTA alignment.",
            )
        case MovementCategory.CONVERSION_OPTIMIZATION:
            return StrategicGuidance(
                "Likely testing conversion language or sales motion.",
                "Compare conversion language with your funnel.",
            )
        case MovementCategory.CONTENT_EXPANSION:
            return StrategicGuidance(
                "Indicates SEO or thought leadership investment.",
                "Evaluate topic clusters for SEO competition.",
            )
        case MovementCategory.COMPLIANCE_UPDATE:
            return StrategicGuidance(
                "Low strategic significance unless policy scope changed.",
                "No immediate action required.",
            )
        case _:
            return StrategicGuidance(
                "Refining value proposition or target audience messaging.",
                "Assess how this matches your current positioning.",
            )


STRATEGIC_MAP: dict[MovementCategory, StrategicGuidance] = {
    category: strategic_guidance(category) for category in MovementCategory
}


def _contains_any(text: str, needles: tuple[str, ...]) -> bool:
    return any(needle in text for needle in needles)


def _is_homepage_url(page_url: str) -> bool:
    """Domain root only (``https://host`` or ``https://host/``)."""
    try:
        path = urlparse(page_url).path
    except ValueError:
        return False
    return not [segment for segment in path.split("/") if segment]


def classify_movement(page_url: str, change_types: Iterable[str]) -> MovementCategory:
    url = page_url.lower()
    if "pricing" in url:
        return MovementCategory.PRICING_MOVEMENT
    if _contains_any(url, ("blog", "news", "insight")):
        return MovementCategory.CONTENT_EXPANSION
    if _contains_any(url, ("privacy", "terms", "legal")):
        return MovementCategory.COMPLIANCE_UPDATE
    if any(str(getattr(t, "value", t)) in _CTA_CHANGE_TYPES for t in change_types):
        return MovementCategory.CONVERSION_OPTIMIZATION
    return MovementCategory.POSITIONING_ADJUSTMENT


def calculate_impact(page_url: str, category: MovementCategory) -> ImpactLevel:
    url = page_url.lower()
    if "pricing" in url or category == MovementCategory.PRICING_MOVEMENT:
        return ImpactLevel.HIGH
    if _is_homepage_url(page_url):
        return ImpactLevel.HIGH
    if _contains_any(url, ("services", "product", "feature")):
        return ImpactLevel.HIGH
    if _contains_any(url, ("blog", "news")) or category == MovementCategory.CONTENT_EXPANSION:
        return ImpactLevel.MEDIUM
    if _contains_any(url, ("privacy", "terms", "legal")) or category == MovementCategory.COMPLIANCE_UPDATE:
        return ImpactLevel.LOW
    return ImpactLevel.MEDIUM


def group_by_page(changes: Iterable[Change]) -> dict[str, list[Change]]:
    """Page URL → changes, both in first-seen order."""
    groups: dict[str, list[Change]] = {}
    for change in changes:
        groups.setdefault(change.page_url, []).append(change)
    return groups


def build_movements(job_id: uuid.UUID, changes: Iterable[Change]) -> list[StrategicMovement]:
    """One movement per page URL; ``change_cluster_count`` equals the group size."""
    movements: list[StrategicMovement] = []
    for page_url, group in group_by_page(changes).items():
        first = group[0]
        change_types = list(dict.fromkeys(str(getattr(c.change_type, "value", c.change_type)) for c in group))
        category = classify_movement(page_url, change_types)
        guidance = STRATEGIC_MAP[category]
        movements.append(
            StrategicMovement(
                competitor_id=first.competitor_id,
                crawl_job_id=job_id,
                page_url=page_url,
                page_type=first.page_type,
                change_cluster_count=len(group),
                movement_category=category,
                impact_level=calculate_impact(page_url, category),
                summary=f"Detected {len(group)} changes ({', '.join(change_types)}) on {page_url}.",
                interpretation=guidance.interpretation,
                suggested_action=guidance.suggested_action,
            )
        )
    return movements


async def load_job_changes(session: AsyncSession, job_id: uuid.UUID) -> list[Change]:
    """Changes whose after-snapshot was captured by ``job_id``, in capture order."""
    result = await session.execute(
        select(Change)
        .join(Snapshot, Change.after_snapshot_id == Snapshot.id)
        .where(Snapshot.crawl_job_id == job_id)
        .order_by(Snapshot.captured_at, Snapshot.id, Change.position)
    )
    return list(result.scalars().all())


async def load_movement_pages(session: AsyncSession, job_id: uuid.UUID) -> set[str]:
    """Page URLs that already carry a movement for ``job_id``."""
    result = await session.execute(
        select(StrategicMovement.page_url).where(StrategicMovement.crawl_job_id == job_id)
    )
    return set(result.scalars().all())


async def process_movements_for_job(
    session: AsyncSession,
    job_id: uuid.UUID,
    notifier: Notifier | None = None,
) -> list[StrategicMovement]:
    """
    Aggregate and store the movements of one completed crawl job.

    Pages that already have a movement for the job are skipped, so running
    it again stores and notifies nothing new. HIGH movements are handed to
    ``notifier`` with the summaries of their changes once the rows are stored.
    """
    changes = await load_job_changes(session, job_id)
    if not changes:
        logger.info("No changes found for job %s", job_id)
        return []

    existing = await load_movement_pages(session, job_id)
    movements = [m for m in build_movements(job_id, changes) if m.page_url not in existing]
    if not movements:
        logger.info("Movements for job %s already stored", job_id)
        return []

    try:
        async with session.begin_nested():
            session.add_all(movements)
            await session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError("strategic movements", str(exc)) from exc

    groups = group_by_page(changes)
    for movement in movements:
        logger.info(
            "Saved %s impact movement: %s for %s",
            movement.impact_level.value, movement.movement_category.value, movement.page_url,
        )
        if notifier is not None and movement.impact_level == ImpactLevel.HIGH:
            await notifier(movement.competitor_id, [c.summary for c in groups[movement.page_url]])

    return movements
