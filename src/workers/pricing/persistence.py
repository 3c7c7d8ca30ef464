"""
Pricing persistence — snapshot + plans insert, pricing changes upsert.

The previous snapshot is the competitor's latest by ``captured_at``, read
before the new row is written so the pair is strictly ordered. Pricing
changes are written with ``ON CONFLICT DO NOTHING`` on their natural key
(pricing snapshot, change type, description).
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import desc, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import PersistenceError
from core.models import PricingChange, PricingPlan, PricingSnapshot
from workers.pricing.intelligence import (
    PricingChangeData,
    PricingSnapshotData,
    diff_pricing_snapshots,
    extract_pricing_snapshot,
)

logger = logging.getLogger(__name__)


async def load_latest_pricing_snapshot(
    session: AsyncSession, competitor_id: uuid.UUID
) -> PricingSnapshot | None:
    result = await session.execute(
        select(PricingSnapshot)
        .where(PricingSnapshot.competitor_id == competitor_id)
        .order_by(desc(PricingSnapshot.captured_at))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def persist_pricing_intelligence(
    session: AsyncSession,
    *,
    competitor_id: uuid.UUID,
    snapshot_id: uuid.UUID | None,
    html: str | None,
    page_url: str,
    captured_at: datetime,
) -> list[PricingChangeData]:
    """
    Extract, store and diff one pricing-page capture.

    Returns the pricing changes detected against the previous capture.
    """
    extracted = extract_pricing_snapshot(html, page_url)

    try:
        async with session.begin_nested():
            previous_row = await load_latest_pricing_snapshot(session, competitor_id)
            previous = PricingSnapshotData.from_row(previous_row) if previous_row is not None else None

            row = PricingSnapshot(
                competitor_id=competitor_id,
                snapshot_id=snapshot_id,
                captured_at=captured_at,
                total_plans=extracted.total_plans,
                entry_price=extracted.entry_price,
                billing_model=extracted.billing_model,
                free_trial=extracted.free_trial,
                enterprise_present=extracted.enterprise_present,
                pricing_structure=extracted.pricing_structure,
                pricing_summary_hash=extracted.pricing_summary_hash,
                capture_status=extracted.capture_status,
                plans=[
                    PricingPlan(
                        position=position,
                        plan_name=plan.plan_name,
                        price_value=plan.price_value,
                        billing_interval=plan.billing_interval,
                        feature_count=plan.feature_count,
                        cta_text=plan.cta_text,
                        highlight_flag=plan.highlight_flag,
                    )
                    for position, plan in enumerate(extracted.plans)
                ],
            )
            session.add(row)
            await session.flush()

            changes = diff_pricing_snapshots(previous, extracted)
            if changes:
                stmt = insert(PricingChange).values(
                    [
                        {
                            "id": uuid.uuid4(),
                            "pricing_snapshot_id": row.id,
                            "change_type": change.change_type,
                            "impact_level": change.impact_level,
                            "description": change.description,
                        }
                        for change in changes
                    ]
                )
                await session.execute(
                    stmt.on_conflict_do_nothing(constraint="uq_pricing_change_natural_key")
                )
    except SQLAlchemyError as exc:
        raise PersistenceError("pricing snapshot", str(exc)) from exc

    logger.info(
        "💲 Pricing snapshot for %s: %d plans, %d changes (%s)",
        page_url, extracted.total_plans, len(changes), extracted.capture_status.value,
    )
    return changes
