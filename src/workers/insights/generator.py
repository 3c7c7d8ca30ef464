"""
Insight Generator — PM signal diffs to change-based insights
============================================================

Every ``PmSignalChangeType`` maps to exactly one insight type through
``_insight_rule``; unknown types land on ``strategic_priority``. Within one
call the first diff of each insight type wins.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum

from core.models import InsightConfidence, InsightState, PageType
from workers.diff_engine.models import PmSignalChangeType, PmSignalDiff


class ChangeInsightType(StrEnum):
    MESSAGING_SHIFT = "messaging_shift"
    CONVERSION_STRATEGY = "conversion_strategy"
    PRICING_STRATEGY = "pricing_strategy"
    PRODUCT_FOCUS = "product_focus"
    CREDIBILITY_PROOF = "credibility_proof"
    STRATEGIC_PRIORITY = "strategic_priority"


@dataclass(frozen=True, slots=True)
class InsightRule:
    insight_type: ChangeInsightType
    text: str
    confidence: InsightConfidence


@dataclass(frozen=True, slots=True)
class InsightData:
    """An insight ready to persist (change-based, observational or webpage signal)."""

    competitor_id: uuid.UUID
    page_type: PageType
    insight_type: str
    insight_text: str
    confidence: InsightConfidence = InsightConfidence.HIGH
    state: InsightState = InsightState.CHANGE_BASED
    related_change_ids: tuple[uuid.UUID, ...] = field(default_factory=tuple)


def _insight_rule(change_type: PmSignalChangeType) -> InsightRule:
    match change_type:
        case PmSignalChangeType.HOMEPAGE_HEADLINE_CHANGE:
            return InsightRule(
                ChangeInsightType.MESSAGING_SHIFT,
                "Competitor updated core positioning or messaging.",
                InsightConfidence.HIGH,
            )
        case PmSignalChangeType.CTA_TEXT_CHANGE:
            return InsightRule(
                ChangeInsightType.CONVERSION_STRATEGY,
                "Go-to-market or conversion strategy updated.",
                InsightConfidence.HIGH,
            )
        case PmSignalChangeType.PRICING_STRUCTURE_CHANGE:
            return InsightRule(
                ChangeInsightType.PRICING_STRATEGY,
                "Pricing or packaging strategy updated.",
                InsightConfidence.HIGH,
            )
        case PmSignalChangeType.PRODUCT_SERVICE_SECTION_CHANGE:
            return InsightRule(
                ChangeInsightType.PRODUCT_FOCUS,
                "Service or product focus evolving.",
                InsightConfidence.MEDIUM,
            )
        case PmSignalChangeType.CASE_STUDY_OR_CUSTOMER_LOGO_ADDED:
            return InsightRule(
                ChangeInsightType.CREDIBILITY_PROOF,
                "Credibility strengthened with new proof.",
                InsightConfidence.HIGH,
            )
        case _:
            return InsightRule(
                ChangeInsightType.STRATEGIC_PRIORITY,
                "Strategic focus area shifted.",
                InsightConfidence.HIGH,
            )


def generate_insights(
    competitor_id: uuid.UUID,
    page_type: PageType,
    diffs: list[PmSignalDiff],
    related_change_ids: list[uuid.UUID] | tuple[uuid.UUID, ...] = (),
) -> list[InsightData]:
    """One insight per distinct insight type, in first-diff order."""
    by_type: dict[ChangeInsightType, InsightData] = {}
    for diff in diffs:
        rule = _insight_rule(diff.change_type)
        if rule.insight_type in by_type:
            continue
        by_type[rule.insight_type] = InsightData(
            competitor_id=competitor_id,
            page_type=page_type,
            insight_type=rule.insight_type.value,
            insight_text=rule.text,
            confidence=rule.confidence,
            related_change_ids=tuple(related_change_ids),
        )
    return list(by_type.values())
