"""
Observational insights — the "nothing changed, still monitoring" narrative.

Two text tables live here: the lines rendered next to change-based
insights (``generate_observational_insights``) and the shorter lines stored
as ``observational`` rows by the crawl backfill (``observation_text_for``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from core.models import InsightConfidence, InsightState, PageType

NO_CHANGES_SO_FAR = "No strategic changes detected so far."
PAGES_MONITORED = "Pages are actively monitored; no changes detected."


class ObservationalInsightType(StrEnum):
    PAGE_MONITORING = "page_monitoring"
    COVERAGE_STATUS = "coverage_status"
    STABILITY_INDICATOR = "stability_indicator"


@dataclass(frozen=True, slots=True)
class ObservationalInsight:
    type: ObservationalInsightType
    text: str
    confidence: InsightConfidence
    state: InsightState = InsightState.OBSERVATIONAL


_MONITORING_LINES: dict[PageType, str] = {
    PageType.HOMEPAGE: "Homepage under continuous tracking.",
    PageType.PRICING: "Pricing page detected; no changes observed.",
    PageType.SERVICES: "Services and solutions pages detected and monitored.",
    PageType.PRODUCT_OR_SERVICES: "Services page actively monitored.",
    PageType.USE_CASES_OR_INDUSTRIES: "Messaging-focused pages tracked and stable.",
    PageType.CASE_STUDIES_OR_CUSTOMERS: "Case studies detected and monitored.",
    PageType.CTA_ELEMENTS: "Conversion pages actively monitored.",
    PageType.NAVIGATION: "Navigation structure tracked and stable.",
}

_STORED_OBSERVATIONS: dict[PageType, str] = {
    PageType.HOMEPAGE: "Homepage is actively monitored.",
    PageType.PRICING: "Pricing page detected and tracked.",
    PageType.PRODUCT_OR_SERVICES: "Services pages under continuous observation.",
    PageType.USE_CASES_OR_INDUSTRIES: "Use-case and industry pages are actively monitored.",
    PageType.CASE_STUDIES_OR_CUSTOMERS: "Case studies and customer proof pages are tracked.",
    PageType.NAVIGATION: "Navigation structure is actively monitored.",
    PageType.CTA_ELEMENTS: "Primary CTA elements are actively monitored.",
}


def _known_page_types(values) -> list[PageType]:
    """Drop unknown values, keep first-seen order, dedupe."""
    known: list[PageType] = []
    for value in values:
        try:
            page_type = PageType(value)
        except ValueError:
            continue
        if page_type not in known:
            known.append(page_type)
    return known


def monitoring_line(page_type: PageType) -> str:
    return _MONITORING_LINES.get(page_type, PAGES_MONITORED)


def observation_text_for(page_type: PageType) -> str:
    return _STORED_OBSERVATIONS.get(page_type, "Page is actively monitored; no changes detected.")


def generate_observational_insights(
    page_types: list[PageType | str],
    page_types_with_insights: list[PageType | str],
    has_any_insights: bool,
) -> list[ObservationalInsight]:
    """
    Lines for tracked page types without change-based insights.

    A competitor with no insights at all gets a leading stability line; if
    page types are tracked but nothing else applies, a generic coverage line
    is returned instead of an empty list.
    """
    tracked = _known_page_types(page_types)
    covered = set(_known_page_types(page_types_with_insights))

    insights = [
        ObservationalInsight(
            ObservationalInsightType.PAGE_MONITORING,
            monitoring_line(page_type),
            InsightConfidence.HIGH,
        )
        for page_type in tracked
        if page_type not in covered
    ]

    if not has_any_insights:
        insights.insert(
            0,
            ObservationalInsight(
                ObservationalInsightType.STABILITY_INDICATOR,
                NO_CHANGES_SO_FAR,
                InsightConfidence.HIGH,
            ),
        )

    if not insights and tracked:
        insights.append(
            ObservationalInsight(
                ObservationalInsightType.COVERAGE_STATUS,
                PAGES_MONITORED,
                InsightConfidence.MEDIUM,
            )
        )

    return insights
