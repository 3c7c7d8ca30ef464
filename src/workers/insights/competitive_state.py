"""
Competitive state — narrative helpers over the last 30 days of activity.

Two distinct "quiet" states are always explicit:
  - ``CompetitiveStatus.NO_DATA``: nothing is tracked yet.
  - ``CompetitiveStatus.STABLE``: pages are tracked, little or nothing moved.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum

from core.models import ChangeCategory, PageType
from workers.insights.webpage_signals import WEBPAGE_SIGNAL
from workers.web_monitor.taxonomy import get_page_type_definition, page_type_label

OBSERVATIONAL = "observational"

# Insight types that describe monitoring rather than a detected change.
_NON_CHANGE_INSIGHT_TYPES = frozenset({OBSERVATIONAL, WEBPAGE_SIGNAL})


class CompetitiveStatus(StrEnum):
    NO_DATA = "No data yet"
    STABLE = "Stable"
    MODERATE = "Moderate"
    ACTIVE = "Active"


class TrackingConfidence(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"


class CompetitivePosture(StrEnum):
    MAINTAINING = "Maintaining Position"
    EXPERIMENTING = "Experimenting"
    EXPANDING = "Expanding"


@dataclass(frozen=True, slots=True)
class InsightLike:
    page_type: PageType
    insight_type: str
    insight_text: str = ""


@dataclass(frozen=True, slots=True)
class ChangeLike:
    page_type: PageType | str | None
    category: ChangeCategory | str | None = None


@dataclass(slots=True)
class CompetitiveState:
    status: CompetitiveStatus
    tracking_confidence: TrackingConfidence
    posture: CompetitivePosture
    summary: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FocusSignals:
    primary_focus_areas: list[str]
    secondary_signals: list[str]
    interpretation: str


def _is_change_insight(insight: InsightLike) -> bool:
    return insight.insight_type not in _NON_CHANGE_INSIGHT_TYPES


def _has_change_insight(insights: list[InsightLike], page_type: PageType) -> bool:
    return any(i.page_type == page_type and _is_change_insight(i) for i in insights)


def derive_competitive_state(
    changes_last_30d_count: int,
    tracked_page_types: list[PageType],
    insights_last_30d: list[InsightLike],
    changes_last_30d: list[ChangeLike],
) -> CompetitiveState:
    tracked = list(dict.fromkeys(tracked_page_types))
    tracking_confidence = TrackingConfidence.HIGH if len(tracked) >= 2 else TrackingConfidence.MEDIUM

    if not tracked and changes_last_30d_count == 0:
        return CompetitiveState(
            status=CompetitiveStatus.NO_DATA,
            tracking_confidence=tracking_confidence,
            posture=CompetitivePosture.MAINTAINING,
            summary=[
                "No captures have been analyzed yet for this competitor.",
                "Monitoring has started and will become more comprehensive as pages are detected.",
            ],
        )

    if changes_last_30d_count >= 5:
        status = CompetitiveStatus.ACTIVE
    elif changes_last_30d_count >= 2:
        status = CompetitiveStatus.MODERATE
    else:
        status = CompetitiveStatus.STABLE

    has_pricing = _has_change_insight(insights_last_30d, PageType.PRICING)
    has_homepage = _has_change_insight(insights_last_30d, PageType.HOMEPAGE)
    has_navigation = any(
        c.page_type == PageType.NAVIGATION or c.category == ChangeCategory.NAVIGATION_STRUCTURE
        for c in changes_last_30d
    )

    posture = CompetitivePosture.MAINTAINING
    if changes_last_30d_count == 0:
        posture = CompetitivePosture.MAINTAINING
    elif has_navigation:
        posture = CompetitivePosture.EXPANDING
    elif has_pricing and has_homepage:
        posture = CompetitivePosture.EXPERIMENTING

    if tracked:
        plural = "" if len(tracked) == 1 else "s"
        coverage_line = f"Monitoring currently covers {len(tracked)} strategic area{plural}."
    else:
        coverage_line = "Monitoring has started and will become more comprehensive as pages are detected."

    status_line = {
        CompetitiveStatus.ACTIVE: "Recent activity indicates meaningful strategic movement over the last 30 days.",
        CompetitiveStatus.MODERATE: "Recent activity shows selective updates across monitored areas.",
        CompetitiveStatus.STABLE: "Recent activity remains limited, indicating short-term strategic stability.",
    }[status]

    posture_line = {
        CompetitivePosture.EXPERIMENTING: "Current signals suggest controlled experimentation in positioning and monetization.",
        CompetitivePosture.EXPANDING: "Current signals suggest expansion in information architecture or strategic surface area.",
        CompetitivePosture.MAINTAINING: "Current signals suggest the competitor is maintaining its current market position.",
    }[posture]

    return CompetitiveState(
        status=status,
        tracking_confidence=tracking_confidence,
        posture=posture,
        summary=[status_line, posture_line, coverage_line],
    )


def derive_focus_signals(
    tracked_page_types: list[PageType],
    insights_last_30d: list[InsightLike],
) -> FocusSignals:
    tracked = set(tracked_page_types)
    counts = Counter(i.page_type for i in insights_last_30d if _is_change_insight(i))

    # Counter.most_common keeps first-seen order for ties.
    ranked = counts.most_common(3)
    if ranked:
        primary = [page_type_label(page_type) for page_type, _ in ranked]
    elif tracked_page_types:
        primary = [page_type_label(page_type) for page_type in tracked_page_types[:3]]
    else:
        primary = ["No clear movement yet across monitored areas"]

    has_pricing = counts[PageType.PRICING] > 0
    has_homepage = counts[PageType.HOMEPAGE] > 0
    has_services = counts[PageType.PRODUCT_OR_SERVICES] > 0 or counts[PageType.USE_CASES_OR_INDUSTRIES] > 0

    secondary: list[str] = []
    if PageType.PRICING in tracked and not has_pricing:
        secondary.append("No pricing experimentation detected")
    if PageType.HOMEPAGE in tracked and not has_homepage:
        secondary.append("No homepage messaging shift detected")
    if (
        PageType.PRODUCT_OR_SERVICES in tracked or PageType.USE_CASES_OR_INDUSTRIES in tracked
    ) and not has_services:
        secondary.append("No services or use-case repositioning detected")
    if not secondary:
        secondary.append("No inactivity flags across high-impact monitored areas")

    interpretation = "Competitor appears focused on reinforcing existing positioning."
    if has_pricing and has_homepage:
        interpretation = "Competitor is actively tuning both market message and monetization surfaces."
    elif (has_pricing or has_homepage) and has_services:
        interpretation = "Competitor appears to be prioritizing offer clarity and solution framing."

    return FocusSignals(primary, secondary, interpretation)


def derive_strategic_watchlist(tracked_page_types: list[PageType]) -> list[dict[str, str]]:
    watchlist = []
    for page_type in dict.fromkeys(tracked_page_types):
        definition = get_page_type_definition(page_type)
        if definition is not None:
            watchlist.append({"area": definition.label, "rationale": definition.pm_value})
    if watchlist:
        return watchlist
    return [
        {
            "area": "Core strategic pages",
            "rationale": "Monitoring is active and will flag high-impact strategic surfaces as discovered.",
        }
    ]


def derive_pm_interpretation(
    status: CompetitiveStatus,
    tracked_page_types: list[PageType],
    insights_last_30d: list[InsightLike],
) -> list[str]:
    if _has_change_insight(insights_last_30d, PageType.PRICING):
        pricing_line = "Pricing movement indicates active monetization refinement."
    else:
        pricing_line = "No pricing movement suggests monetization strategy is currently unchanged."

    if _has_change_insight(insights_last_30d, PageType.HOMEPAGE):
        messaging_line = "Messaging movement indicates active positioning adjustments."
    else:
        messaging_line = "No messaging shift suggests the current positioning is likely performing."

    if status == CompetitiveStatus.NO_DATA:
        activity_line = "No captures analyzed yet; interpretation will follow the first completed crawl."
    elif status == CompetitiveStatus.STABLE:
        activity_line = "This stability period suggests focus may be on internal execution."
    elif status == CompetitiveStatus.MODERATE:
        activity_line = "Selective movement suggests focused updates rather than broad repositioning."
    else:
        activity_line = "Elevated movement suggests active iteration across multiple strategic surfaces."

    if len(set(tracked_page_types)) >= 2:
        coverage_note = "Interpretation confidence is supported by multi-page monitoring coverage."
    else:
        coverage_note = "Interpretation confidence will strengthen as monitoring coverage expands."

    return [pricing_line, messaging_line, activity_line, coverage_note]
