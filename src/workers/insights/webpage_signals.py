"""
Webpage-derived signals — qualitative reads of the latest captures.

Works on the most recent snapshot of each page type:

  - Homepage: dominant messaging theme (h1 + h2) and go-to-market motion
    implied by the primary/secondary CTA.
  - Pricing: narrative signal from headline, title and h2 headings.
  - Product / use cases: dominant capability theme.

Each derivation returns ``None`` when the page gives no signal.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable

from core.models import InsightConfidence, InsightState, PageType, Snapshot
from workers.insights.generator import InsightData
from workers.web_monitor.extractors.structural import count_keywords

WEBPAGE_SIGNAL = "webpage_signal"

HOMEPAGE_THEMES: list[tuple[str, tuple[str, ...]]] = [
    ("collaboration", ("collaboration", "collaborate", "team", "teams", "together")),
    ("productivity", ("productivity", "efficient", "efficiency", "faster", "workflow", "workflows")),
    ("security", ("security", "secure", "compliance", "trust", "governance")),
    ("scale", ("scale", "scalable", "scalability", "global", "performance")),
    ("automation", ("automation", "automate", "automated", "streamline")),
    ("enterprise", ("enterprise", "enterprises", "organization", "org", "admins")),
]

CAPABILITY_THEMES: list[tuple[str, tuple[str, ...]]] = [
    ("automation", ("automation", "automate", "workflow", "workflows", "streamline")),
    ("integrations", ("integration", "integrations", "connect", "connectors", "api")),
    ("analytics", ("analytics", "insights", "reporting", "dashboard", "metrics")),
    ("security", ("security", "secure", "compliance", "governance")),
]

_SALES_LED_RE = re.compile(r"(contact sales|talk to sales|book demo|request demo)", re.IGNORECASE)
_SELF_SERVE_RE = re.compile(r"(get started|free trial|start free|sign up|signup)", re.IGNORECASE)


def join_text(parts: Iterable[str | None]) -> str:
    text = " ".join(p for p in parts if p and p.strip())
    return re.sub(r"\s+", " ", text).strip().lower()


def _dominant_theme(text: str, groups: list[tuple[str, tuple[str, ...]]]) -> str | None:
    if not text:
        return None
    best_theme, best_score = None, 0
    for theme, keywords in groups:
        score = count_keywords(text, keywords)
        if score > best_score:
            best_theme, best_score = theme, score
    return best_theme


def derive_homepage_theme(h1_text: str | None, h2_headings: list[str] | None) -> str | None:
    return _dominant_theme(join_text([h1_text, *(h2_headings or [])]), HOMEPAGE_THEMES)


def derive_capability_theme(h1_text: str | None, h2_headings: list[str] | None) -> str | None:
    return _dominant_theme(join_text([h1_text, *(h2_headings or [])]), CAPABILITY_THEMES)


def derive_gtm_motion(primary_cta: str | None, secondary_cta: str | None) -> str | None:
    """``"a hybrid"``, ``"a sales-led"``, ``"a self-serve"`` or ``None``."""
    primary, secondary = primary_cta or "", secondary_cta or ""
    primary_sales = bool(_SALES_LED_RE.search(primary))
    primary_self = bool(_SELF_SERVE_RE.search(primary))
    secondary_sales = bool(_SALES_LED_RE.search(secondary))
    secondary_self = bool(_SELF_SERVE_RE.search(secondary))

    if (primary_sales and secondary_self) or (primary_self and secondary_sales):
        return "a hybrid"
    if primary_sales:
        return "a sales-led"
    if primary_self:
        return "a self-serve"
    if secondary_sales and not secondary_self:
        return "a sales-led"
    if secondary_self and not secondary_sales:
        return "a self-serve"
    return None


def derive_pricing_narrative(
    h1_text: str | None, title: str | None, h2_headings: list[str] | None
) -> str | None:
    text = join_text([h1_text, title, *(h2_headings or [])])
    if not text:
        return None
    if re.search(r"\benterprise\b", text):
        return "Enterprise positioning emphasized."
    if re.search(r"\bcustom\b", text):
        return "Sales-driven monetization signaled via custom packaging."
    if re.search(r"\bfree\b", text) or re.search(r"\btrial\b", text):
        return "Growth-led pricing motion signaled via free or trial language."
    return None


def latest_by_page_type(snapshots: Iterable[Snapshot]) -> dict[PageType, Snapshot]:
    """First snapshot per page type from a newest-first sequence."""
    latest: dict[PageType, Snapshot] = {}
    for snapshot in snapshots:
        latest.setdefault(snapshot.page_type, snapshot)
    return latest


def derive_webpage_signal_insights(
    competitor_id: uuid.UUID,
    snapshots: Iterable[Snapshot],
) -> list[InsightData]:
    """All webpage-signal insights for the newest-first ``snapshots``."""
    latest = latest_by_page_type(snapshots)
    lines: list[tuple[PageType, str]] = []

    homepage = latest.get(PageType.HOMEPAGE)
    if homepage is not None:
        theme = derive_homepage_theme(homepage.h1_text, homepage.h2_headings)
        if theme:
            lines.append((PageType.HOMEPAGE, f"Homepage messaging emphasizes {theme}."))
        motion = derive_gtm_motion(homepage.primary_cta_text, homepage.secondary_cta_text)
        if motion:
            lines.append((PageType.HOMEPAGE, f"Primary CTA suggests {motion} go-to-market strategy."))

    pricing = latest.get(PageType.PRICING)
    if pricing is not None:
        narrative = derive_pricing_narrative(pricing.h1_text, pricing.title, pricing.h2_headings)
        if narrative:
            lines.append((PageType.PRICING, f"Pricing narrative: {narrative}"))

    capability_source = latest.get(PageType.PRODUCT_OR_SERVICES) or latest.get(
        PageType.USE_CASES_OR_INDUSTRIES
    )
    if capability_source is not None:
        theme = derive_capability_theme(capability_source.h1_text, capability_source.h2_headings)
        if theme:
            lines.append(
                (capability_source.page_type, f"Product capabilities emphasize {theme}.")
            )

    return [
        InsightData(
            competitor_id=competitor_id,
            page_type=page_type,
            insight_type=WEBPAGE_SIGNAL,
            insight_text=text,
            confidence=InsightConfidence.HIGH,
            state=InsightState.OBSERVATIONAL,
        )
        for page_type, text in lines
    ]
