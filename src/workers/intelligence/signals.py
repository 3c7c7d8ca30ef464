"""
Raw signal assembly for the intelligence engine.

Folds the latest snapshot per page type, the recent change count and the
stored webpage-signal insight texts into one ``RawSignals`` bundle.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from core.models import PageType

_MESSAGING_THEME = re.compile(r"homepage messaging emphasizes\s+([a-z- ]+)\.", re.IGNORECASE)
_GTM_MOTION = re.compile(r"primary cta suggests\s+(a .*?)\s+go-to-market strategy\.", re.IGNORECASE)
_PRICING_NARRATIVES = (
    re.compile(r"(Enterprise positioning emphasized\.)", re.IGNORECASE),
    re.compile(r"(Sales-driven monetization.*?\.)", re.IGNORECASE),
    re.compile(r"(Growth-led pricing motion.*?\.)", re.IGNORECASE),
)
_CAPABILITY_THEME = re.compile(r"product capabilities emphasize\s+([a-z- ]+)\.", re.IGNORECASE)

MAX_EVIDENCE_HEADINGS = 12


@dataclass(frozen=True, slots=True)
class SnapshotSignal:
    """The structural fields of one stored snapshot the models read."""

    url: str = ""
    http_status: int | None = None
    title: str | None = None
    h1_text: str | None = None
    h2_headings: tuple[str, ...] = ()
    h3_headings: tuple[str, ...] = ()
    list_items: tuple[str, ...] = ()
    nav_labels: tuple[str, ...] = ()
    structured_content: dict | None = None

    @classmethod
    def from_row(cls, row: Any) -> "SnapshotSignal":
        return cls(
            url=row.url or "",
            http_status=row.http_status,
            title=row.title,
            h1_text=row.h1_text,
            h2_headings=tuple(row.h2_headings or ()),
            h3_headings=tuple(row.h3_headings or ()),
            list_items=tuple(row.list_items or ()),
            nav_labels=tuple(row.nav_labels or ()),
            structured_content=dict(row.structured_content) if row.structured_content else None,
        )


@dataclass(frozen=True, slots=True)
class ServiceSnapshotSignal:
    strategic_keywords_count: int = 0
    execution_keywords_count: int = 0
    lifecycle_keywords_count: int = 0
    enterprise_keywords_count: int = 0
    industries: tuple[str, ...] = ()
    primary_focus: str = "Balanced"
    section_count: int | None = None

    @classmethod
    def from_structured(cls, data: Mapping[str, Any] | None) -> "ServiceSnapshotSignal | None":
        if not data or "primary_focus" not in data:
            return None
        section_count = data.get("section_count")
        return cls(
            strategic_keywords_count=int(data.get("strategic_keywords_count") or 0),
            execution_keywords_count=int(data.get("execution_keywords_count") or 0),
            lifecycle_keywords_count=int(data.get("lifecycle_keywords_count") or 0),
            enterprise_keywords_count=int(data.get("enterprise_keywords_count") or 0),
            industries=tuple(data.get("industries") or ()),
            primary_focus=str(data.get("primary_focus") or "Balanced"),
            section_count=int(section_count) if isinstance(section_count, int) else None,
        )


@dataclass(frozen=True, slots=True)
class ServicesSignal:
    snapshot: ServiceSnapshotSignal | None
    evidence_headings: tuple[str, ...]
    blocked_by_bot_mitigation: bool


@dataclass(frozen=True, slots=True)
class WebpageSignals:
    messaging_theme: str | None = None
    gtm_motion: str | None = None
    pricing_narrative: str | None = None
    capability_theme: str | None = None


@dataclass(frozen=True, slots=True)
class RawSignalsInput:
    competitor_id: str
    tracked_page_types: tuple[PageType, ...] = ()
    changes_last_30d_count: int = 0
    latest_by_page_type: Mapping[PageType, SnapshotSignal] = field(default_factory=dict)
    webpage_signal_texts: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RawSignals:
    competitor_id: str
    tracked_page_types: tuple[PageType, ...]
    changes_last_30d_count: int
    services: ServicesSignal
    webpage_signals: WebpageSignals


def is_bot_challenge(snapshot: SnapshotSignal | None) -> bool:
    """A 401/403 interstitial ("Just a moment...") served instead of the page."""
    if snapshot is None:
        return False
    return snapshot.http_status in (401, 403) and "just a moment" in (snapshot.title or "").lower()


def pick_first_matching(texts: Iterable[str], pattern: re.Pattern) -> str | None:
    for text in texts:
        match = pattern.search(text)
        if match:
            return match.group(1) if match.groups() else match.group(0)
    return None


def build_raw_signals(data: RawSignalsInput) -> RawSignals:
    texts = list(data.webpage_signal_texts)

    pricing_narrative = None
    for pattern in _PRICING_NARRATIVES:
        pricing_narrative = pick_first_matching(texts, pattern)
        if pricing_narrative:
            break

    services_snapshot = data.latest_by_page_type.get(PageType.SERVICES)
    headings = services_snapshot.h2_headings if services_snapshot is not None else ()

    return RawSignals(
        competitor_id=data.competitor_id,
        tracked_page_types=tuple(data.tracked_page_types),
        changes_last_30d_count=data.changes_last_30d_count,
        services=ServicesSignal(
            snapshot=ServiceSnapshotSignal.from_structured(
                services_snapshot.structured_content if services_snapshot is not None else None
            ),
            evidence_headings=tuple(h for h in headings if h)[:MAX_EVIDENCE_HEADINGS],
            blocked_by_bot_mitigation=is_bot_challenge(services_snapshot),
        ),
        webpage_signals=WebpageSignals(
            messaging_theme=pick_first_matching(texts, _MESSAGING_THEME),
            gtm_motion=pick_first_matching(texts, _GTM_MOTION),
            pricing_narrative=pricing_narrative,
            capability_theme=pick_first_matching(texts, _CAPABILITY_THEME),
        ),
    )
