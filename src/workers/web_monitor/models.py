"""Data models for the extraction pipeline (structural signals, nav links, CTAs, SEO data)."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum


class PrimaryFocus(StrEnum):
    """Dominant emphasis of a services page."""

    STRATEGIC = "Strategic"
    EXECUTION = "Execution"
    BALANCED = "Balanced"


@dataclass(frozen=True, slots=True)
class NavLink:
    """A same-origin link found in the header / nav zone."""

    text: str
    href: str


@dataclass(frozen=True, slots=True)
class CallToAction:
    """A scored CTA-shaped button or link."""

    text: str
    href: str | None = None
    score: int = 0


@dataclass(frozen=True, slots=True)
class ServiceContentAnalysis:
    """Keyword profile of a services page body (``<main>`` scope)."""

    strategic_keywords_count: int = 0
    execution_keywords_count: int = 0
    lifecycle_keywords_count: int = 0
    enterprise_keywords_count: int = 0
    industries: tuple[str, ...] = ()
    primary_focus: PrimaryFocus = PrimaryFocus.BALANCED
    section_count: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["industries"] = list(self.industries)
        data["primary_focus"] = str(self.primary_focus)
        return data


@dataclass(frozen=True, slots=True)
class SeoPageData:
    """On-page SEO fields used by the search dimension model."""

    url: str
    h1: str = ""
    h2: tuple[str, ...] = ()
    h3: tuple[str, ...] = ()
    meta_title: str = ""
    meta_description: str = ""
    anchors: tuple[str, ...] = ()
    slug: str = ""
    image_alt_text: tuple[str, ...] = ()
    word_count: int = 0
    published_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "h1": self.h1,
            "h2": list(self.h2),
            "h3": list(self.h3),
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "anchors": list(self.anchors),
            "slug": self.slug,
            "image_alt_text": list(self.image_alt_text),
            "word_count": self.word_count,
            "published_at": self.published_at,
        }


@dataclass(slots=True)
class StructuralSignal:
    """
    Normalized, markup-independent extraction of one page capture.

    Every field has a defined empty value so comparisons treat
    ``None`` vs ``None`` as "no change".
    """

    url: str
    http_status: int | None = None
    title: str | None = None
    h1_text: str | None = None
    h2_headings: list[str] = field(default_factory=list)
    h3_headings: list[str] = field(default_factory=list)
    nav_labels: list[str] = field(default_factory=list)
    nav_items: list[str] = field(default_factory=list)
    list_items: list[str] = field(default_factory=list)
    primary_cta_text: str | None = None
    secondary_cta_text: str | None = None
    meta_description: str = ""
    logo_url: str | None = None
    body_text: str = ""
    html_hash: str = ""
    service_content: ServiceContentAnalysis | None = None
    seo: SeoPageData | None = None

    @property
    def structured_content(self) -> dict:
        """JSON-ready payload stored alongside the snapshot row."""
        content: dict = {"meta_description": self.meta_description, "title": self.title}
        if self.service_content is not None:
            content.update(self.service_content.to_dict())
        if self.seo is not None:
            content["search_seo"] = self.seo.to_dict()
        return content


@dataclass(frozen=True, slots=True)
class FetchResult:
    """What the fetch layer hands to the pipeline for one URL."""

    url: str
    html: str
    http_status: int
    title: str | None = None
