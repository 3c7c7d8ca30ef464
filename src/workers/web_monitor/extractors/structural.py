"""
Structural Signal Extractor — markup-independent page fields
=============================================================
Turns raw HTML into a ``StructuralSignal``: title, headline, h2/h3
headings, nav labels, list items, primary/secondary CTA text, meta
description, logo URL and (for services pages) a keyword profile of the
page body.

Extracts:
  - Headline: first ``<h1>`` (main / header scope first)
  - Headings: main-scoped h2/h3 when present, capped and deduped
  - Navigation: same-origin header/nav links, ignored links filtered
  - CTAs: scored CTA-verb buttons/links, top two unique by text
  - Logo: scored ``<img>`` (alt > class/id > src containing "logo")

Any input, including malformed markup, yields a defined result.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from core.models import PageType
from workers.web_monitor.extractors.base import BaseExtractor
from workers.web_monitor.html_utils import (
    compute_html_hash,
    dedupe_casefold,
    normalize_text,
    normalize_whitespace,
    resolve_href,
    same_origin,
    strip_non_content,
)
from workers.web_monitor.models import (
    CallToAction,
    NavLink,
    PrimaryFocus,
    SeoPageData,
    ServiceContentAnalysis,
    StructuralSignal,
)
from workers.web_monitor.taxonomy import should_ignore

logger = logging.getLogger(__name__)

# ── Regex Patterns ─────────────────────────────────────────────────────

CTA_PATTERN = re.compile(
    r"(get started|book (?:a )?demo|request (?:a )?demo|start free|free trial|"
    r"contact sales|talk to sales|sign up|signup|try (?:it )?(?:for )?free)",
    re.IGNORECASE,
)

_CTA_SELECTOR = "main a[href], header a[href], a[href], button"
_NAV_SELECTOR = "header nav a[href], nav a[href], header a[href]"

# ── Limits ─────────────────────────────────────────────────────────────

MAX_HEADING_LENGTH = 140
MAX_H2 = 30
MAX_H3 = 50
MAX_NAV_LINKS = 25
MAX_LIST_ITEMS = 120
MAX_CTA_CANDIDATES = 300

# ── Service content keyword groups ────────────────────────────────────

_STRATEGIC_KEYWORDS = ("strategy", "transformation", "advisory", "roadmap", "innovation", "operating model")
_EXECUTION_KEYWORDS = ("implementation", "delivery", "deployment", "build", "integrate", "optimize")
_LIFECYCLE_KEYWORDS = ("discovery", "design", "launch", "support", "operate", "maintenance")
_ENTERPRISE_KEYWORDS = ("enterprise", "global", "governance", "compliance", "cxo", "fortune")
_INDUSTRIES = (
    "healthcare",
    "finance",
    "banking",
    "insurance",
    "retail",
    "manufacturing",
    "logistics",
    "telecom",
    "saas",
    "public sector",
    "education",
    "energy",
)


def count_keywords(text: str, keywords: tuple[str, ...] | list[str]) -> int:
    """Whole-word occurrences of every keyword in ``text``."""
    total = 0
    for keyword in keywords:
        if keyword:
            total += len(re.findall(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE))
    return total


def _text(node: Tag) -> str:
    return normalize_whitespace(node.get_text(" ", strip=True))


def _scoped(soup: BeautifulSoup, tag: str) -> list[Tag]:
    within_main = soup.select(f"main {tag}")
    return within_main if within_main else soup.select(tag)


class StructuralSignalExtractor(BaseExtractor[StructuralSignal]):
    """Builds the structural signal record for one page capture."""

    def __init__(
        self,
        html: str | None,
        page_url: str,
        *,
        http_status: int | None = 200,
        page_type: PageType | None = None,
    ) -> None:
        super().__init__(html, page_url)
        self.http_status = http_status
        self.page_type = page_type
        strip_non_content(self.soup)

    def extract(self) -> StructuralSignal:
        try:
            return self._extract()
        except Exception:
            logger.warning("Structural extraction failed for %s", self.page_url, exc_info=True)
            return StructuralSignal(url=self.page_url, http_status=self.http_status)

    def _extract(self) -> StructuralSignal:
        nav_links = self.extract_nav_links()
        ctas = self.extract_top_ctas(limit=2)
        body = self.soup.body or self.soup

        return StructuralSignal(
            url=self.page_url,
            http_status=self.http_status,
            title=self.extract_title(),
            h1_text=self.extract_h1(),
            h2_headings=self._headings("h2", MAX_H2),
            h3_headings=self._headings("h3", MAX_H3),
            nav_labels=dedupe_casefold([link.text for link in nav_links]),
            nav_items=list(dict.fromkeys(link.href for link in nav_links)),
            list_items=self.extract_list_items(),
            primary_cta_text=ctas[0].text if ctas else None,
            secondary_cta_text=ctas[1].text if len(ctas) > 1 else None,
            meta_description=self.extract_meta_description(),
            logo_url=self.extract_logo_url(),
            body_text=normalize_text(body.get_text(" ")),
            html_hash=compute_html_hash(self.html),
            service_content=(
                self.analyze_service_content() if self.page_type == PageType.SERVICES else None
            ),
            seo=self.extract_seo_data(),
        )

    # ── Sub-extractors ────────────────────────────────────────────────

    def extract_title(self) -> str | None:
        if self.soup.title is not None:
            title = normalize_whitespace(self.soup.title.get_text())
            if title:
                return title
        og = self.soup.find("meta", attrs={"property": "og:title"})
        if og and og.get("content"):
            return normalize_whitespace(og["content"]) or None
        return None

    def extract_h1(self) -> str | None:
        node = self.soup.select_one("main h1, header h1, h1")
        if node is None:
            return None
        return _text(node) or None

    def _headings(self, tag: str, limit: int) -> list[str]:
        texts = [_text(node) for node in _scoped(self.soup, tag)]
        texts = [t for t in texts if t and len(t) <= MAX_HEADING_LENGTH]
        return dedupe_casefold(texts, limit)

    def extract_nav_links(self) -> list[NavLink]:
        links: list[NavLink] = []
        seen: set[str] = set()
        for anchor in self.soup.select(_NAV_SELECTOR):
            text = _text(anchor)
            if len(text) < 2:
                continue
            href = resolve_href(self.page_url, anchor.get("href"))
            if not href or not same_origin(href, self.page_url):
                continue
            if should_ignore(href, text):
                continue
            key = f"{href}::{text.lower()}"
            if key in seen:
                continue
            seen.add(key)
            links.append(NavLink(text=text, href=href))
            if len(links) >= MAX_NAV_LINKS:
                break
        return links

    def extract_list_items(self) -> list[str]:
        texts = [_text(node) for node in _scoped(self.soup, "li")]
        texts = [t for t in texts if 3 <= len(t) <= 180]
        return dedupe_casefold(texts, MAX_LIST_ITEMS)

    def extract_meta_description(self) -> str:
        for attrs in ({"name": "description"}, {"property": "og:description"}):
            meta = self.soup.find("meta", attrs=attrs)
            if meta and meta.get("content"):
                return normalize_whitespace(meta["content"])
        return ""

    def extract_top_ctas(self, limit: int = 2) -> list[CallToAction]:
        """
        Score CTA-shaped elements and keep the best ``limit`` unique by text.

        Score: CTA verb match (+10, required), inside main/header (+2),
        short label between 2 and 39 chars (+1).
        """
        candidates: list[CallToAction] = []
        for element in self.soup.select(_CTA_SELECTOR)[:MAX_CTA_CANDIDATES]:
            text = _text(element)
            if not text or not CTA_PATTERN.search(text):
                continue
            score = 10
            if element.find_parent(["main", "header"]) is not None:
                score += 2
            if 1 < len(text) < 40:
                score += 1
            href = resolve_href(self.page_url, element.get("href")) if element.name == "a" else None
            candidates.append(CallToAction(text=text, href=href, score=score))

        candidates.sort(key=lambda cta: cta.score, reverse=True)
        unique: dict[str, CallToAction] = {}
        for cta in candidates:
            unique.setdefault(cta.text.lower(), cta)
            if len(unique) >= limit:
                break
        return list(unique.values())

    def extract_logo_url(self) -> str | None:
        best_src: str | None = None
        best_score = 0
        for img in self.soup.select("img[src]"):
            src = (img.get("src") or "").strip()
            if not src:
                continue
            alt = (img.get("alt") or "").lower()
            classes = " ".join(img.get("class") or []).lower()
            id_attr = (img.get("id") or "").lower()
            score = 0
            if "logo" in alt:
                score += 5
            if "logo" in classes or "logo" in id_attr:
                score += 4
            if "logo" in src.lower():
                score += 3
            if score > best_score:
                best_src, best_score = src, score
        if best_src is None:
            return None
        return resolve_href(self.page_url, best_src)

    def analyze_service_content(self) -> ServiceContentAnalysis:
        main = self.soup.find("main")
        text = normalize_text(main.get_text(" ")) if main is not None else ""

        strategic = count_keywords(text, _STRATEGIC_KEYWORDS)
        execution = count_keywords(text, _EXECUTION_KEYWORDS)
        if strategic > execution:
            focus = PrimaryFocus.STRATEGIC
        elif execution > strategic:
            focus = PrimaryFocus.EXECUTION
        else:
            focus = PrimaryFocus.BALANCED

        return ServiceContentAnalysis(
            strategic_keywords_count=strategic,
            execution_keywords_count=execution,
            lifecycle_keywords_count=count_keywords(text, _LIFECYCLE_KEYWORDS),
            enterprise_keywords_count=count_keywords(text, _ENTERPRISE_KEYWORDS),
            industries=tuple(i for i in _INDUSTRIES if i in text),
            primary_focus=focus,
            section_count=min(len(self.soup.find_all("h2")) + len(self.soup.find_all("h3")), 50),
        )

    def extract_seo_data(self) -> SeoPageData:
        anchors: list[str] = []
        for anchor in self.soup.select("a[href]"):
            text = _text(anchor)
            href = resolve_href(self.page_url, anchor.get("href"))
            if href and same_origin(href, self.page_url) and 2 <= len(text) <= 120:
                anchors.append(text)
        alts = [
            normalize_whitespace(img.get("alt"))
            for img in self.soup.select("img[alt]")
        ]
        main = self.soup.find("main") or self.soup.body or self.soup
        try:
            segments = [s for s in urlparse(self.page_url).path.split("/") if s]
        except ValueError:
            segments = []
        published = self.soup.find("meta", attrs={"property": "article:published_time"})
        time_tag = self.soup.find("time", attrs={"datetime": True})

        return SeoPageData(
            url=self.page_url,
            h1=self.extract_h1() or "",
            h2=tuple(self._headings("h2", 30)),
            h3=tuple(self._headings("h3", 50)),
            meta_title=self.extract_title() or "",
            meta_description=self.extract_meta_description(),
            anchors=tuple(dedupe_casefold(anchors, 200)),
            slug=re.sub(r"[-_]+", " ", segments[-1]).strip() if segments else "",
            image_alt_text=tuple(dedupe_casefold([a for a in alts if 2 <= len(a) <= 180], 120)),
            word_count=len(normalize_whitespace(main.get_text(" ")).split()),
            published_at=(
                (published.get("content") if published is not None else None)
                or (time_tag.get("datetime") if time_tag is not None else None)
            ),
        )


def extract_structural_signal(
    html: str | None,
    page_url: str,
    http_status: int | None = 200,
    page_type: PageType | None = None,
) -> StructuralSignal:
    """Convenience wrapper: one call, one ``StructuralSignal``."""
    return StructuralSignalExtractor(
        html, page_url, http_status=http_status, page_type=page_type
    ).extract()
