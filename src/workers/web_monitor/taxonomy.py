"""
Page Taxonomy — URL / nav-text / content classifier
===================================================

Maps a competitor URL (plus optional nav link text and an HTML sample) to
one of the fixed ``PageType`` values. Classification is a pure function
over strings: ordered regex rules, then keyword fallbacks, with the first
match winning. Malformed URLs never raise; they simply do not match.

The rule tables are plain data so they can be tuned without touching the
matching logic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from core.models import PageType


@dataclass(frozen=True, slots=True)
class PageTypeDefinition:
    """Static description of a page type and the rules that detect it."""

    page_type: PageType
    label: str
    url_patterns: tuple[re.Pattern[str], ...]
    nav_text_keywords: tuple[str, ...]
    content_signals: tuple[str, ...]
    pm_value: str
    competitive_signal: str
    priority: int


def _patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(src, re.IGNORECASE) for src in sources)


# ──────────────────────────────────────────────────────────────────────
# Page type registry
# ──────────────────────────────────────────────────────────────────────

_DEFINITIONS: dict[PageType, PageTypeDefinition] = {
    PageType.HOMEPAGE: PageTypeDefinition(
        page_type=PageType.HOMEPAGE,
        label="Homepage",
        url_patterns=_patterns(r"^https?://[^/]+/?$", r"/home/?$"),
        nav_text_keywords=("home", "homepage"),
        content_signals=("hero", "get started", "book a demo", "trusted by"),
        pm_value="Homepage reveals core positioning and first-impression narrative.",
        competitive_signal="Messaging and primary CTA changes indicate go-to-market shifts.",
        priority=1,
    ),
    PageType.PRICING: PageTypeDefinition(
        page_type=PageType.PRICING,
        label="Pricing",
        url_patterns=_patterns(r"/pricing\b", r"/plans?\b", r"/packages?\b", r"/quote\b"),
        nav_text_keywords=("pricing", "plans", "packages", "get quote"),
        content_signals=("per month", "per user", "annual billing", "enterprise plan"),
        pm_value="Pricing pages show packaging, monetization, and sales motion changes.",
        competitive_signal="Price/packaging updates signal market pressure or repositioning.",
        priority=2,
    ),
    PageType.SERVICES: PageTypeDefinition(
        page_type=PageType.SERVICES,
        label="Services / Solutions",
        url_patterns=_patterns(
            r"/services?\b",
            r"/solutions?\b",
            r"/what-we-do\b",
            r"/offerings?\b",
            r"/who-we-serve\b",
            r"/who-we-work-with\b",
        ),
        nav_text_keywords=(
            "services", "solutions", "what we do", "offerings", "who we serve", "who we work with",
        ),
        # Narrow on purpose: "platform" pages must not land here.
        content_signals=(
            "our solutions", "service offering", "how we deliver", "who we serve", "clients we serve",
        ),
        pm_value="Service pages reveal capability packaging and delivery emphasis.",
        competitive_signal="Service shifts indicate consulting angle, depth, and execution model changes.",
        priority=3,
    ),
    PageType.PRODUCT_OR_SERVICES: PageTypeDefinition(
        page_type=PageType.PRODUCT_OR_SERVICES,
        label="Product or Services",
        url_patterns=_patterns(r"product(s)?\b", r"platform\b", r"capabilities?\b"),
        nav_text_keywords=("product", "products", "platform", "capabilities"),
        content_signals=("features", "capabilities", "what we offer", "our services"),
        pm_value="These pages define the offering shape and strategic focus.",
        competitive_signal="Offering changes indicate shifts in product/service positioning.",
        priority=3,
    ),
    PageType.USE_CASES_OR_INDUSTRIES: PageTypeDefinition(
        page_type=PageType.USE_CASES_OR_INDUSTRIES,
        label="Use Cases or Industries",
        url_patterns=_patterns(r"/use-cases?\b", r"/industr(y|ies)\b", r"/verticals?\b", r"/segments?\b"),
        nav_text_keywords=("use cases", "industries", "verticals", "who we serve"),
        content_signals=("for healthcare", "for finance", "for enterprise", "industry solutions"),
        pm_value="Shows target segments and where they are expanding market focus.",
        competitive_signal="Segment-specific additions suggest demand and prioritization shifts.",
        priority=4,
    ),
    PageType.CASE_STUDIES_OR_CUSTOMERS: PageTypeDefinition(
        page_type=PageType.CASE_STUDIES_OR_CUSTOMERS,
        label="Case Studies or Customers",
        url_patterns=_patterns(
            r"/case-stud(y|ies)\b", r"/customer(s)?\b", r"/success(-stories)?\b", r"/testimonials?\b",
        ),
        nav_text_keywords=(
            "case studies", "customers", "success stories", "testimonials", "client stories",
        ),
        content_signals=("customer story", "outcomes", "roi", "trusted by"),
        pm_value="Customer proof clarifies winning segments and value realization.",
        competitive_signal="New logos/case studies indicate traction in specific markets.",
        priority=3,
    ),
    PageType.CTA_ELEMENTS: PageTypeDefinition(
        page_type=PageType.CTA_ELEMENTS,
        label="CTA Elements",
        url_patterns=_patterns(r"/demo\b", r"/book(-|_)?demo\b", r"/contact\b", r"/signup\b", r"/trial\b"),
        nav_text_keywords=("book demo", "request demo", "start free", "contact sales", "free trial"),
        content_signals=("start free", "talk to sales", "request a demo", "submit"),
        pm_value="Conversion paths expose funnel strategy and qualification intent.",
        competitive_signal="CTA flow updates indicate acquisition and conversion strategy changes.",
        priority=4,
    ),
    PageType.NAVIGATION: PageTypeDefinition(
        page_type=PageType.NAVIGATION,
        label="Navigation",
        url_patterns=_patterns(r"/sitemap\b"),
        nav_text_keywords=("menu", "navigation", "site map"),
        content_signals=("header", "footer", "navigation"),
        pm_value="Navigation reflects how competitors frame and prioritize offerings.",
        competitive_signal="Nav/footer changes signal repositioning and information architecture updates.",
        priority=1,
    ),
}

# Evaluation order for every rule stage. Homepage and navigation are
# resolved separately (root path / explicit sitemap URL).
DETECTION_ORDER: tuple[PageType, ...] = (
    PageType.PRICING,
    PageType.SERVICES,
    PageType.PRODUCT_OR_SERVICES,
    PageType.USE_CASES_OR_INDUSTRIES,
    PageType.CASE_STUDIES_OR_CUSTOMERS,
    PageType.CTA_ELEMENTS,
)

_IGNORE_URL_PATTERNS = _patterns(
    r"/careers?\b",
    r"/jobs?\b",
    r"/legal\b",
    r"/privacy\b",
    r"/terms\b",
    r"/news\b",
    r"/blog\b",
    r"/help\b",
    r"/support\b",
    r"/docs?\b",
    r"/documentation\b",
)

_IGNORE_NAV_TEXT: tuple[str, ...] = (
    "careers",
    "jobs",
    "we're hiring",
    "privacy policy",
    "terms",
    "help center",
    "support",
    "documentation",
)

# Paths always attempted (best-effort) even when navigation does not link
# to them. Key: host regex; every matching entry contributes its paths.
MANDATORY_CRAWL_PATHS: dict[str, tuple[str, ...]] = {
    r"crunchbase\.com": (
        "/buy/select-product",
        "/products",
        "/offerings",
        "/solutions",
        "/services",
        "/platform",
        "/features",
    ),
    r".*": (
        "/pricing",
        "/products",
        "/product",
        "/platform",
        "/services",
        "/solutions",
        "/features",
        "/capabilities",
    ),
}

_WS_RE = re.compile(r"\s+")


def _normalize(value: str) -> str:
    return _WS_RE.sub(" ", value).strip().lower()


def _includes_any(text: str, keywords: tuple[str, ...]) -> bool:
    normalized = _normalize(text)
    if not normalized:
        return False
    return any(_normalize(keyword) in normalized for keyword in keywords)


def _is_root_path(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.path in ("", "/") or bool(re.search(r"/home/?$", parsed.path, re.IGNORECASE))


# ──────────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────────

def classify_by_url(url: str) -> PageType | None:
    """URL-only classification (pattern rules, then root path, then sitemap)."""
    if not url or not isinstance(url, str):
        return None
    for page_type in DETECTION_ORDER:
        if any(p.search(url) for p in _DEFINITIONS[page_type].url_patterns):
            return page_type
    if _is_root_path(url):
        return PageType.HOMEPAGE
    if any(p.search(url) for p in _DEFINITIONS[PageType.NAVIGATION].url_patterns):
        return PageType.NAVIGATION
    return None


def classify_page_type(
    url: str,
    nav_text: str | None = None,
    html_content: str | None = None,
) -> PageType | None:
    """
    Classify a page into a ``PageType``.

    Stages, first match wins:
      1. URL patterns (pricing → services → product → use cases →
         case studies → CTA), then root path → homepage, ``/sitemap`` →
         navigation.
      2. Nav link text keywords, same order.
      3. Content-signal keywords over the HTML / text sample, same order.

    Returns ``None`` when nothing matches.
    """
    by_url = classify_by_url(url)
    if by_url is not None:
        return by_url

    if nav_text:
        for page_type in DETECTION_ORDER:
            if _includes_any(nav_text, _DEFINITIONS[page_type].nav_text_keywords):
                return page_type

    if html_content:
        for page_type in DETECTION_ORDER:
            if _includes_any(html_content, _DEFINITIONS[page_type].content_signals):
                return page_type

    return None


def should_ignore(url: str, nav_text: str | None = None) -> bool:
    """True for careers/legal/support/blog style links that are never tracked."""
    if url and any(p.search(url) for p in _IGNORE_URL_PATTERNS):
        return True
    return bool(nav_text) and _includes_any(nav_text, _IGNORE_NAV_TEXT)


def mandatory_paths_for(url: str) -> list[str]:
    """Paths to attempt for the competitor host, host-specific entries first."""
    try:
        host = urlparse(url).netloc.lower()
    except ValueError:
        return []
    paths: list[str] = []
    for host_pattern, candidates in MANDATORY_CRAWL_PATHS.items():
        if re.search(host_pattern, host):
            for path in candidates:
                if path not in paths:
                    paths.append(path)
    return paths


def get_page_type_definition(page_type: PageType | str) -> PageTypeDefinition | None:
    try:
        return _DEFINITIONS[PageType(page_type)]
    except ValueError:
        return None


def get_all_page_type_definitions() -> list[PageTypeDefinition]:
    return list(_DEFINITIONS.values())


def page_type_label(page_type: PageType | str) -> str:
    definition = get_page_type_definition(page_type)
    return definition.label if definition else str(page_type)


def page_type_priority(page_type: PageType | str) -> int:
    definition = get_page_type_definition(page_type)
    return definition.priority if definition else 99
