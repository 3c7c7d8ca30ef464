"""
PM Signal Differ — product/marketing lens over a snapshot pair
==============================================================

Maps specific field deltas to the closed ``PmSignalChangeType`` set.
Coarser than the structural detector on purpose: its output feeds the
insight rules only.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from core.models import InsightConfidence, PageType
from workers.diff_engine.models import PmSignalChangeType, PmSignalDiff, PmSignalSnapshot
from workers.web_monitor.html_utils import normalize_whitespace, strip_non_content

_PM_NOISE_RE = re.compile(r"[^\w\s$%.-]")
_PRICE_SIGNAL_RE = re.compile(r"(\$|usd\s*)\s?\d+[.,]?\d*")
_PLAN_LABEL_RE = re.compile(r"(plan|pricing|starter|pro|business|enterprise|package|tier)", re.IGNORECASE)
_PRODUCT_SECTION_RE = re.compile(r"(feature|service|solution|capability|offering|platform)", re.IGNORECASE)
_LOGO_RE = re.compile(r"\blogo\b")

_CASE_STUDY_KEYWORDS = ("case study", "customer story", "success story", "trusted by", "client")


def normalize_pm_text(value: str | None) -> str:
    """Lowercase, collapse whitespace, drop punctuation except ``$ % . -``."""
    lowered = re.sub(r"\s+", " ", (value or "").lower())
    return _PM_NOISE_RE.sub("", lowered).strip()


def _normalize_list(values: tuple[str, ...] | list[str]) -> list[str]:
    return sorted({normalize_pm_text(v) for v in values} - {""})


def _visible_text_without_footer(html: str) -> str:
    soup = strip_non_content(BeautifulSoup(html or "", "html.parser"), extra=("footer",))
    body = soup.body or soup
    return normalize_whitespace(body.get_text(" "))


def extract_price_signals(text: str) -> list[str]:
    return sorted(re.sub(r"\s+", "", m.group(0)) for m in _PRICE_SIGNAL_RE.finditer(text.lower()))


def extract_plan_signals(html: str) -> list[str]:
    soup = BeautifulSoup(html or "", "html.parser")
    labels: set[str] = set()
    for node in soup.find_all(["h1", "h2", "h3", "h4", "button", "strong", "b"]):
        raw = node.get_text(" ", strip=True)
        normalized = normalize_pm_text(raw)
        if normalized and _PLAN_LABEL_RE.search(raw):
            labels.add(normalized)
    return sorted(labels)


def extract_product_section_signals(html: str) -> list[str]:
    soup = BeautifulSoup(html or "", "html.parser")
    sections: set[str] = set()
    for node in soup.select("main h2, main h3, section h2, section h3"):
        normalized = normalize_pm_text(node.get_text(" "))
        if normalized and _PRODUCT_SECTION_RE.search(normalized):
            sections.add(normalized)
    return sorted(sections)


def case_study_or_logo_additions(before_html: str, after_html: str) -> list[str]:
    before = normalize_pm_text(_visible_text_without_footer(before_html))
    after = normalize_pm_text(_visible_text_without_footer(after_html))
    additions = [kw for kw in _CASE_STUDY_KEYWORDS if kw not in before and kw in after]
    if len(_LOGO_RE.findall(after)) > len(_LOGO_RE.findall(before)):
        additions.append("logo")
    return additions


def detect_pm_signal_changes(before: PmSignalSnapshot, after: PmSignalSnapshot) -> list[PmSignalDiff]:
    """Compare two snapshots through the PM lens; page type comes from ``after``."""
    page_type = after.page_type
    diffs: list[PmSignalDiff] = []

    before_nav = _normalize_list(before.nav_items)
    after_nav = _normalize_list(after.nav_items)
    if before_nav != after_nav:
        diffs.append(
            PmSignalDiff(page_type, PmSignalChangeType.NAV_ITEMS_CHANGE, before_nav, after_nav)
        )

    if page_type == PageType.HOMEPAGE:
        before_headline = normalize_pm_text(before.primary_headline)
        after_headline = normalize_pm_text(after.primary_headline)
        if before_headline and after_headline and before_headline != after_headline:
            diffs.append(
                PmSignalDiff(
                    page_type,
                    PmSignalChangeType.HOMEPAGE_HEADLINE_CHANGE,
                    before.primary_headline,
                    after.primary_headline,
                )
            )

    before_cta = normalize_pm_text(before.primary_cta_text)
    after_cta = normalize_pm_text(after.primary_cta_text)
    if before_cta and after_cta and before_cta != after_cta:
        diffs.append(
            PmSignalDiff(
                page_type,
                PmSignalChangeType.CTA_TEXT_CHANGE,
                before.primary_cta_text,
                after.primary_cta_text,
            )
        )

    if page_type == PageType.PRICING:
        before_prices = extract_price_signals(_visible_text_without_footer(before.html))
        after_prices = extract_price_signals(_visible_text_without_footer(after.html))
        before_plans = extract_plan_signals(before.html)
        after_plans = extract_plan_signals(after.html)
        if before_prices != after_prices or before_plans != after_plans:
            diffs.append(
                PmSignalDiff(
                    page_type,
                    PmSignalChangeType.PRICING_STRUCTURE_CHANGE,
                    [*before_plans, *before_prices],
                    [*after_plans, *after_prices],
                )
            )

    if page_type == PageType.PRODUCT_OR_SERVICES:
        before_sections = extract_product_section_signals(before.html)
        after_sections = extract_product_section_signals(after.html)
        if before_sections != after_sections:
            diffs.append(
                PmSignalDiff(
                    page_type,
                    PmSignalChangeType.PRODUCT_SERVICE_SECTION_CHANGE,
                    before_sections,
                    after_sections,
                    InsightConfidence.MEDIUM,
                )
            )

    if page_type == PageType.CASE_STUDIES_OR_CUSTOMERS:
        additions = case_study_or_logo_additions(before.html, after.html)
        if additions:
            diffs.append(
                PmSignalDiff(
                    page_type,
                    PmSignalChangeType.CASE_STUDY_OR_CUSTOMER_LOGO_ADDED,
                    None,
                    additions,
                )
            )

    return diffs
