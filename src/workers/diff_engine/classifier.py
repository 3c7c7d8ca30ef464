"""
Change Classifier — one category per detected change
====================================================

Rules are evaluated top-to-bottom and the first hit wins:

  1. Change type: CTA / text changes are messaging, nav changes are structure.
  2. Page type: pricing, CTA, offering, proof and navigation pages carry
     their own category.
  3. Element keywords: the changed block's key/label/text is matched
     against ``ELEMENT_KEYWORD_CATEGORIES``.
  4. ``ChangeCategory.OTHER``.

Step 4 guarantees every change classifies.
"""

from __future__ import annotations

from core.models import ChangeCategory, ChangeType, PageType
from workers.diff_engine.models import DetectedChange
from workers.web_monitor.html_utils import normalize_text

# Ordered (keywords, category) table for structural elements.
ELEMENT_KEYWORD_CATEGORIES: list[tuple[tuple[str, ...], ChangeCategory]] = [
    (("product", "service", "solution", "feature", "offering"), ChangeCategory.PRODUCT_SERVICES),
    (
        ("testimonial", "review", "customer", "trust", "rating", "client", "quote", "logo"),
        ChangeCategory.TRUST_CREDIBILITY,
    ),
    (("footer", "nav", "menu", "header"), ChangeCategory.NAVIGATION_STRUCTURE),
]


def _by_change_type(change_type: ChangeType) -> ChangeCategory | None:
    match change_type:
        case ChangeType.CTA_TEXT_CHANGE | ChangeType.TEXT_CHANGE:
            return ChangeCategory.POSITIONING_MESSAGING
        case ChangeType.NAV_CHANGE:
            return ChangeCategory.NAVIGATION_STRUCTURE
        case _:
            return None


def _by_page_type(page_type: PageType | None) -> ChangeCategory | None:
    match page_type:
        case PageType.PRICING:
            return ChangeCategory.PRICING_OFFERS
        case PageType.CTA_ELEMENTS:
            return ChangeCategory.POSITIONING_MESSAGING
        case PageType.SERVICES | PageType.PRODUCT_OR_SERVICES | PageType.USE_CASES_OR_INDUSTRIES:
            return ChangeCategory.PRODUCT_SERVICES
        case PageType.CASE_STUDIES_OR_CUSTOMERS:
            return ChangeCategory.TRUST_CREDIBILITY
        case PageType.NAVIGATION:
            return ChangeCategory.NAVIGATION_STRUCTURE
        case _:
            return None


def _element_haystack(change: DetectedChange) -> str:
    parts: list[str] = []
    for ref in (change.before, change.after):
        if ref is not None:
            parts.extend(v for v in (ref.key, ref.label, ref.text) if v)
    element_key = change.details.get("elementKey")
    if element_key:
        parts.append(str(element_key))
    for key in ("added", "removed"):
        values = change.details.get(key)
        if isinstance(values, list):
            parts.extend(str(v) for v in values)
    return normalize_text(" ".join(parts))


def _by_element_keywords(change: DetectedChange) -> ChangeCategory | None:
    haystack = _element_haystack(change)
    if not haystack:
        return None
    for keywords, category in ELEMENT_KEYWORD_CATEGORIES:
        if any(keyword in haystack for keyword in keywords):
            return category
    return None


def classify_change(change: DetectedChange) -> ChangeCategory:
    """Return exactly one category for ``change``."""
    return (
        _by_change_type(change.change_type)
        or _by_page_type(change.page_type)
        or _by_element_keywords(change)
        or ChangeCategory.OTHER
    )
