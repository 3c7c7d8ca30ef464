"""
Change Detector — structural diff between two captures of one page
==================================================================

Both HTML documents are re-extracted into structural signals and compared
field by field, never byte by byte. Passes run in a fixed order and every
pass emits independently:

  1. text      → ``text_change``      (headline or visible body text)
  2. CTA       → ``cta_text_change``  (one per CTA slot that changed)
  3. nav       → ``nav_change``       (label set difference, one event)
  4. elements  → ``element_added`` / ``element_removed`` (structural keys)

Identical inputs always produce identical output.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from core.models import ChangeType, PageType
from workers.diff_engine.classifier import classify_change
from workers.diff_engine.models import ChangeReference, DetectedChange
from workers.web_monitor.extractors.structural import extract_structural_signal
from workers.web_monitor.html_utils import normalize_text, normalize_whitespace, strip_non_content

logger = logging.getLogger(__name__)

MAX_ELEMENT_EVENTS = 25
TEXT_EXCERPT_CHARS = 500
NAV_SUMMARY_LIMIT = 20
STRUCTURE_SUMMARY_LIMIT = 10

_BLOCK_SELECTOR = "main section, main article, section, article"


def summarize_list(items: list[str], limit: int) -> list[str]:
    if len(items) <= limit:
        return list(items)
    return [*items[:limit], f"… (+{len(items) - limit} more)"]


def diff_sets(before: list[str], after: list[str]) -> tuple[list[str], list[str]]:
    """(added, removed), each in the order of its source list."""
    before_set, after_set = set(before), set(after)
    added = [item for item in after if item not in before_set]
    removed = [item for item in before if item not in after_set]
    return added, removed


def extract_structural_keys(html: str | None) -> list[str]:
    """
    Coarse, sorted structural fingerprint of a document.

    Keys: ``heading:{tag}:{text}``, ``block:{tag}:{aria|id|class|unknown}``
    and ``li:{text[:120]}`` for list items inside ``<main>``.
    """
    soup = strip_non_content(BeautifulSoup(html or "", "html.parser"))
    entries: list[str] = []

    for node in soup.find_all(["h1", "h2", "h3"], limit=200):
        text = normalize_text(node.get_text(" "))
        if text:
            entries.append(f"heading:{node.name}:{text}")

    for node in soup.select(_BLOCK_SELECTOR)[:200]:
        aria = normalize_text(node.get("aria-label"))
        id_attr = normalize_text(node.get("id"))
        classes = node.get("class") or []
        first_class = normalize_text(classes[0]) if classes else ""
        entries.append(f"block:{node.name}:{aria or id_attr or first_class or 'unknown'}")

    for node in soup.select("main li")[:400]:
        text = normalize_text(node.get_text(" "))
        if text:
            entries.append(f"li:{text[:120]}")

    return sorted(set(entries))


class ChangeDetector:
    """Runs the comparison passes for one before/after pair."""

    def __init__(
        self,
        before_html: str | None,
        after_html: str | None,
        page_url: str,
        page_type: PageType | None,
    ) -> None:
        self.before_html = before_html or ""
        self.after_html = after_html or ""
        self.page_url = page_url
        self.page_type = page_type
        self.before = extract_structural_signal(self.before_html, page_url, page_type=page_type)
        self.after = extract_structural_signal(self.after_html, page_url, page_type=page_type)

    def detect(self) -> list[DetectedChange]:
        changes: list[DetectedChange] = []
        for detect_pass in (self._text_pass, self._cta_pass, self._nav_pass, self._element_pass):
            changes.extend(detect_pass())
        for change in changes:
            change.category = classify_change(change)
        return changes

    def _change(self, change_type: ChangeType, summary: str, **kwargs) -> DetectedChange:
        return DetectedChange(
            change_type=change_type,
            page_url=self.page_url,
            page_type=self.page_type,
            summary=summary,
            **kwargs,
        )

    # ── Passes ────────────────────────────────────────────────────────

    def _text_pass(self) -> list[DetectedChange]:
        before_headline = normalize_text(self.before.h1_text)
        after_headline = normalize_text(self.after.h1_text)
        before_text, after_text = self.before.body_text, self.after.body_text
        if before_headline == after_headline and before_text == after_text:
            return []
        return [
            self._change(
                ChangeType.TEXT_CHANGE,
                "Page text content changed",
                before=ChangeReference(text=before_text[:TEXT_EXCERPT_CHARS]),
                after=ChangeReference(text=after_text[:TEXT_EXCERPT_CHARS]),
                details={
                    "beforeLength": len(before_text),
                    "afterLength": len(after_text),
                    "headlineChanged": before_headline != after_headline,
                },
            )
        ]

    def _cta_pass(self) -> list[DetectedChange]:
        changes: list[DetectedChange] = []
        slots = (
            ("primary", self.before.primary_cta_text, self.after.primary_cta_text),
            ("secondary", self.before.secondary_cta_text, self.after.secondary_cta_text),
        )
        for slot, before_cta, after_cta in slots:
            if normalize_text(before_cta) == normalize_text(after_cta):
                continue
            changes.append(
                self._change(
                    ChangeType.CTA_TEXT_CHANGE,
                    f"{slot.capitalize()} CTA text changed",
                    before=ChangeReference(key=f"cta:{slot}", text=before_cta, label=before_cta),
                    after=ChangeReference(key=f"cta:{slot}", text=after_cta, label=after_cta),
                    details={"slot": slot, "beforeText": before_cta, "afterText": after_cta},
                )
            )
        return changes

    def _nav_pass(self) -> list[DetectedChange]:
        before_labels = [normalize_whitespace(label) for label in self.before.nav_labels]
        after_labels = [normalize_whitespace(label) for label in self.after.nav_labels]
        before_keys = {label.lower(): label for label in before_labels}
        after_keys = {label.lower(): label for label in after_labels}
        added = [after_keys[key] for key in after_keys if key not in before_keys]
        removed = [before_keys[key] for key in before_keys if key not in after_keys]
        if not added and not removed:
            return []
        return [
            self._change(
                ChangeType.NAV_CHANGE,
                "Navigation changed",
                before=ChangeReference(key="nav", label=", ".join(before_labels)),
                after=ChangeReference(key="nav", label=", ".join(after_labels)),
                details={
                    "added": summarize_list(added, NAV_SUMMARY_LIMIT),
                    "removed": summarize_list(removed, NAV_SUMMARY_LIMIT),
                },
            )
        ]

    def _element_pass(self) -> list[DetectedChange]:
        added, removed = diff_sets(
            extract_structural_keys(self.before_html),
            extract_structural_keys(self.after_html),
        )
        changes: list[DetectedChange] = []
        for key in added[:MAX_ELEMENT_EVENTS]:
            changes.append(
                self._change(
                    ChangeType.ELEMENT_ADDED,
                    "Element/block added",
                    after=ChangeReference(key=key, label=key),
                    details={"elementKey": key},
                )
            )
        for key in removed[:MAX_ELEMENT_EVENTS]:
            changes.append(
                self._change(
                    ChangeType.ELEMENT_REMOVED,
                    "Element/block removed",
                    before=ChangeReference(key=key, label=key),
                    details={"elementKey": key},
                )
            )
        if len(added) > MAX_ELEMENT_EVENTS or len(removed) > MAX_ELEMENT_EVENTS:
            changes.append(
                self._change(
                    ChangeType.ELEMENT_ADDED,
                    "Many structural changes detected",
                    details={
                        "added": summarize_list(added, STRUCTURE_SUMMARY_LIMIT),
                        "removed": summarize_list(removed, STRUCTURE_SUMMARY_LIMIT),
                    },
                )
            )
        return changes


def detect_changes(
    before_html: str | None,
    after_html: str | None,
    page_url: str,
    page_type: PageType | None,
) -> list[DetectedChange]:
    """
    Deterministic change detection between two HTML documents of one page.

    Returns ``[]`` when there is no previous capture to compare against.
    """
    if before_html is None:
        logger.debug("No previous capture for %s, nothing to diff", page_url)
        return []
    return ChangeDetector(before_html, after_html, page_url, page_type).detect()
