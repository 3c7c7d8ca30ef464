"""Data models for the diff engine (detected changes, PM signal diffs, compare results)."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from enum import StrEnum

from core.models import ChangeCategory, ChangeType, InsightConfidence, PageType


class PmSignalChangeType(StrEnum):
    """Closed set of PM-legible change types fed to insight generation."""

    NAV_ITEMS_CHANGE = "nav_items_change"
    HOMEPAGE_HEADLINE_CHANGE = "homepage_headline_change"
    CTA_TEXT_CHANGE = "cta_text_change"
    PRICING_STRUCTURE_CHANGE = "pricing_structure_change"
    PRODUCT_SERVICE_SECTION_CHANGE = "product_service_section_change"
    CASE_STUDY_OR_CUSTOMER_LOGO_ADDED = "case_study_or_customer_logo_added"


@dataclass(frozen=True, slots=True)
class ChangeReference:
    """One side of a change: a key/label for blocks, text for CTAs."""

    key: str | None = None
    label: str | None = None
    href: str | None = None
    text: str | None = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(slots=True)
class DetectedChange:
    """An atomic classified difference. ``category`` is always set."""

    change_type: ChangeType
    page_url: str
    page_type: PageType | None
    summary: str
    category: ChangeCategory = ChangeCategory.OTHER
    before: ChangeReference | None = None
    after: ChangeReference | None = None
    details: dict = field(default_factory=dict)

    def to_row_details(self) -> dict:
        """``details`` payload persisted on the change row."""
        return {
            "before": self.before.to_dict() if self.before else None,
            "after": self.after.to_dict() if self.after else None,
            **self.details,
        }


@dataclass(frozen=True, slots=True)
class PmSignalSnapshot:
    """The slice of a snapshot the PM differ needs."""

    page_type: PageType | None
    primary_headline: str | None = None
    primary_cta_text: str | None = None
    nav_items: tuple[str, ...] = ()
    html: str = ""


@dataclass(frozen=True, slots=True)
class PmSignalDiff:
    page_type: PageType | None
    change_type: PmSignalChangeType
    before_value: str | list[str] | None
    after_value: str | list[str] | None
    confidence: InsightConfidence = InsightConfidence.HIGH


@dataclass(slots=True)
class CompareResult:
    """Outcome of comparing one snapshot pair (empty on detection failure)."""

    before_snapshot_id: uuid.UUID | None
    after_snapshot_id: uuid.UUID | None
    page_url: str
    page_type: PageType | None
    diffs: list[DetectedChange] = field(default_factory=list)
    pm_diffs: list[PmSignalDiff] = field(default_factory=list)
    persisted_change_ids: list[uuid.UUID] = field(default_factory=list)
