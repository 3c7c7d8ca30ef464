"""
Pricing Intelligence — plan lineup extraction and pricing diffs
===============================================================

Extracts a structured ``PricingSnapshotData`` from a pricing page:

  - Plans: located through ``PLAN_SELECTORS``, an ordered list of
    (selector, container parser) pairs. The first selector that yields at
    least one plan wins.
  - Aggregates: entry price, billing model, free trial, enterprise signal,
    trust / social proof / anchoring flags.
  - ``pricing_summary_hash``: SHA-256 over the canonical JSON of the
    comparable fields. Equal hashes mean "nothing to diff".

``diff_pricing_snapshots`` produces typed pricing changes with an impact
level; ``infer_primary_monetization_model`` labels a snapshot with a fixed
priority cascade.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import re
from collections.abc import Callable
from dataclasses import asdict, dataclass, field

from bs4 import Tag

from core.models import (
    BillingModel,
    CaptureStatus,
    PricingChangeType,
    PricingImpactLevel,
    PricingSnapshot,
)
from workers.web_monitor.extractors.base import BaseExtractor
from workers.web_monitor.html_utils import normalize_whitespace, strip_non_content

logger = logging.getLogger(__name__)

MAX_PLANS = 12

# ── Regex Patterns ─────────────────────────────────────────────────────

PRICE_PATTERN = re.compile(
    r"(?:\$|usd|eur|gbp|cad|aud|inr)\s*([0-9]+(?:[.,][0-9]{3}(?![0-9]))*(?:[.,][0-9]{1,2})?)", re.IGNORECASE
)
# A separator followed by exactly three digits groups thousands.
THOUSANDS_SEPARATOR = re.compile(r"[.,](?=[0-9]{3}(?![0-9]))")
CTA_PATTERN = re.compile(
    r"(start|buy|get|choose|contact sales|talk to sales|book demo|try|trial|subscribe)", re.IGNORECASE
)
HIGHLIGHT_PATTERN = re.compile(r"(popular|recommended|best|featured|highlight)", re.IGNORECASE)

# (interval label, pattern), evaluated in order.
BILLING_INTERVALS: list[tuple[str, re.Pattern[str]]] = [
    ("monthly", re.compile(r"(per\s*month|/\s*mo|monthly)", re.IGNORECASE)),
    ("yearly", re.compile(r"(per\s*year|/\s*yr|annually|yearly)", re.IGNORECASE)),
    ("per-seat", re.compile(r"(per\s*user|per\s*seat|/\s*seat)", re.IGNORECASE)),
    ("usage-based", re.compile(r"(usage|per\s*credit|per\s*request|api call)", re.IGNORECASE)),
]

_SUBSCRIPTION_RE = re.compile(r"(monthly|annually|yearly|/\s*mo|/\s*yr|subscription|per month|per year)", re.IGNORECASE)
_USAGE_RE = re.compile(r"(usage|per\s*credit|per\s*request|pay as you go|metered|api call)", re.IGNORECASE)
_FREE_TRIAL_RE = re.compile(r"free trial|start free|try for free|14-day trial|30-day trial", re.IGNORECASE)
_ENTERPRISE_RE = re.compile(r"enterprise|contact sales|talk to sales|custom pricing", re.IGNORECASE)
_TRUST_BADGES_RE = re.compile(r"(gdpr|soc 2|iso 27001|trusted by|security|compliance)", re.IGNORECASE)
_SOCIAL_PROOF_RE = re.compile(r"(customers|companies|teams|reviews|testimonials|g2|capterra)", re.IGNORECASE)
_PRICE_ANCHORING_RE = re.compile(r"save|discount|was \$|strikethrough|% off|billed annually", re.IGNORECASE)


# ── Data ───────────────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class PricingPlanData:
    plan_name: str
    price_value: float | None = None
    billing_interval: str | None = None
    feature_count: int = 0
    cta_text: str | None = None
    highlight_flag: bool = False

    def to_summary(self) -> dict:
        return {
            "name": self.plan_name,
            "price": self.price_value,
            "interval": self.billing_interval,
            "features": self.feature_count,
            "cta": self.cta_text,
            "highlight": self.highlight_flag,
        }

    @classmethod
    def from_dict(cls, row: dict) -> PricingPlanData | None:
        """Accepts both the stored (``plan_name``) and summary (``name``) shapes."""
        if not isinstance(row, dict):
            return None
        name = normalize_whitespace(row.get("plan_name") or row.get("name") or "")
        if not name:
            return None
        price = row.get("price_value", row.get("price"))
        features = row.get("feature_count", row.get("features"))
        return cls(
            plan_name=name,
            price_value=float(price) if isinstance(price, (int, float)) else None,
            billing_interval=row.get("billing_interval", row.get("interval")),
            feature_count=features if isinstance(features, int) else 0,
            cta_text=row.get("cta_text", row.get("cta")),
            highlight_flag=bool(row.get("highlight_flag", row.get("highlight", False))),
        )


@dataclass(slots=True)
class PricingSnapshotData:
    total_plans: int
    entry_price: float | None
    billing_model: BillingModel
    free_trial: bool
    enterprise_present: bool
    pricing_summary_hash: str
    capture_status: CaptureStatus
    plans: list[PricingPlanData] = field(default_factory=list)
    pricing_structure: dict = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: PricingSnapshot) -> PricingSnapshotData:
        """Rebuild a comparable snapshot from the stored row (plans from its JSON)."""
        structure = row.pricing_structure or {}
        raw_plans = structure.get("plans") if isinstance(structure, dict) else None
        plans = [p for p in (PricingPlanData.from_dict(r) for r in raw_plans or []) if p is not None]
        return cls(
            total_plans=row.total_plans or 0,
            entry_price=row.entry_price,
            billing_model=row.billing_model or BillingModel.UNKNOWN,
            free_trial=bool(row.free_trial),
            enterprise_present=bool(row.enterprise_present),
            pricing_summary_hash=row.pricing_summary_hash,
            capture_status=row.capture_status or CaptureStatus.VISUAL_ONLY,
            plans=plans,
            pricing_structure=structure if isinstance(structure, dict) else {},
        )


@dataclass(frozen=True, slots=True)
class PricingChangeData:
    change_type: PricingChangeType
    impact_level: PricingImpactLevel
    description: str


# ── Helpers ────────────────────────────────────────────────────────────

def canonical_json(payload) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def parse_price_value(text: str) -> float | None:
    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    try:
        amount = THOUSANDS_SEPARATOR.sub("", match.group(1))
        return float(amount.replace(",", "."))
    except ValueError:
        return None


def parse_billing_interval(text: str) -> str | None:
    for label, pattern in BILLING_INTERVALS:
        if pattern.search(text):
            return label
    return None


def derive_billing_model(page_text: str, plans: list[PricingPlanData]) -> BillingModel:
    has_subscription = bool(_SUBSCRIPTION_RE.search(page_text)) or any(
        p.billing_interval in ("monthly", "yearly") for p in plans
    )
    has_usage = bool(_USAGE_RE.search(page_text)) or any(
        p.billing_interval == "usage-based" for p in plans
    )
    if has_subscription and has_usage:
        return BillingModel.HYBRID
    if has_subscription:
        return BillingModel.SUBSCRIPTION
    if has_usage:
        return BillingModel.USAGE
    return BillingModel.UNKNOWN


def parse_plan_container(container: Tag) -> PricingPlanData | None:
    """One plan card, or None when the node has no name or no pricing signal."""
    text = normalize_whitespace(container.get_text(" "))
    if not text:
        return None
    if not (PRICE_PATTERN.search(text) or CTA_PATTERN.search(text)):
        return None

    name_node = container.select_one("h1, h2, h3, h4, h5, strong, [data-plan-name]")
    raw_name = name_node.get_text(" ", strip=True) if name_node is not None else ""
    plan_name = normalize_whitespace(raw_name or container.get("data-plan-name") or "")
    if not plan_name:
        return None

    cta_text = None
    for node in container.select("button, a"):
        candidate = node.get_text(" ", strip=True)
        if CTA_PATTERN.search(candidate):
            cta_text = normalize_whitespace(candidate)
            break

    class_text = f"{' '.join(container.get('class') or [])} {container.get('id') or ''}"
    return PricingPlanData(
        plan_name=plan_name,
        price_value=parse_price_value(text),
        billing_interval=parse_billing_interval(text),
        feature_count=len(container.find_all("li")),
        cta_text=cta_text,
        highlight_flag=bool(HIGHLIGHT_PATTERN.search(class_text)) or "most popular" in text.lower(),
    )


# Ordered (selector, parser) cascade; first selector yielding plans wins.
PLAN_SELECTORS: list[tuple[str, Callable[[Tag], PricingPlanData | None]]] = [
    ('[class*="pricing"] [class*="plan"]', parse_plan_container),
    ('[class*="pricing"] [class*="tier"]', parse_plan_container),
    ('[class*="pricing"] [class*="card"]', parse_plan_container),
    ('[class*="plan"]', parse_plan_container),
    ('[class*="tier"]', parse_plan_container),
    ("[data-plan]", parse_plan_container),
]


def dedupe_plans(plans: list[PricingPlanData]) -> list[PricingPlanData]:
    unique: dict[str, PricingPlanData] = {}
    for plan in plans:
        price = plan.price_value if plan.price_value is not None else "na"
        key = f"{plan.plan_name.lower()}::{price}::{plan.cta_text or 'na'}"
        unique.setdefault(key, plan)
    return list(unique.values())


def sort_plans(plans: list[PricingPlanData]) -> list[PricingPlanData]:
    """Ascending by price, plans without a price last (stable)."""
    return sorted(plans, key=lambda p: (p.price_value is None, p.price_value or 0.0))


# ── Extractor ──────────────────────────────────────────────────────────

class PricingExtractor(BaseExtractor[PricingSnapshotData]):
    """Structured pricing extraction for one pricing-page capture."""

    def __init__(self, html: str | None, page_url: str, selectors=None) -> None:
        super().__init__(html, page_url)
        self.selectors = selectors if selectors is not None else PLAN_SELECTORS
        strip_non_content(self.soup)

    def extract(self) -> PricingSnapshotData:
        try:
            plans = self.extract_plans()
        except Exception:
            logger.warning("Pricing plan extraction failed for %s", self.page_url, exc_info=True)
            plans = []
        return self.build_snapshot(plans)

    def extract_plans(self) -> list[PricingPlanData]:
        for selector, parser in self.selectors:
            candidates = [
                plan for plan in (parser(node) for node in self.soup.select(selector)) if plan is not None
            ]
            if candidates:
                logger.debug("Pricing plans matched by %s on %s", selector, self.page_url)
                return sort_plans(dedupe_plans(candidates))[:MAX_PLANS]
        return []

    def page_text(self) -> str:
        body = self.soup.body or self.soup
        return normalize_whitespace(body.get_text(" "))

    def build_snapshot(self, plans: list[PricingPlanData]) -> PricingSnapshotData:
        page_text = self.page_text()
        entry_price = next((p.price_value for p in plans if p.price_value is not None), None)
        free_trial = bool(_FREE_TRIAL_RE.search(page_text))
        enterprise_present = bool(_ENTERPRISE_RE.search(page_text))
        billing_model = derive_billing_model(page_text, plans)
        highlighted = next((p.plan_name for p in plans if p.highlight_flag), None)

        summary_payload = {
            "totalPlans": len(plans),
            "entryPrice": entry_price,
            "billingModel": billing_model.value,
            "freeTrial": free_trial,
            "enterprisePresent": enterprise_present,
            "plans": [p.to_summary() for p in plans],
        }
        structure = {
            "page_url": self.page_url,
            "plans": [asdict(p) for p in plans],
            "highlighted_tier": highlighted,
            "trust_badges_present": bool(_TRUST_BADGES_RE.search(page_text)),
            "social_proof_present": bool(_SOCIAL_PROOF_RE.search(page_text)),
            "price_anchoring_detected": bool(_PRICE_ANCHORING_RE.search(page_text)),
        }

        return PricingSnapshotData(
            total_plans=len(plans),
            entry_price=entry_price,
            billing_model=billing_model,
            free_trial=free_trial,
            enterprise_present=enterprise_present,
            pricing_summary_hash=hashlib.sha256(canonical_json(summary_payload).encode("utf-8")).hexdigest(),
            capture_status=CaptureStatus.STRUCTURED if plans else CaptureStatus.VISUAL_ONLY,
            plans=plans,
            pricing_structure=structure,
        )


def extract_pricing_snapshot(html: str | None, page_url: str) -> PricingSnapshotData:
    return PricingExtractor(html, page_url).extract()


# ── Diff ───────────────────────────────────────────────────────────────

def _round2(value: float) -> float:
    """Half-up rounding to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def derive_impact_level(change_type: PricingChangeType, absolute_percent: float = 0.0) -> PricingImpactLevel:
    match change_type:
        case PricingChangeType.ENTERPRISE_TIER_ADDITION:
            return PricingImpactLevel.HIGH
        case PricingChangeType.PLAN_ADDED | PricingChangeType.PLAN_REMOVED:
            return PricingImpactLevel.MODERATE
        case PricingChangeType.ENTRY_PRICE_CHANGE:
            if absolute_percent >= 15:
                return PricingImpactLevel.HIGH
            if absolute_percent >= 5:
                return PricingImpactLevel.MODERATE
            return PricingImpactLevel.LOW
        case PricingChangeType.FEATURE_SHIFT | PricingChangeType.CTA_CHANGE:
            return PricingImpactLevel.MODERATE
        case _:
            return PricingImpactLevel.LOW


def diff_pricing_snapshots(
    previous: PricingSnapshotData | None,
    current: PricingSnapshotData,
) -> list[PricingChangeData]:
    """Typed pricing changes from ``previous`` to ``current``; ``[]`` on equal hashes."""
    if previous is None or previous.pricing_summary_hash == current.pricing_summary_hash:
        return []

    changes: list[PricingChangeData] = []

    def add(change_type: PricingChangeType, description: str, absolute_percent: float = 0.0) -> None:
        changes.append(
            PricingChangeData(change_type, derive_impact_level(change_type, absolute_percent), description)
        )

    if current.total_plans > previous.total_plans:
        add(
            PricingChangeType.PLAN_ADDED,
            f"Added {current.total_plans - previous.total_plans} plan(s) to pricing lineup.",
        )
    elif current.total_plans < previous.total_plans:
        add(
            PricingChangeType.PLAN_REMOVED,
            f"Removed {previous.total_plans - current.total_plans} plan(s) from pricing lineup.",
        )

    if (
        previous.entry_price is not None
        and current.entry_price is not None
        and previous.entry_price != current.entry_price
    ):
        pct = percent_change(current.entry_price, previous.entry_price)
        sign = "+" if pct > 0 else ""
        add(
            PricingChangeType.ENTRY_PRICE_CHANGE,
            f"Entry price moved from ${_fmt(previous.entry_price)} to ${_fmt(current.entry_price)} "
            f"({sign}{_fmt(_round2(pct))}%).",
            abs(pct),
        )

    if not previous.enterprise_present and current.enterprise_present:
        add(PricingChangeType.ENTERPRISE_TIER_ADDITION, "Enterprise-tier monetization signal introduced.")

    if previous.free_trial != current.free_trial:
        add(
            PricingChangeType.FREE_TRIAL_CHANGE,
            "Free trial introduced." if current.free_trial else "Free trial removed.",
        )

    previous_by_name = {plan.plan_name.lower(): plan for plan in previous.plans}
    for plan in current.plans:
        old = previous_by_name.get(plan.plan_name.lower())
        if old is None:
            continue
        if old.feature_count != plan.feature_count:
            add(
                PricingChangeType.FEATURE_SHIFT,
                f"Feature count changed for {plan.plan_name} ({old.feature_count} -> {plan.feature_count}).",
            )
        if (old.cta_text or "") != (plan.cta_text or ""):
            add(
                PricingChangeType.CTA_CHANGE,
                f"CTA changed for {plan.plan_name} ({old.cta_text or 'none'} -> {plan.cta_text or 'none'}).",
            )

    unique: dict[tuple[PricingChangeType, str], PricingChangeData] = {}
    for change in changes:
        unique.setdefault((change.change_type, change.description), change)
    return list(unique.values())


# ── Monetization model ────────────────────────────────────────────────

def infer_primary_monetization_model(snapshot: PricingSnapshotData) -> str:
    """First matching branch wins; the order is a priority cascade."""
    moderate_entry_price = snapshot.entry_price is not None and snapshot.entry_price >= 30
    low_entry_price = snapshot.entry_price is not None and snapshot.entry_price <= 25
    multiple_tiers = snapshot.total_plans >= 3

    if snapshot.enterprise_present and moderate_entry_price and multiple_tiers:
        return "Enterprise upsell-focused tiered subscription"
    if snapshot.free_trial and low_entry_price:
        return "Self-serve growth model"
    if snapshot.total_plans <= 1 and snapshot.enterprise_present:
        return "High-touch enterprise sales model"
    if snapshot.billing_model == BillingModel.USAGE:
        return "Usage-based monetization model"
    if snapshot.billing_model == BillingModel.HYBRID:
        return "Hybrid subscription and usage monetization"
    return "Tiered subscription model with balanced packaging"
