"""
Company Baseline Profile
========================

Builds a factual "who is this competitor" profile from the latest homepage,
about-like, services, navigation and case-study captures:

  about → industry → target segment → offerings → value proposition →
  trust signals → composed summaries

Each stage tags its output with a ``BP-*-001`` rule id and records the
evidence it read; the run returns the profile plus an ordered trace.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from workers.intelligence.common import Evidence, canonical_json, stable_index, to_jsonable
from workers.intelligence.signals import SnapshotSignal

# ── Keyword tables ───────────────────────────────────────────────────

REGION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "North America": ("north america", "united states", "usa", "canada"),
    "Europe": ("europe", "uk", "united kingdom", "germany", "france", "eu"),
    "APAC": ("asia pacific", "apac", "singapore", "australia", "india"),
}

SIZE_SIGNALS = ("global", "enterprise", "startup", "scale-up", "mid-market", "small team")

INDUSTRY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Fintech": ("banking", "payments", "fintech", "financial services"),
    "Healthcare": ("hospital", "healthcare", "clinical"),
    "SaaS": ("platform", "cloud", "software", "saas"),
    "Consulting": ("advisory", "consulting", "transformation"),
    "E-commerce": ("retail", "marketplace", "online store", "ecommerce"),
}

# (type, keywords, dominant narrative label)
VALUE_PROP_THEMES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("outcome-driven", ("outcomes", "business impact", "results", "measurable", "value"),
     "Outcome-driven transformation narrative"),
    ("efficiency", ("productivity", "efficiency", "faster", "streamline", "optimize"),
     "Efficiency and productivity improvement narrative"),
    ("risk-compliance", ("compliance", "risk", "security", "governance"),
     "Risk and compliance-focused narrative"),
    ("innovation", ("innovation", "innovate", "next generation", "reinvent"),
     "Innovation and future-oriented narrative"),
    ("cost-optimization", ("lower costs", "cost savings", "save costs", "total cost of ownership"),
     "Cost optimization narrative"),
)

TARGET_MARKET_SUMMARIES = {
    "enterprise": "Enterprise-focused positioning",
    "mid_market": "Mid-market oriented positioning",
    "smb": "SMB / small business oriented positioning",
    "mixed": "Mixed segment positioning",
    "unknown": "Target segment not explicitly signaled yet",
}

OFFERING_SUMMARIES = {
    "single-offering": "Offering Structure: Focused single-offering model.",
    "multi-service": "Offering Structure: Multi-service model with a defined set of offerings.",
    "broad-portfolio": "Offering Structure: Diversified multi-service portfolio.",
}

_FOUNDING_YEAR = re.compile(r"\b(18[5-9]\d|19\d{2}|20[0-2]\d)\b")
_CASE_STUDY = re.compile(r"case stud(y|ies)|customer story|success story", re.IGNORECASE)
_LOGO_GRID = re.compile(r"trusted by|customers include", re.IGNORECASE)
_TESTIMONIAL = re.compile(r"“[^”]+”|\"[^\"]+\"")
_CERTIFICATIONS = (
    (re.compile(r"iso\s*27\d{2}", re.IGNORECASE), "ISO 27k"),
    (re.compile(r"soc\s*2", re.IGNORECASE), "SOC 2"),
    (re.compile(r"hipaa", re.IGNORECASE), "HIPAA"),
    (re.compile(r"gdpr", re.IGNORECASE), "GDPR"),
)
_SEGMENT_PATTERNS = (
    (re.compile(r"\benterprise\b"), "enterprise", "enterprise"),
    (re.compile(r"\bmid-?market\b"), "mid_market", "mid-market"),
    (re.compile(r"\bmid sized\b"), "mid_market", "mid sized"),
    (re.compile(r"\bsmb\b"), "smb", "SMB"),
    (re.compile(r"\bsmall business\b"), "smb", "small business"),
    (re.compile(r"\bstartups?\b"), "smb", "startup"),
)


# ── Profile types ────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class AboutSnapshot:
    company_summary_raw: str | None
    founding_year: int | None
    detected_regions: tuple[str, ...]
    mission_keywords: tuple[str, ...]
    company_size_signals: tuple[str, ...]
    rule_id: str = "BP-ABOUT-001"
    evidence: tuple[Evidence, ...] = ()


@dataclass(frozen=True, slots=True)
class IndustryProfile:
    primary_industry: str | None
    secondary_industries: tuple[str, ...]
    industry_confidence: str
    rule_id: str = "BP-IND-001"
    evidence: tuple[Evidence, ...] = ()


@dataclass(frozen=True, slots=True)
class TargetSegmentProfile:
    target_segment: str
    rule_id: str = "BP-SEG-001"
    evidence: tuple[Evidence, ...] = ()


@dataclass(frozen=True, slots=True)
class OfferingProfile:
    core_offerings: tuple[str, ...]
    offering_count: int
    offering_complexity_level: str
    rule_id: str = "BP-OFF-001"
    evidence: tuple[Evidence, ...] = ()


@dataclass(frozen=True, slots=True)
class ValuePropProfile:
    value_prop_type: str
    dominant_narrative: str | None
    rule_id: str = "BP-VP-001"
    evidence: tuple[Evidence, ...] = ()


@dataclass(frozen=True, slots=True)
class TrustIndicators:
    case_studies_present: bool
    certifications_detected: tuple[str, ...]
    logo_grid_detected: bool
    testimonial_count: int


@dataclass(frozen=True, slots=True)
class TrustProfile:
    trust_indicators: TrustIndicators
    rule_id: str = "BP-TRUST-001"
    evidence: tuple[Evidence, ...] = ()


@dataclass(frozen=True, slots=True)
class CompanyBaselineProfile:
    about: AboutSnapshot
    industry_profile: IndustryProfile
    target_segment_profile: TargetSegmentProfile
    offering_profile: OfferingProfile
    value_prop_profile: ValuePropProfile
    trust_profile: TrustProfile
    biography_summary: str
    industry_summary: str
    target_market_summary: str
    offering_structure_summary: str
    value_proposition_summary: str
    trust_profile_summary: str


@dataclass(frozen=True, slots=True)
class BaselineInput:
    competitor_id: str
    homepage: SnapshotSignal | None = None
    about_page: SnapshotSignal | None = None
    services_page: SnapshotSignal | None = None
    nav_snapshot: SnapshotSignal | None = None
    case_studies_page: SnapshotSignal | None = None


@dataclass(frozen=True, slots=True)
class BaselineTraceEvent:
    step: str
    rule_id: str
    message: str
    outputs: Any = None


@dataclass(frozen=True, slots=True)
class BaselineResult:
    profile: CompanyBaselineProfile
    trace: tuple[BaselineTraceEvent, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return to_jsonable(self)

    def to_json(self) -> str:
        return canonical_json(self)


# ── Helpers ──────────────────────────────────────────────────────────

def _squash(parts: list[str]) -> str:
    return re.sub(r"\s+", " ", " ".join(parts)).strip()


def count_phrases(text: str, phrases: tuple[str, ...]) -> int:
    """Whole-word, case-insensitive occurrences of every phrase."""
    total = 0
    for phrase in phrases:
        if phrase:
            total += len(re.findall(rf"\b{re.escape(phrase)}\b", text, re.IGNORECASE))
    return total


def _dedupe(values: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def _collect(
    snapshot: SnapshotSignal | None,
    source: str,
    fields: tuple[str, ...],
    parts: list[str],
    evidence: list[Evidence],
    limit: int = 5,
) -> None:
    """Append ``fields`` of ``snapshot`` to ``parts`` and record evidence for each."""
    if snapshot is None:
        return
    for name in fields:
        value = getattr(snapshot, name)
        if not value:
            continue
        if isinstance(value, tuple):
            parts.append(" ".join(value))
            evidence.append(Evidence(source, name, list(value[:limit])))
        else:
            parts.append(value)
            evidence.append(Evidence(source, name, value))


# ── Stages ───────────────────────────────────────────────────────────

def extract_about_snapshot(homepage: SnapshotSignal | None, about_page: SnapshotSignal | None) -> AboutSnapshot:
    evidence: list[Evidence] = []
    homepage_parts: list[str] = []
    about_parts: list[str] = []
    _collect(homepage, "homepage", ("h1_text", "h2_headings"), homepage_parts, evidence)
    _collect(about_page, "about", ("h1_text", "h2_headings", "list_items"), about_parts, evidence)

    summary = _squash(about_parts + homepage_parts) or None
    if summary is None:
        return AboutSnapshot(None, None, (), (), (), evidence=tuple(evidence))

    year_match = _FOUNDING_YEAR.search(summary)
    founding_year = int(year_match.group(0)) if year_match else None
    if founding_year:
        evidence.append(Evidence("about" if about_page is not None else "homepage", "founding_year", founding_year))

    lowered = summary.lower()
    regions = tuple(
        label for label, keywords in REGION_KEYWORDS.items() if any(k in lowered for k in keywords)
    )
    mission = tuple(k for k in ("mission", "vision", "purpose") if k in lowered)
    size = _dedupe([s for s in SIZE_SIGNALS if s in lowered])

    return AboutSnapshot(summary, founding_year, regions, mission, size, evidence=tuple(evidence))


def classify_industry(
    about: AboutSnapshot,
    homepage: SnapshotSignal | None,
    services: SnapshotSignal | None,
) -> IndustryProfile:
    evidence: list[Evidence] = []
    parts: list[str] = []
    if about.company_summary_raw:
        parts.append(about.company_summary_raw)
        evidence.append(Evidence("about", "company_summary_raw", about.company_summary_raw))
    _collect(homepage, "homepage", ("h1_text", "title", "h2_headings"), parts, evidence)
    _collect(services, "services", ("h2_headings", "h3_headings", "title"), parts, evidence)

    combined = _squash(parts).lower()
    scores = sorted(
        ((label, count_phrases(combined, keywords)) for label, keywords in INDUSTRY_KEYWORDS.items()),
        key=lambda item: -item[1],
    )
    evidence.append(Evidence("snapshot", "industry_scores", [{"key": k, "score": s} for k, s in scores]))

    top_label, top_score = scores[0]
    second_score = scores[1][1]
    primary = top_label if top_score > 0 else None
    secondary = tuple(label for label, score in scores[1:] if score > 0)

    if top_score == 0:
        confidence = "Low"
    elif top_score >= second_score + 2:
        confidence = "High"
    else:
        confidence = "Medium"

    return IndustryProfile(primary, secondary, confidence, evidence=tuple(evidence))


def detect_target_segment(
    about: AboutSnapshot,
    homepage: SnapshotSignal | None,
    services: SnapshotSignal | None,
) -> TargetSegmentProfile:
    evidence: list[Evidence] = []
    parts: list[str] = []
    if about.company_summary_raw:
        parts.append(about.company_summary_raw)
        evidence.append(Evidence("about", "company_summary_raw", about.company_summary_raw))
    _collect(homepage, "homepage", ("h1_text",), parts, evidence)
    _collect(services, "services", ("h2_headings",), parts, evidence)

    combined = _squash(parts).lower()
    scores = {"enterprise": 0, "mid_market": 0, "smb": 0}
    for pattern, key, phrase in _SEGMENT_PATTERNS:
        if pattern.search(combined):
            scores[key] += 1
            evidence.append(Evidence("about", f"segment_{key}", phrase))
    evidence.append(Evidence("snapshot", "segment_scores", dict(scores)))

    ranked = sorted(scores.items(), key=lambda item: -item[1])
    (top_key, top_score), (_, second_score) = ranked[0], ranked[1]
    if top_score == 0:
        segment = "unknown"
    elif top_score == second_score:
        segment = "mixed"
    else:
        segment = top_key
    return TargetSegmentProfile(segment, evidence=tuple(evidence))


def analyze_offerings(services: SnapshotSignal | None, nav_snapshot: SnapshotSignal | None) -> OfferingProfile:
    evidence: list[Evidence] = []
    offerings: list[str] = []
    seen: set[str] = set()

    sources = (
        (services, "services", "h2_headings"),
        (services, "services", "h3_headings"),
        (nav_snapshot, "nav", "nav_labels"),
    )
    for snapshot, source, name in sources:
        values = getattr(snapshot, name) if snapshot is not None else ()
        if not values:
            continue
        for value in values:
            norm = re.sub(r"\s+", " ", value).strip()
            if norm and norm.lower() not in seen:
                seen.add(norm.lower())
                offerings.append(norm)
        evidence.append(Evidence(source, name, list(values[:10])))

    structured = services.structured_content if services is not None else None
    section_count = structured.get("section_count") if structured else None
    evidence.append(Evidence("services", "section_count", section_count if isinstance(section_count, int) else None))

    count = len(offerings)
    if count <= 1:
        complexity = "single-offering"
    elif count <= 6:
        complexity = "multi-service"
    else:
        complexity = "broad-portfolio"

    return OfferingProfile(tuple(offerings), count, complexity, evidence=tuple(evidence))


def parse_value_prop(about: AboutSnapshot, homepage: SnapshotSignal | None) -> ValuePropProfile:
    evidence: list[Evidence] = []
    parts: list[str] = []
    _collect(homepage, "homepage", ("h1_text", "h2_headings"), parts, evidence)
    if about.company_summary_raw:
        parts.append(about.company_summary_raw)
        evidence.append(Evidence("about", "company_summary_raw", about.company_summary_raw))

    combined = _squash(parts).lower()
    theme_scores = [(theme_id, count_phrases(combined, keywords), label) for theme_id, keywords, label in VALUE_PROP_THEMES]

    best_type, best_label, best_score = "unknown", None, 0
    for theme_id, score, label in theme_scores:
        if score > best_score:
            best_type, best_label, best_score = theme_id, label, score

    evidence.append(
        Evidence("snapshot", "value_prop_scores", [{"id": t, "score": s} for t, s, _ in theme_scores])
    )
    return ValuePropProfile(best_type, best_label, evidence=tuple(evidence))


def _certifications(text: str) -> list[str]:
    return [label for pattern, label in _CERTIFICATIONS if pattern.search(text)]


def extract_trust_profile(homepage: SnapshotSignal | None, case_studies_page: SnapshotSignal | None) -> TrustProfile:
    evidence: list[Evidence] = []

    def text_of(snapshot: SnapshotSignal | None) -> str:
        if snapshot is None:
            return ""
        return " ".join(filter(None, (snapshot.h1_text, *snapshot.h2_headings, *snapshot.list_items)))

    homepage_text = text_of(homepage)
    cases_text = text_of(case_studies_page)

    case_studies_present = (
        case_studies_page is not None
        or bool(_CASE_STUDY.search(homepage_text))
        or bool(_CASE_STUDY.search(cases_text))
    )
    if case_studies_present:
        source = "case_studies" if case_studies_page is not None else "homepage"
        evidence.append(Evidence(source, "case_studies_present", True))

    certifications = _dedupe(_certifications(homepage_text) + _certifications(cases_text))
    if certifications:
        evidence.append(Evidence("snapshot", "certifications", list(certifications)))

    logo_grid = bool(_LOGO_GRID.search(homepage_text) or _LOGO_GRID.search(cases_text))
    if logo_grid:
        evidence.append(Evidence("homepage", "logo_grid_detected", True))

    testimonials = _TESTIMONIAL.findall(homepage_text)
    if testimonials:
        evidence.append(Evidence("homepage", "testimonial_snippets", testimonials[:5]))

    return TrustProfile(
        TrustIndicators(case_studies_present, certifications, logo_grid, len(testimonials)),
        evidence=tuple(evidence),
    )


def compose_baseline(
    competitor_id: str,
    about: AboutSnapshot,
    industry: IndustryProfile,
    segment: TargetSegmentProfile,
    offerings: OfferingProfile,
    value_prop: ValuePropProfile,
    trust: TrustProfile,
) -> CompanyBaselineProfile:
    primary_label = industry.primary_industry or "Not clearly specified"
    industry_line = f"Industry: {primary_label}"
    if industry.primary_industry:
        industry_line += f" ({industry.industry_confidence} confidence)"
    founded = (
        f"Founded: {about.founding_year}" if about.founding_year is not None
        else "Founded year: Not explicitly stated"
    )
    regions = (
        f"Regions Mentioned: {', '.join(about.detected_regions)}" if about.detected_regions
        else "Regions Mentioned: Not clearly specified"
    )

    industry_summary = f"Primary industry: {primary_label}"
    if industry.secondary_industries:
        industry_summary += f"; Secondary: {', '.join(industry.secondary_industries)}"
    industry_summary += f". Confidence: {industry.industry_confidence}."

    if value_prop.dominant_narrative:
        variants = (f"{value_prop.dominant_narrative}.",)
    else:
        variants = ("Value proposition is present but not yet strongly classified.",)
    value_prop_summary = variants[stable_index(f"{competitor_id}:valueProp:{value_prop.rule_id}", len(variants))]

    indicators = trust.trust_indicators
    trust_lines = []
    if indicators.case_studies_present:
        trust_lines.append("Case studies present")
    if indicators.certifications_detected:
        trust_lines.append(f"Certifications detected: {', '.join(indicators.certifications_detected)}")
    if indicators.logo_grid_detected:
        trust_lines.append('Logo grid / "Trusted by" section detected')
    if indicators.testimonial_count > 0:
        trust_lines.append(f"Testimonials detected (approx. {indicators.testimonial_count})")
    if not trust_lines:
        trust_lines.append("Trust signals will strengthen as more surfaces are crawled.")

    return CompanyBaselineProfile(
        about=about,
        industry_profile=industry,
        target_segment_profile=segment,
        offering_profile=offerings,
        value_prop_profile=value_prop,
        trust_profile=trust,
        biography_summary="\n".join((industry_line, founded, regions)),
        industry_summary=industry_summary,
        target_market_summary=TARGET_MARKET_SUMMARIES[segment.target_segment],
        offering_structure_summary=OFFERING_SUMMARIES.get(
            offerings.offering_complexity_level, "Offering structure not yet clearly surfaced."
        ),
        value_proposition_summary=value_prop_summary,
        trust_profile_summary="\n".join(trust_lines),
    )


def build_company_baseline_profile(data: BaselineInput) -> BaselineResult:
    trace: list[BaselineTraceEvent] = []

    about = extract_about_snapshot(data.homepage, data.about_page)
    trace.append(BaselineTraceEvent(
        "about", about.rule_id, "Extracted about/company snapshot.",
        {"has_summary": about.company_summary_raw is not None,
         "founding_year": about.founding_year,
         "regions": list(about.detected_regions)},
    ))

    industry = classify_industry(about, data.homepage, data.services_page)
    trace.append(BaselineTraceEvent(
        "industry", industry.rule_id, "Classified primary and secondary industries.",
        {"primary_industry": industry.primary_industry,
         "secondary_industries": list(industry.secondary_industries),
         "confidence": industry.industry_confidence},
    ))

    segment = detect_target_segment(about, data.homepage, data.services_page)
    trace.append(BaselineTraceEvent(
        "segment", segment.rule_id, "Detected target segment profile.",
        {"target_segment": segment.target_segment},
    ))

    offerings = analyze_offerings(data.services_page, data.nav_snapshot)
    trace.append(BaselineTraceEvent(
        "offerings", offerings.rule_id, "Analyzed core offerings and complexity.",
        {"offering_count": offerings.offering_count, "complexity": offerings.offering_complexity_level},
    ))

    value_prop = parse_value_prop(about, data.homepage)
    trace.append(BaselineTraceEvent(
        "value_prop", value_prop.rule_id, "Parsed value proposition theme and narrative.",
        {"type": value_prop.value_prop_type, "dominant_narrative": value_prop.dominant_narrative},
    ))

    trust = extract_trust_profile(data.homepage, data.case_studies_page)
    trace.append(BaselineTraceEvent(
        "trust", trust.rule_id, "Extracted trust indicators.", to_jsonable(trust.trust_indicators),
    ))

    profile = compose_baseline(data.competitor_id, about, industry, segment, offerings, value_prop, trust)
    trace.append(BaselineTraceEvent(
        "compose", "BP-COMP-001", "Composed company baseline profile and summaries.",
        {"has_biography": bool(profile.biography_summary),
         "has_offerings": profile.offering_profile.offering_count > 0},
    ))

    return BaselineResult(profile=profile, trace=tuple(trace))
