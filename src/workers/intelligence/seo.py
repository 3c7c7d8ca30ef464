"""
Search intelligence — SEO strategic dimensions
==============================================

Reads the on-page SEO fields stored with each snapshot
(``structured_content["search_seo"]``) and scores six dimensions:

  topic_concentration, vertical_seo_focus, funnel_coverage_balance,
  content_investment_intensity, enterprise_seo_orientation, seo_momentum

Recency is measured against an explicit ``as_of`` so two runs over the
same pages agree byte for byte.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any

from workers.intelligence.common import canonical_json, clamp_score, round_half_up, stable_index, to_jsonable
from workers.web_monitor.models import SeoPageData

STOP_WORDS = frozenset({
    "the", "and", "or", "for", "with", "a", "an", "to", "of", "in", "on", "at", "by", "from",
    "is", "are", "this", "that", "these", "those", "it", "as", "be", "we", "you", "your", "our", "their",
})

TOPIC_MAP: dict[str, tuple[str, ...]] = {
    "CLOUD": ("cloud", "migration", "aws", "azure", "gcp", "kubernetes"),
    "TRANSFORMATION": ("digital transformation", "modernization", "innovation", "change management"),
    "FINTECH": ("banking", "payments", "fintech", "financial services"),
    "SAAS": ("platform", "software", "saas", "subscription"),
    "DATA_ANALYTICS": ("analytics", "bi", "data warehouse", "reporting"),
    "SECURITY": ("security", "compliance", "risk", "identity"),
}
VERTICAL_CLUSTERS = frozenset({"FINTECH"})
MAX_CLUSTERS = 5

_BOFU = tuple(re.compile(p, re.IGNORECASE) for p in (r"pricing", r"demo", r"contact sales", r"case stud(y|ies)"))
_MOFU = tuple(re.compile(p, re.IGNORECASE) for p in (r"compare", r"\bvs\b", r"best", r"alternatives?"))
_TOFU = tuple(re.compile(p, re.IGNORECASE) for p in (r"what is", r"guide", r"how to", r"introduction"))

_BLOG_PATH = re.compile(r"/(blog|resources|insights|knowledge|guides)(/|$)", re.IGNORECASE)
_CASE_STUDY_PATH = re.compile(r"/(case-stud(y|ies)|customers?)(/|$)", re.IGNORECASE)
_ENTERPRISE = re.compile(r"enterprise")
_EXECUTIVE = re.compile(r"cxo|c-suite|cio|cto|cfo")

LONG_FORM_WORDS = 1500
RECENT_WINDOW = timedelta(days=90)


class FunnelStage(StrEnum):
    TOP = "top"
    MID = "mid"
    BOTTOM = "bottom"
    UNKNOWN = "unknown"


class SeoAcceleration(StrEnum):
    STABLE = "Stable"
    INCREASING = "Increasing"
    RAPID = "Rapid"


@dataclass(frozen=True, slots=True)
class KeywordCount:
    keyword: str
    frequency: int


@dataclass(frozen=True, slots=True)
class TopicCluster:
    cluster_name: str
    cluster_weight: int


@dataclass(frozen=True, slots=True)
class FunnelDistribution:
    top_of_funnel: int = 0
    mid_of_funnel: int = 0
    bottom_of_funnel: int = 0

    @property
    def total(self) -> int:
        return self.top_of_funnel + self.mid_of_funnel + self.bottom_of_funnel


@dataclass(frozen=True, slots=True)
class ContentDepthMetrics:
    total_blog_pages: int = 0
    avg_word_count: int = 0
    total_case_studies: int = 0
    publishing_frequency_per_month: float = 0.0
    long_form_ratio: float = 0.0
    content_investment_score: int = 0


@dataclass(frozen=True, slots=True)
class SeoDimensions:
    topic_concentration: int = 0
    vertical_seo_focus: int = 0
    funnel_coverage_balance: int = 0
    content_investment_intensity: int = 0
    enterprise_seo_orientation: int = 0
    seo_momentum: int = 0


@dataclass(frozen=True, slots=True)
class SeoEvolution:
    dominant_trend: str | None
    expansion_signal: str
    acceleration_level: SeoAcceleration


@dataclass(frozen=True, slots=True)
class SeoSnapshotRecord:
    captured_at: datetime
    dimensions: SeoDimensions


@dataclass(frozen=True, slots=True)
class SeoSummary:
    dominant_topics: tuple[str, ...]
    funnel_strategy: str
    content_intensity: str
    enterprise_signal: str
    seo_risk_flags: tuple[str, ...]
    trajectory_signal: str
    executive_summary: str


@dataclass(frozen=True, slots=True)
class SeoTraceEvent:
    step: str
    rule_id: str
    message: str
    outputs: Any = None


@dataclass(frozen=True, slots=True)
class SeoIntelligenceResult:
    competitor_id: str
    as_of: datetime
    topic_clusters: tuple[TopicCluster, ...]
    funnel: FunnelDistribution
    content: ContentDepthMetrics
    dimensions: SeoDimensions
    evolution: SeoEvolution
    summary: SeoSummary
    trace: tuple[SeoTraceEvent, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return to_jsonable(self)

    def to_json(self) -> str:
        return canonical_json(self)


# ── Page input ───────────────────────────────────────────────────────

def parse_published_at(value: str | None) -> datetime | None:
    """ISO-8601 timestamp → aware UTC datetime; anything unparseable → None."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def seo_page_from_dict(data: Mapping[str, Any]) -> SeoPageData:
    return SeoPageData(
        url=str(data.get("url") or ""),
        h1=str(data.get("h1") or ""),
        h2=tuple(data.get("h2") or ()),
        h3=tuple(data.get("h3") or ()),
        meta_title=str(data.get("meta_title") or ""),
        meta_description=str(data.get("meta_description") or ""),
        anchors=tuple(data.get("anchors") or ()),
        slug=str(data.get("slug") or ""),
        image_alt_text=tuple(data.get("image_alt_text") or ()),
        word_count=int(data.get("word_count") or 0),
        published_at=data.get("published_at"),
    )


# ── Keywords and clusters ────────────────────────────────────────────

def tokenize(text: str) -> list[str]:
    return [t for t in re.split(r"[^a-z0-9]+", text.lower()) if len(t) > 1 and t not in STOP_WORDS]


def build_ngrams(tokens: list[str], low: int = 1, high: int = 3) -> list[str]:
    return [
        " ".join(tokens[i:i + n])
        for n in range(low, high + 1)
        for i in range(len(tokens) - n + 1)
    ]


def build_keyword_profile(pages: Iterable[SeoPageData]) -> list[KeywordCount]:
    """1–3 gram frequencies across headings, titles and anchors, most frequent first."""
    counts: Counter[str] = Counter()
    for page in pages:
        text = " ".join(filter(None, (page.h1, page.meta_title, *page.h2, *page.h3, *page.anchors)))
        tokens = tokenize(text)
        if tokens:
            counts.update(build_ngrams(tokens))
    # Counter preserves first-seen order; sorted() keeps it for ties
    return [KeywordCount(k, f) for k, f in sorted(counts.items(), key=lambda item: -item[1])]


def build_topic_clusters(keywords: list[KeywordCount]) -> list[TopicCluster]:
    clusters = []
    for name, terms in TOPIC_MAP.items():
        weight = sum(kw.frequency for term in terms for kw in keywords if term in kw.keyword)
        if weight > 0:
            clusters.append(TopicCluster(name, weight))
    return sorted(clusters, key=lambda c: -c.cluster_weight)[:MAX_CLUSTERS]


# ── Funnel and content depth ─────────────────────────────────────────

def classify_page_funnel(page: SeoPageData) -> FunnelStage:
    text = " ".join(filter(None, (page.h1, page.meta_title, *page.h2, page.url))).lower()
    if any(p.search(text) for p in _BOFU):
        return FunnelStage.BOTTOM
    if any(p.search(text) for p in _MOFU):
        return FunnelStage.MID
    if any(p.search(text) for p in _TOFU):
        return FunnelStage.TOP
    return FunnelStage.UNKNOWN


def compute_funnel_distribution(pages: Iterable[SeoPageData]) -> FunnelDistribution:
    stages = Counter(classify_page_funnel(p) for p in pages)
    return FunnelDistribution(
        top_of_funnel=stages[FunnelStage.TOP],
        mid_of_funnel=stages[FunnelStage.MID],
        bottom_of_funnel=stages[FunnelStage.BOTTOM],
    )


def compute_content_depth(pages: list[SeoPageData]) -> ContentDepthMetrics:
    blog = [p for p in pages if _BLOG_PATH.search(p.url)]
    case_studies = [p for p in pages if _CASE_STUDY_PATH.search(p.url)]

    avg_words = round_half_up(sum(p.word_count for p in blog) / len(blog)) if blog else 0
    long_form_ratio = sum(1 for p in blog if p.word_count >= LONG_FORM_WORDS) / len(blog) if blog else 0.0

    frequency = 0.0
    dates = sorted(d for d in (parse_published_at(p.published_at) for p in blog) if d is not None)
    if len(dates) > 1:
        days = max(1.0, (dates[-1] - dates[0]).total_seconds() / 86400)
        months = max(1.0, days / 30)
        frequency = round_half_up(len(dates) / months * 10) / 10

    volume = min(len(blog), 60)
    depth = min(avg_words / 30, 30)
    cadence = min(frequency * 5, 30)
    long_form = long_form_ratio * 20
    score = clamp_score(volume * 0.3 + depth * 0.25 + cadence * 0.25 + long_form * 0.2)

    return ContentDepthMetrics(
        total_blog_pages=len(blog),
        avg_word_count=avg_words,
        total_case_studies=len(case_studies),
        publishing_frequency_per_month=frequency,
        long_form_ratio=long_form_ratio,
        content_investment_score=score,
    )


# ── Dimensions ───────────────────────────────────────────────────────

def compute_seo_dimensions(
    clusters: list[TopicCluster],
    funnel: FunnelDistribution,
    content: ContentDepthMetrics,
    pages: list[SeoPageData],
    *,
    as_of: datetime,
) -> SeoDimensions:
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)
    total_weight = sum(c.cluster_weight for c in clusters)

    topic_concentration = 0
    if clusters and total_weight > 0:
        topic_concentration = round_half_up(clusters[0].cluster_weight / total_weight * 100)

    vertical_weight = sum(c.cluster_weight for c in clusters if c.cluster_name in VERTICAL_CLUSTERS)
    vertical_seo_focus = 0
    if vertical_weight:
        vertical_seo_focus = round_half_up(min(1.0, vertical_weight / max(1, total_weight)) * 100)

    funnel_coverage_balance = 0
    if funnel.total > 0:
        ideal = funnel.total / 3
        max_diff = max(
            abs(funnel.top_of_funnel - ideal),
            abs(funnel.mid_of_funnel - ideal),
            abs(funnel.bottom_of_funnel - ideal),
        )
        funnel_coverage_balance = round_half_up((1 - max_diff / funnel.total) * 100)

    title_text = " ".join(f"{p.h1} {p.meta_title}" for p in pages).lower()
    enterprise_hits = len(_ENTERPRISE.findall(title_text)) + len(_EXECUTIVE.findall(title_text))
    enterprise_seo_orientation = min(100, 40 + enterprise_hits * 10) if enterprise_hits else 0

    seo_momentum = 0
    recent = [
        d for d in (parse_published_at(p.published_at) for p in pages)
        if d is not None and as_of - d <= RECENT_WINDOW
    ]
    if recent:
        cadence_factor = min(content.publishing_frequency_per_month / 6, 1.0)
        recency_factor = min(len(recent) / max(1, len(pages)), 1.0)
        seo_momentum = round_half_up((0.6 * cadence_factor + 0.4 * recency_factor) * 100)

    return SeoDimensions(
        topic_concentration=topic_concentration,
        vertical_seo_focus=vertical_seo_focus,
        funnel_coverage_balance=funnel_coverage_balance,
        content_investment_intensity=content.content_investment_score,
        enterprise_seo_orientation=enterprise_seo_orientation,
        seo_momentum=seo_momentum,
    )


def analyze_seo_evolution(snapshots: list[SeoSnapshotRecord]) -> SeoEvolution:
    """Largest absolute dimension delta between the oldest and newest record."""
    if len(snapshots) < 2:
        return SeoEvolution(None, "Not enough history to infer SEO evolution.", SeoAcceleration.STABLE)

    ordered = sorted(snapshots, key=lambda s: s.captured_at)
    first, last = to_jsonable(ordered[0].dimensions), to_jsonable(ordered[-1].dimensions)
    deltas = sorted(((key, last[key] - first[key]) for key in first), key=lambda d: -abs(d[1]))
    key, delta = deltas[0]

    if abs(delta) >= 25:
        return SeoEvolution(
            key,
            "Signals indicate accelerated SEO expansion, with marked shifts in priority dimensions.",
            SeoAcceleration.RAPID,
        )
    if abs(delta) >= 10:
        return SeoEvolution(
            key, "Signals indicate a measured expansion of SEO investment and focus.", SeoAcceleration.INCREASING
        )
    return SeoEvolution(
        key if delta else None,
        "SEO posture appears broadly stable over the observed period.",
        SeoAcceleration.STABLE,
    )


# ── Narrative ────────────────────────────────────────────────────────

def _level(score: int) -> str:
    if score >= 75:
        return "High"
    if score >= 40:
        return "Moderate"
    return "Low"


def describe_funnel(funnel: FunnelDistribution) -> str:
    if funnel.total == 0:
        return "Funnel coverage not yet observable from captured content."

    def label(count: int) -> str:
        share = count / funnel.total
        if share >= 0.45:
            return "Strong"
        if share >= 0.2:
            return "Moderate"
        return "Limited"

    return (
        f"Top-of-Funnel: {label(funnel.top_of_funnel)} · "
        f"Mid-Funnel: {label(funnel.mid_of_funnel)} · "
        f"Bottom-of-Funnel: {label(funnel.bottom_of_funnel)}"
    )


def describe_content_intensity(content: ContentDepthMetrics) -> str:
    if content.total_blog_pages == 0:
        return "Limited visible content investment captured so far."
    words = f"{content.avg_word_count:,} words" if content.avg_word_count > 0 else "n/a"
    cadence = (
        f"{content.publishing_frequency_per_month:g}/month"
        if content.publishing_frequency_per_month > 0
        else "low / irregular cadence"
    )
    return (
        f"Blog Pages: {content.total_blog_pages} · Avg Depth: {words} · "
        f"Publishing Frequency: {cadence} ({_level(content.content_investment_score)} investment)."
    )


def enterprise_signal(dimensions: SeoDimensions) -> str:
    if dimensions.enterprise_seo_orientation == 0:
        return "No strong enterprise-specific SEO emphasis detected yet."
    return f"Enterprise Orientation: {_level(dimensions.enterprise_seo_orientation)} emphasis in SEO content."


def detect_seo_risk_flags(d: SeoDimensions) -> tuple[str, ...]:
    flags = []
    if d.topic_concentration > 80 and d.vertical_seo_focus < 30:
        flags.append("Narrow topic diversity with limited vertical depth.")
    if d.funnel_coverage_balance < 40:
        flags.append("Imbalanced funnel coverage across awareness, consideration, and decision content.")
    if d.content_investment_intensity < 30:
        flags.append("Low visible content investment relative to typical enterprise programs.")
    if d.seo_momentum < 30 and d.content_investment_intensity > 40:
        flags.append("Content library exists but recent publishing momentum appears muted.")
    return tuple(flags[:3])


def trajectory_label(evolution: SeoEvolution) -> str:
    match evolution.acceleration_level:
        case SeoAcceleration.INCREASING:
            return "Expanding"
        case SeoAcceleration.RAPID:
            return "Aggressive Expansion"
        case _:
            return "Stable"


def executive_summary(
    competitor_id: str, clusters: list[TopicCluster], d: SeoDimensions, evolution: SeoEvolution
) -> str:
    topics = " and ".join(c.cluster_name for c in clusters[:2]).lower() if clusters else "general topics"
    investment = _level(d.content_investment_intensity).lower()
    funnel = _level(d.funnel_coverage_balance).lower()
    templates = (
        f"This competitor concentrates SEO efforts on {topics} themes. Content investment appears "
        f"{investment} with {funnel} funnel coverage. {evolution.expansion_signal}",
        f"Observed SEO activity skews toward {topics} while maintaining {funnel} coverage across the funnel. "
        f"Overall content investment is {investment}, with trajectory classified as "
        f"{evolution.acceleration_level.value.lower()}.",
        f"Current search positioning is anchored in {topics} topics with {investment} content depth. "
        f"Funnel mix is {funnel}, and recent signals point to {trajectory_label(evolution).lower()} "
        f"rather than abrupt shifts.",
    )
    return templates[stable_index(f"{competitor_id}:seo_snapshot", len(templates))]


# ── Entry point ──────────────────────────────────────────────────────

def build_seo_intelligence(
    competitor_id: str,
    pages: Iterable[SeoPageData],
    *,
    as_of: datetime,
    previous_snapshots: list[SeoSnapshotRecord] | None = None,
) -> SeoIntelligenceResult:
    page_list = [p for p in pages if p.url]

    keywords = build_keyword_profile(page_list)
    clusters = build_topic_clusters(keywords)
    funnel = compute_funnel_distribution(page_list)
    content = compute_content_depth(page_list)
    dimensions = compute_seo_dimensions(clusters, funnel, content, page_list, as_of=as_of)
    evolution = analyze_seo_evolution(list(previous_snapshots or []))

    summary = SeoSummary(
        dominant_topics=tuple(c.cluster_name for c in clusters),
        funnel_strategy=describe_funnel(funnel),
        content_intensity=describe_content_intensity(content),
        enterprise_signal=enterprise_signal(dimensions),
        seo_risk_flags=detect_seo_risk_flags(dimensions),
        trajectory_signal=trajectory_label(evolution),
        executive_summary=executive_summary(competitor_id, clusters, dimensions, evolution),
    )

    trace = (
        SeoTraceEvent("keywords", "SEO-KW-001", "Built n-gram keyword profile.",
                      {"pages": len(page_list), "keywords": len(keywords)}),
        SeoTraceEvent("clusters", "SEO-TOPIC-001", "Mapped keywords onto topic clusters.",
                      [{"cluster": c.cluster_name, "weight": c.cluster_weight} for c in clusters]),
        SeoTraceEvent("funnel", "SEO-FUNNEL-001", "Classified pages by funnel stage.", to_jsonable(funnel)),
        SeoTraceEvent("content", "SEO-DEPTH-001", "Measured content depth and cadence.", to_jsonable(content)),
        SeoTraceEvent("dimensions", "SEO-DIM-001", "Scored SEO strategic dimensions.", to_jsonable(dimensions)),
        SeoTraceEvent("evolution", "SEO-EVO-001", "Compared against previous SEO snapshots.",
                      {"acceleration_level": evolution.acceleration_level.value,
                       "dominant_trend": evolution.dominant_trend}),
    )

    return SeoIntelligenceResult(
        competitor_id=competitor_id,
        as_of=as_of,
        topic_clusters=tuple(clusters),
        funnel=funnel,
        content=content,
        dimensions=dimensions,
        evolution=evolution,
        summary=summary,
        trace=trace,
    )
