"""
Strategic positioning model.

Scores six strategic dimensions (0–100) from pre-aggregated signals, then
derives competitive pressure against tracked peers, enterprise-positioning
saturation, trajectory and a five-section executive brief. Pure given an
explicit ``as_of`` timestamp.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from workers.intelligence.baseline import CompanyBaselineProfile
from workers.intelligence.common import Evidence, canonical_json, clamp_score, round_half_up, stable_index, to_jsonable
from workers.intelligence.signals import ServiceSnapshotSignal

DIMENSION_KEYS = (
    "strategic_elevation",
    "service_breadth",
    "vertical_depth",
    "enterprise_orientation",
    "monetization_maturity",
    "market_momentum",
)

BREADTH_WITHOUT_FOCUS = "breadth_without_focus"


class PressureLevel(StrEnum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class AccelerationLevel(StrEnum):
    STABLE = "Stable"
    INCREASING = "Increasing"
    RAPID = "Rapid"


@dataclass(frozen=True, slots=True)
class StrategicDimensions:
    strategic_elevation: int = 0
    service_breadth: int = 0
    vertical_depth: int = 0
    enterprise_orientation: int = 0
    monetization_maturity: int = 0
    market_momentum: int = 0

    def get(self, key: str) -> int:
        return getattr(self, key)


@dataclass(frozen=True, slots=True)
class StrategicRawSignals:
    competitor_id: str
    strategic_terms: int = 0
    execution_terms: int = 0
    lifecycle_terms: int = 0
    service_count: int = 0
    industries_detected: tuple[str, ...] = ()
    enterprise_keywords: int = 0
    case_studies_present: bool = False
    certifications_count: int = 0
    pricing_transparent: bool = False
    multiple_tiers_detected: bool = False
    enterprise_tier_detected: bool = False
    recent_change_count_30d: int = 0
    structural_trait_shifts_detected: bool = False


@dataclass(frozen=True, slots=True)
class DimensionScoreDetail:
    dimension: str
    score: int
    evidence: tuple[Evidence, ...]


@dataclass(frozen=True, slots=True)
class StrategicDimensionsResult:
    dimensions: StrategicDimensions
    details: tuple[DimensionScoreDetail, ...]
    flags: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class PressureArea:
    dimension: str
    pressure: int


@dataclass(frozen=True, slots=True)
class CompetitivePressure:
    highest_pressure_dimension: str | None
    overall_pressure_level: PressureLevel
    areas: tuple[PressureArea, ...] = ()


@dataclass(frozen=True, slots=True)
class SaturationRisk:
    has_enterprise_saturation: bool
    saturated_competitor_count: int


@dataclass(frozen=True, slots=True)
class TrajectorySnapshot:
    captured_at: datetime
    dimensions: StrategicDimensions


@dataclass(frozen=True, slots=True)
class TrajectoryAnalysis:
    dominant_trend_dimension: str | None
    acceleration_level: AccelerationLevel


@dataclass(frozen=True, slots=True)
class BriefSection:
    title: str
    lines: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ExecutiveBrief:
    archetype: str
    sections: tuple[BriefSection, ...]


@dataclass(frozen=True, slots=True)
class StrategicModelResult:
    as_of: datetime
    dimensions_result: StrategicDimensionsResult
    pressure: CompetitivePressure
    saturation: SaturationRisk | None
    trajectory: TrajectoryAnalysis
    brief: ExecutiveBrief
    trace: tuple[dict, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return to_jsonable(self)

    def to_json(self) -> str:
        return canonical_json(self.to_dict())


# ── Signal assembly ──────────────────────────────────────────────────

def build_strategic_raw_signals(
    competitor_id: str,
    *,
    services: ServiceSnapshotSignal | None = None,
    baseline: CompanyBaselineProfile | None = None,
    total_plans: int = 0,
    enterprise_present: bool = False,
    recent_change_count_30d: int = 0,
    structural_trait_shifts_detected: bool = False,
) -> StrategicRawSignals:
    """Fold the services profile, baseline trust signals and latest pricing capture into model input."""
    trust = baseline.trust_profile.trust_indicators if baseline is not None else None
    return StrategicRawSignals(
        competitor_id=competitor_id,
        strategic_terms=services.strategic_keywords_count if services else 0,
        execution_terms=services.execution_keywords_count if services else 0,
        lifecycle_terms=services.lifecycle_keywords_count if services else 0,
        service_count=(services.section_count or 0) if services else 0,
        industries_detected=services.industries if services else (),
        enterprise_keywords=services.enterprise_keywords_count if services else 0,
        case_studies_present=trust.case_studies_present if trust else False,
        certifications_count=len(trust.certifications_detected) if trust else 0,
        pricing_transparent=total_plans > 0,
        multiple_tiers_detected=total_plans > 1,
        enterprise_tier_detected=enterprise_present,
        recent_change_count_30d=recent_change_count_30d,
        structural_trait_shifts_detected=structural_trait_shifts_detected,
    )


# ── Dimension models ─────────────────────────────────────────────────

def _strategic_elevation(raw: StrategicRawSignals) -> DimensionScoreDetail:
    score_raw = raw.strategic_terms * 2.0 + raw.lifecycle_terms * 1.5 - raw.execution_terms * 0.5
    # ~40 weighted terms is treated as a fully strategic page
    return DimensionScoreDetail(
        "strategic_elevation",
        clamp_score(score_raw / 40 * 100),
        (
            Evidence("services_snapshot", "strategic_terms", raw.strategic_terms),
            Evidence("services_snapshot", "lifecycle_terms", raw.lifecycle_terms),
            Evidence("services_snapshot", "execution_terms", raw.execution_terms),
        ),
    )


def _vertical_depth(raw: StrategicRawSignals) -> DimensionScoreDetail:
    count = len(raw.industries_detected)
    return DimensionScoreDetail(
        "vertical_depth",
        10 if count == 0 else min(count * 20, 100),
        (Evidence("services_snapshot", "industries_detected", list(raw.industries_detected)),),
    )


def _service_breadth(raw: StrategicRawSignals, vertical_depth: int) -> tuple[DimensionScoreDetail, list[str]]:
    count = raw.service_count
    score = min(count * 10, 100)
    if count > 10:
        # flatten growth past ten services
        score = clamp_score(80 + (count - 10) * 2)

    flags = [BREADTH_WITHOUT_FOCUS] if count > 8 and vertical_depth < 40 else []
    detail = DimensionScoreDetail(
        "service_breadth", score, (Evidence("services_snapshot", "service_count", count),)
    )
    return detail, flags


def _enterprise_orientation(raw: StrategicRawSignals) -> DimensionScoreDetail:
    score_raw = raw.enterprise_keywords * 3 + (10 if raw.case_studies_present else 0) + raw.certifications_count * 15
    return DimensionScoreDetail(
        "enterprise_orientation",
        clamp_score(score_raw),
        (
            Evidence("services_snapshot", "enterprise_keywords", raw.enterprise_keywords),
            Evidence("case_studies", "case_studies_present", raw.case_studies_present),
            Evidence("case_studies", "certifications_count", raw.certifications_count),
        ),
    )


def _monetization_maturity(raw: StrategicRawSignals) -> DimensionScoreDetail:
    base = 60 if raw.pricing_transparent else 30
    if raw.multiple_tiers_detected:
        base += 20
    if raw.enterprise_tier_detected:
        base += 10
    return DimensionScoreDetail(
        "monetization_maturity",
        clamp_score(base),
        (
            Evidence("pricing", "pricing_transparent", raw.pricing_transparent),
            Evidence("pricing", "multiple_tiers_detected", raw.multiple_tiers_detected),
            Evidence("pricing", "enterprise_tier_detected", raw.enterprise_tier_detected),
        ),
    )


def _market_momentum(raw: StrategicRawSignals) -> DimensionScoreDetail:
    bonus = 20 if raw.structural_trait_shifts_detected else 0
    return DimensionScoreDetail(
        "market_momentum",
        clamp_score(raw.recent_change_count_30d * 15 + bonus),
        (
            Evidence("changes", "recent_change_count_30d", raw.recent_change_count_30d),
            Evidence("changes", "structural_trait_shifts_detected", raw.structural_trait_shifts_detected),
        ),
    )


def compute_strategic_dimensions(raw: StrategicRawSignals) -> StrategicDimensionsResult:
    vertical = _vertical_depth(raw)
    breadth, flags = _service_breadth(raw, vertical.score)
    details = (
        _strategic_elevation(raw),
        breadth,
        vertical,
        _enterprise_orientation(raw),
        _monetization_maturity(raw),
        _market_momentum(raw),
    )
    dimensions = StrategicDimensions(**{d.dimension: d.score for d in details})
    return StrategicDimensionsResult(dimensions, details, tuple(flags))


# ── Pressure, saturation, trajectory ─────────────────────────────────

def compute_competitive_pressure(
    own: StrategicDimensions, peers: list[StrategicDimensions]
) -> CompetitivePressure:
    """Per dimension: peer average minus own score. Positive means peers lead."""
    if not peers:
        return CompetitivePressure(None, PressureLevel.LOW)

    areas = tuple(
        PressureArea(key, round_half_up(sum(p.get(key) for p in peers) / len(peers) - own.get(key)))
        for key in DIMENSION_KEYS
    )
    positive = [a for a in areas if a.pressure > 0]
    if not positive:
        return CompetitivePressure(None, PressureLevel.LOW, areas)

    highest = positive[0]
    for area in positive[1:]:
        if area.pressure > highest.pressure:
            highest = area

    if highest.pressure >= 25:
        level = PressureLevel.HIGH
    elif highest.pressure >= 10:
        level = PressureLevel.MODERATE
    else:
        level = PressureLevel.LOW
    return CompetitivePressure(highest.dimension, level, areas)


def detect_positioning_saturation(all_dimensions: list[StrategicDimensions]) -> SaturationRisk | None:
    if not all_dimensions:
        return None
    saturated = sum(
        1 for d in all_dimensions if d.strategic_elevation > 75 and d.enterprise_orientation > 70
    )
    if saturated >= 2:
        return SaturationRisk(True, saturated)
    return None


def analyze_trajectory(snapshots: list[TrajectorySnapshot]) -> TrajectoryAnalysis:
    """Compare the two most recent snapshots; with one point, the strongest dimension is the trend."""
    ordered = sorted(snapshots, key=lambda s: s.captured_at)
    if not ordered:
        return TrajectoryAnalysis(None, AccelerationLevel.STABLE)

    if len(ordered) < 2:
        latest = ordered[-1].dimensions
        dominant = None
        best = -1
        for key in DIMENSION_KEYS:
            if latest.get(key) > best:
                best, dominant = latest.get(key), key
        return TrajectoryAnalysis(dominant, AccelerationLevel.STABLE)

    previous, latest = ordered[-2].dimensions, ordered[-1].dimensions
    dominant = None
    max_delta = 0
    for key in DIMENSION_KEYS:
        delta = latest.get(key) - previous.get(key)
        if delta > max_delta:
            max_delta, dominant = delta, key

    if max_delta >= 15:
        acceleration = AccelerationLevel.RAPID
    elif max_delta >= 5:
        acceleration = AccelerationLevel.INCREASING
    else:
        acceleration = AccelerationLevel.STABLE
    return TrajectoryAnalysis(dominant, acceleration)


# ── Executive brief ──────────────────────────────────────────────────

def _level(score: int) -> str:
    if score >= 75:
        return "high"
    if score >= 50:
        return "moderate"
    return "low"


def derive_archetype(d: StrategicDimensions) -> str:
    if d.strategic_elevation >= 75 and d.enterprise_orientation >= 70:
        return "Enterprise strategic transformer"
    if d.service_breadth >= 70 and d.vertical_depth < 40:
        return "Broad portfolio generalist"
    if d.vertical_depth >= 60:
        return "Segment-focused specialist"
    return "Balanced operator"


def generate_executive_brief(
    competitor_id: str,
    dimensions: StrategicDimensions,
    pressure: CompetitivePressure,
    trajectory: TrajectoryAnalysis,
    saturation: SaturationRisk | None,
    flags: tuple[str, ...],
) -> ExecutiveBrief:
    d = dimensions
    identity = (
        f"Competitor demonstrates {_level(d.strategic_elevation)} strategic elevation "
        f"with {_level(d.vertical_depth)} vertical depth.",
        f"Strategic posture skews toward {_level(d.strategic_elevation)} elevation "
        f"and {_level(d.service_breadth)} service breadth.",
    )
    position = (
        f"Enterprise orientation is {_level(d.enterprise_orientation)}, "
        f"with monetization maturity at {_level(d.monetization_maturity)}.",
        f"Positioning leans {_level(d.enterprise_orientation)} on enterprise focus "
        f"and {_level(d.monetization_maturity)} on pricing maturity.",
    )

    if pressure.highest_pressure_dimension and pressure.overall_pressure_level != PressureLevel.LOW:
        pressure_line = (
            f"Competitive pressure is strongest in {pressure.highest_pressure_dimension.replace('_', ' ')}, "
            f"at a {pressure.overall_pressure_level.value.lower()} level."
        )
    else:
        pressure_line = "Competitive pressure from tracked peers currently appears limited."

    if trajectory.dominant_trend_dimension and trajectory.acceleration_level != AccelerationLevel.STABLE:
        evolution_line = (
            f"Recent momentum indicates {trajectory.acceleration_level.value.lower()} movement in "
            f"{trajectory.dominant_trend_dimension.replace('_', ' ')}."
        )
    else:
        evolution_line = "Recent momentum suggests a stable strategic posture over the latest period."

    risks = []
    if BREADTH_WITHOUT_FOCUS in flags:
        risks.append("Breadth without clear vertical focus may diffuse positioning.")
    if saturation is not None and saturation.has_enterprise_saturation:
        risks.append("Enterprise transformation positioning is becoming crowded among tracked peers.")
    if not risks:
        risks.append("No immediate structural risks are apparent from current signals.")

    return ExecutiveBrief(
        archetype=derive_archetype(d),
        sections=(
            BriefSection("Strategic Identity", (identity[stable_index(f"{competitor_id}:identity", len(identity))],)),
            BriefSection("Market Position", (position[stable_index(f"{competitor_id}:position", len(position))],)),
            BriefSection("Competitive Pressure", (pressure_line,)),
            BriefSection("Evolution Signal", (evolution_line,)),
            BriefSection("Structural Risks", tuple(risks[:3])),
        ),
    )


def run_strategic_model(
    raw: StrategicRawSignals,
    *,
    as_of: datetime,
    peer_dimensions: list[StrategicDimensions] | None = None,
    trajectory_snapshots: list[TrajectorySnapshot] | None = None,
) -> StrategicModelResult:
    peers = list(peer_dimensions or [])
    dimensions_result = compute_strategic_dimensions(raw)
    history = trajectory_snapshots or [TrajectorySnapshot(as_of, dimensions_result.dimensions)]

    pressure = compute_competitive_pressure(dimensions_result.dimensions, peers)
    saturation = detect_positioning_saturation([dimensions_result.dimensions, *peers])
    trajectory = analyze_trajectory(history)
    brief = generate_executive_brief(
        raw.competitor_id, dimensions_result.dimensions, pressure, trajectory, saturation, dimensions_result.flags,
    )

    trace = (
        {"step": "dimensions", "rule_id": "SMD-DIM-001", "outputs": to_jsonable(dimensions_result.dimensions)},
        {"step": "pressure", "rule_id": "SMD-PRESS-001",
         "outputs": {"level": pressure.overall_pressure_level.value, "peers": len(peers)}},
        {"step": "saturation", "rule_id": "SMD-SAT-001", "outputs": to_jsonable(saturation)},
        {"step": "trajectory", "rule_id": "SMD-TRAJ-001", "outputs": to_jsonable(trajectory)},
        {"step": "brief", "rule_id": "SMD-BRIEF-001", "outputs": {"archetype": brief.archetype}},
    )

    return StrategicModelResult(
        as_of=as_of,
        dimensions_result=dimensions_result,
        pressure=pressure,
        saturation=saturation,
        trajectory=trajectory,
        brief=brief,
        trace=trace,
    )
