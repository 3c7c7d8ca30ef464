"""Weighted 0–100 dimension scores over the competitive traits."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from workers.intelligence.common import clamp_score
from workers.intelligence.traits import UNKNOWN, CompetitiveTraits


class ScoreDimension(StrEnum):
    POSITIONING = "Positioning"
    OPERATIONAL_DEPTH = "OperationalDepth"
    MONETIZATION_CLARITY = "MonetizationClarity"
    MARKET_FOCUS = "MarketFocus"
    CREDIBILITY_PROOF = "CredibilityProof"
    EXECUTION_VELOCITY = "ExecutionVelocity"


DIMENSION_LABELS: dict[ScoreDimension, str] = {
    ScoreDimension.POSITIONING: "Positioning",
    ScoreDimension.OPERATIONAL_DEPTH: "Operational depth",
    ScoreDimension.MONETIZATION_CLARITY: "Monetization clarity",
    ScoreDimension.MARKET_FOCUS: "Market focus",
    ScoreDimension.CREDIBILITY_PROOF: "Credibility proof",
    ScoreDimension.EXECUTION_VELOCITY: "Execution velocity",
}


@dataclass(frozen=True, slots=True)
class Contribution:
    trait_id: str
    weight: float
    points: int
    rationale: str


@dataclass(frozen=True, slots=True)
class DimensionScore:
    dimension: ScoreDimension
    score: int
    rule_id: str
    contributions: tuple[Contribution, ...]


ScoreCard = dict[ScoreDimension, DimensionScore]

# dimension → (rule id, [(trait id, weight, rationale)])
SCORE_MODEL: dict[ScoreDimension, tuple[str, tuple[tuple[str, float, str], ...]]] = {
    ScoreDimension.POSITIONING: ("SM-POS-001", (
        ("messaging_emphasis", 0.45, "Homepage messaging theme availability and clarity."),
        ("service_focus", 0.35, "Service framing (Strategic/Balanced/Execution) influences positioning depth."),
        ("service_breadth", 0.2, "Breadth can reinforce perceived capability scope."),
    )),
    ScoreDimension.OPERATIONAL_DEPTH: ("SM-OPS-001", (
        ("service_breadth", 0.65, "More structured sections typically indicate broader operational surface area."),
        ("service_focus", 0.35, "Execution-heavy focus can imply delivery depth; strategic can imply advisory depth."),
    )),
    ScoreDimension.MONETIZATION_CLARITY: ("SM-MON-001", (
        ("monetization_signal", 0.7, "Pricing narrative signals are strong indicators of packaging intent."),
        ("gtm_motion", 0.3, "CTA-driven GTM motion clarifies conversion strategy."),
    )),
    ScoreDimension.MARKET_FOCUS: ("SM-MKT-001", (
        ("vertical_focus", 0.7, "Explicit industries indicate sharper market segmentation."),
        ("service_breadth", 0.3, "Breadth without vertical clarity may imply generalist positioning."),
    )),
    ScoreDimension.CREDIBILITY_PROOF: ("SM-CRED-001", (
        ("credibility_surface", 1.0, "Presence of case studies/customers page implies proof surface."),
    )),
    ScoreDimension.EXECUTION_VELOCITY: ("SM-VEL-001", (
        ("execution_velocity", 1.0, "Recent change cadence indicates execution velocity on public surfaces."),
    )),
}


def trait_points(trait_id: str, value: str) -> int:
    match trait_id, value:
        case "service_breadth", "broad":
            return 85
        case "service_breadth", "focused":
            return 55
        case "service_focus", "Strategic":
            return 80
        case "service_focus", "Balanced":
            return 65
        case "service_focus", "Execution":
            return 55
        case "vertical_focus", "clear":
            return 80
        case "vertical_focus", "diffuse":
            return 55
        case "monetization_signal", "enterprise":
            return 75
        case "monetization_signal", "sales-led":
            return 65
        case "monetization_signal", "growth-led":
            return 60
        case "gtm_motion", "hybrid":
            return 75
        case "gtm_motion", "sales-led":
            return 65
        case "gtm_motion", "self-serve":
            return 60
        case "credibility_surface", "present":
            return 75
        case "credibility_surface", "absent":
            return 45
        case "execution_velocity", "active":
            return 80
        case "execution_velocity", "selective":
            return 60
        case "execution_velocity", _:
            return 45
        case "messaging_emphasis", _:
            return 45 if value == UNKNOWN else 70
        case "bot_mitigation_block", _:
            # quality signal only
            return 0
        case _:
            return 40


def weighted_average(parts: tuple[Contribution, ...]) -> float:
    total_weight = sum(p.weight for p in parts)
    if total_weight <= 0:
        return 0.0
    return sum(p.weight * p.points for p in parts) / total_weight


def compute_scores(traits: CompetitiveTraits) -> ScoreCard:
    card: ScoreCard = {}
    for dimension, (rule_id, weights) in SCORE_MODEL.items():
        contributions = tuple(
            Contribution(trait_id, weight, trait_points(trait_id, getattr(traits, trait_id).value), rationale)
            for trait_id, weight, rationale in weights
        )
        card[dimension] = DimensionScore(
            dimension=dimension,
            score=clamp_score(weighted_average(contributions)),
            rule_id=rule_id,
            contributions=contributions,
        )
    return card
