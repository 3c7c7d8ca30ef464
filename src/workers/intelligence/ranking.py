"""Strengths, risks and imbalance patterns ranked from the score card."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from workers.intelligence.scoring import ScoreCard, ScoreDimension
from workers.intelligence.traits import CompetitiveTraits

TOP_N = 3


@dataclass(frozen=True, slots=True)
class RankedItem:
    id: str
    kind: str
    severity: int
    rule_id: str
    dimension: ScoreDimension | None = None
    evidence: tuple[dict[str, Any], ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class Ranking:
    strengths: tuple[RankedItem, ...]
    risks: tuple[RankedItem, ...]
    imbalances: tuple[RankedItem, ...]


def rank_strengths_and_risks(traits: CompetitiveTraits, scores: ScoreCard) -> Ranking:
    dims = [(d.dimension, d.score) for d in scores.values()]

    # sorted() is stable: ties keep score-card order
    top = sorted(dims, key=lambda d: -d[1])[:TOP_N]
    bottom = sorted(dims, key=lambda d: d[1])[:TOP_N]

    strengths = tuple(
        RankedItem(
            id=f"strength_{dim.value}",
            kind="strength",
            severity=score,
            rule_id="RE-RANK-STR-001",
            dimension=dim,
            evidence=({"dimension": dim.value, "value": score},),
        )
        for dim, score in top
    )
    risks = tuple(
        RankedItem(
            id=f"risk_{dim.value}",
            kind="risk",
            severity=100 - score,
            rule_id="RE-RANK-RISK-001",
            dimension=dim,
            evidence=({"dimension": dim.value, "value": score},),
        )
        for dim, score in bottom
    )

    market_focus = scores[ScoreDimension.MARKET_FOCUS].score
    monetization = scores[ScoreDimension.MONETIZATION_CLARITY].score
    credibility = scores[ScoreDimension.CREDIBILITY_PROOF].score

    imbalances: list[RankedItem] = []
    if traits.service_breadth.value == "broad" and market_focus <= 55:
        imbalances.append(
            RankedItem(
                id="imbalance_broad_no_focus",
                kind="imbalance",
                severity=70,
                rule_id="RE-IMB-001",
                evidence=(
                    {"trait_id": "service_breadth", "value": traits.service_breadth.value},
                    {"dimension": ScoreDimension.MARKET_FOCUS.value, "value": market_focus},
                ),
            )
        )
    if monetization >= 70 and credibility <= 50:
        imbalances.append(
            RankedItem(
                id="imbalance_monetization_no_proof",
                kind="imbalance",
                severity=65,
                rule_id="RE-IMB-002",
                evidence=(
                    {"dimension": ScoreDimension.MONETIZATION_CLARITY.value, "value": monetization},
                    {"dimension": ScoreDimension.CREDIBILITY_PROOF.value, "value": credibility},
                ),
            )
        )

    return Ranking(strengths=strengths, risks=risks, imbalances=tuple(imbalances))
