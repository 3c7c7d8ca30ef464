"""
Narrative composer — fixed sentence templates per ranked item.

The template variant is picked with ``stable_index("{competitor}:{item}")``
so a competitor's narrative never flips between runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from workers.intelligence.common import stable_index
from workers.intelligence.ranking import RankedItem, Ranking
from workers.intelligence.scoring import DIMENSION_LABELS, ScoreCard, ScoreDimension
from workers.intelligence.traits import CompetitiveTraits

STRENGTH_TEMPLATES: dict[ScoreDimension, tuple[str, ...]] = {
    ScoreDimension.POSITIONING: (
        "Positioning appears coherent across public surfaces, supported by consistent messaging cues.",
        "Public-facing positioning reads as intentional and cohesive, reducing ambiguity for buyers.",
    ),
    ScoreDimension.OPERATIONAL_DEPTH: (
        "Service structure suggests meaningful operational depth and delivery surface area.",
        "Offering breadth indicates a mature delivery footprint rather than a narrow point solution.",
    ),
    ScoreDimension.MONETIZATION_CLARITY: (
        "Monetization signals are legible, making packaging and conversion intent easy to infer.",
        "Pricing/CTA signals present a clear conversion path and packaging posture.",
    ),
    ScoreDimension.MARKET_FOCUS: (
        "Market focus signals indicate a defined segment orientation rather than broad generalism.",
        "Segment cues suggest the competitor knows where it wins and is reinforcing that framing.",
    ),
    ScoreDimension.CREDIBILITY_PROOF: (
        "Credibility surfaces suggest proof-building is part of their go-to-market narrative.",
        "Customer proof is present, strengthening trust signals for enterprise buyers.",
    ),
    ScoreDimension.EXECUTION_VELOCITY: (
        "Change cadence suggests active execution on public-facing strategy surfaces.",
        "Recent activity indicates ongoing iteration rather than a static posture.",
    ),
}

RISK_TEMPLATES: dict[ScoreDimension, tuple[str, ...]] = {
    ScoreDimension.POSITIONING: (
        "Positioning signals are thin or inconsistent, making intent harder to interpret reliably.",
        "Messaging cues do not strongly differentiate the offer, increasing ambiguity.",
    ),
    ScoreDimension.OPERATIONAL_DEPTH: (
        "Service structure does not yet indicate broad depth; capability surface may be narrower.",
        "Delivery footprint appears limited or under-articulated in current service pages.",
    ),
    ScoreDimension.MONETIZATION_CLARITY: (
        "Monetization posture is not strongly signaled; packaging intent may be opaque to buyers.",
        "Pricing and conversion cues are weak, which can slow qualification or reduce urgency.",
    ),
    ScoreDimension.MARKET_FOCUS: (
        "Vertical focus is not clearly articulated, suggesting broader or less targeted framing.",
        "Segment emphasis appears diffuse, which can dilute relevance in high-intent markets.",
    ),
    ScoreDimension.CREDIBILITY_PROOF: (
        "Proof surfaces are limited; credibility relies more on claims than demonstrated outcomes.",
        "Customer evidence is not strongly present, which can weaken trust for higher-stakes deals.",
    ),
    ScoreDimension.EXECUTION_VELOCITY: (
        "Low visible change cadence suggests slower iteration on public strategy surfaces.",
        "Limited surface movement suggests stability, but reduces observable experimentation signals.",
    ),
}

IMBALANCE_TEMPLATES: dict[str, tuple[str, ...]] = {
    "imbalance_broad_no_focus": (
        "Broad service surface without clear vertical emphasis can read as generalist positioning.",
        "Breadth is evident, but segment clarity is limited, which can dilute buyer relevance.",
    ),
    "imbalance_monetization_no_proof": (
        "Packaging signals are clear, but proof surfaces are weaker, which can increase buyer skepticism.",
        "Monetization intent is legible, yet credibility cues lag, potentially slowing enterprise conversion.",
    ),
}

FALLBACK_IMBALANCE = ("An imbalance pattern was detected based on the current strategic signal mix.",)

BOT_CAVEAT = (
    "Some high-impact pages appear protected by bot mitigation; "
    "interpretation is constrained to partial signals."
)


@dataclass(frozen=True, slots=True)
class NarrativeLine:
    id: str
    kind: str
    text: str
    template_id: str
    rule_id: str
    evidence: tuple[dict[str, Any], ...]


@dataclass(frozen=True, slots=True)
class Narrative:
    strengths: tuple[NarrativeLine, ...]
    risks: tuple[NarrativeLine, ...]
    implications: tuple[NarrativeLine, ...]


def _dimension_line(
    competitor_id: str,
    item: RankedItem,
    templates: dict[ScoreDimension, tuple[str, ...]],
    prefix: str,
    rule_id: str,
) -> NarrativeLine:
    variants = templates[item.dimension]
    idx = stable_index(f"{competitor_id}:{item.id}", len(variants))
    return NarrativeLine(
        id=item.id,
        kind=item.kind,
        text=variants[idx],
        template_id=f"{prefix}-{item.dimension.value}-{idx}",
        rule_id=rule_id,
        evidence=item.evidence,
    )


def compose_narrative(
    competitor_id: str,
    traits: CompetitiveTraits,
    scores: ScoreCard,
    ranking: Ranking,
) -> Narrative:
    strengths = tuple(
        _dimension_line(competitor_id, s, STRENGTH_TEMPLATES, "NC-STR", "NC-STR-001")
        for s in ranking.strengths
        if s.dimension is not None
    )
    risks = tuple(
        _dimension_line(competitor_id, r, RISK_TEMPLATES, "NC-RISK", "NC-RISK-001")
        for r in ranking.risks
        if r.dimension is not None
    )

    imbalance_lines = []
    for item in ranking.imbalances:
        variants = IMBALANCE_TEMPLATES.get(item.id, FALLBACK_IMBALANCE)
        idx = stable_index(f"{competitor_id}:{item.id}", len(variants))
        imbalance_lines.append(
            NarrativeLine(
                id=item.id,
                kind="imbalance",
                text=variants[idx],
                template_id=f"NC-IMB-{item.id}-{idx}",
                rule_id=item.rule_id,
                evidence=item.evidence,
            )
        )

    dims = list(scores.values())
    top = sorted(dims, key=lambda d: -d.score)[0]
    bottom = sorted(dims, key=lambda d: d.score)[0]

    implications = [
        NarrativeLine(
            id="implication_top",
            kind="implication",
            text=f"Primary strength signal concentrates in {DIMENSION_LABELS[top.dimension]}.",
            template_id="NC-IMP-001",
            rule_id="NC-IMP-001",
            evidence=({"dimension": top.dimension.value, "value": top.score},),
        ),
        NarrativeLine(
            id="implication_bottom",
            kind="implication",
            text=f"Primary risk signal concentrates in {DIMENSION_LABELS[bottom.dimension]}.",
            template_id="NC-IMP-002",
            rule_id="NC-IMP-002",
            evidence=({"dimension": bottom.dimension.value, "value": bottom.score},),
        ),
        *imbalance_lines,
    ]

    if traits.bot_mitigation_block.value == "blocked":
        implications.append(
            NarrativeLine(
                id="implication_quality_blocked",
                kind="implication",
                text=BOT_CAVEAT,
                template_id="NC-QUAL-001",
                rule_id="NC-QUAL-001",
                evidence=tuple({"value": e.value} for e in traits.bot_mitigation_block.evidence),
            )
        )

    return Narrative(strengths=strengths, risks=risks, implications=tuple(implications))
