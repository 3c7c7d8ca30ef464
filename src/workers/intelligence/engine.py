"""
Intelligence Engine — deterministic competitor rollup
=====================================================

Pipeline: raw signals → traits → scores → ranking → narrative → confidence.

No randomness, no clock, no network. Every step appends a ``TraceEvent``
carrying its rule id, so any sentence in the report can be walked back to
the signals that produced it. ``IntelligenceReport.to_json()`` is
byte-identical for identical input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from workers.intelligence.common import canonical_json, to_jsonable
from workers.intelligence.confidence import ConfidenceResult, compute_confidence
from workers.intelligence.narrative import Narrative, compose_narrative
from workers.intelligence.ranking import Ranking, rank_strengths_and_risks
from workers.intelligence.scoring import ScoreCard, compute_scores
from workers.intelligence.signals import RawSignals, RawSignalsInput, build_raw_signals
from workers.intelligence.traits import CompetitiveTraits, derive_competitive_traits

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TraceEvent:
    step: str
    rule_id: str
    message: str
    inputs: Any = None
    outputs: Any = None


@dataclass(frozen=True, slots=True)
class IntelligenceReport:
    competitor_id: str
    raw: RawSignals
    traits: CompetitiveTraits
    scores: ScoreCard
    ranking: Ranking
    narrative: Narrative
    confidence: ConfidenceResult
    trace: tuple[TraceEvent, ...]

    def to_dict(self) -> dict:
        return {
            "competitor_id": self.competitor_id,
            "raw": to_jsonable(self.raw),
            "traits": {t.id: to_jsonable(t) for t in self.traits.all()},
            "scores": to_jsonable(self.scores),
            "ranking": to_jsonable(self.ranking),
            "narrative": {
                "strengths": to_jsonable(self.narrative.strengths),
                "risks": to_jsonable(self.narrative.risks),
                "strategic_implications": to_jsonable(self.narrative.implications),
            },
            "confidence": to_jsonable(self.confidence),
            "trace": to_jsonable(self.trace),
        }

    def to_json(self) -> str:
        return canonical_json(self.to_dict())


def run_intelligence_engine(data: RawSignalsInput) -> IntelligenceReport:
    trace: list[TraceEvent] = []

    raw = build_raw_signals(data)
    trace.append(
        TraceEvent(
            step="signals",
            rule_id="ORCH-001",
            message="Starting deterministic intelligence pipeline.",
            inputs={
                "tracked_page_types": to_jsonable(raw.tracked_page_types),
                "changes_last_30d_count": raw.changes_last_30d_count,
                "webpage_signal_count": len(data.webpage_signal_texts),
            },
            outputs=to_jsonable(raw.webpage_signals),
        )
    )

    traits = derive_competitive_traits(raw)
    trace.append(
        TraceEvent(
            step="traits",
            rule_id="ORCH-TRAITS-001",
            message="Derived competitive traits from raw signals.",
            inputs={"competitor_id": raw.competitor_id},
            outputs=[{"id": t.id, "value": t.value, "rule_id": t.rule_id} for t in traits.all()],
        )
    )

    scores = compute_scores(traits)
    trace.append(
        TraceEvent(
            step="scores",
            rule_id="ORCH-SCORES-001",
            message="Computed weighted dimension scores.",
            inputs=[{"id": t.id, "value": t.value} for t in traits.all()],
            outputs=[
                {"dimension": s.dimension.value, "score": s.score, "rule_id": s.rule_id}
                for s in scores.values()
            ],
        )
    )

    ranking = rank_strengths_and_risks(traits, scores)
    trace.append(
        TraceEvent(
            step="ranking",
            rule_id="ORCH-RANK-001",
            message="Ranked strengths, risks, and imbalance patterns.",
            inputs={s.dimension.value: s.score for s in scores.values()},
            outputs={
                "strengths": [{"id": s.id, "severity": s.severity} for s in ranking.strengths],
                "risks": [{"id": r.id, "severity": r.severity} for r in ranking.risks],
                "imbalances": [
                    {"id": i.id, "severity": i.severity, "rule_id": i.rule_id} for i in ranking.imbalances
                ],
            },
        )
    )

    narrative = compose_narrative(raw.competitor_id, traits, scores, ranking)
    trace.append(
        TraceEvent(
            step="narrative",
            rule_id="ORCH-NARR-001",
            message="Composed deterministic narrative from ranking outputs.",
            inputs={
                "strengths": [s.id for s in ranking.strengths],
                "risks": [r.id for r in ranking.risks],
                "imbalances": [i.id for i in ranking.imbalances],
            },
            outputs={
                "strengths": [{"id": l.id, "template_id": l.template_id} for l in narrative.strengths],
                "risks": [{"id": l.id, "template_id": l.template_id} for l in narrative.risks],
                "implications": [{"id": l.id, "template_id": l.template_id} for l in narrative.implications],
            },
        )
    )

    confidence = compute_confidence(traits, scores)
    trace.append(
        TraceEvent(
            step="confidence",
            rule_id=confidence.rule_id,
            message=f"Computed confidence: {confidence.level.value}.",
            inputs={"bot_mitigation_block": traits.bot_mitigation_block.value},
            outputs=to_jsonable(confidence),
        )
    )

    logger.debug(
        "Intelligence report for %s: confidence=%s, %d trace steps",
        raw.competitor_id, confidence.level.value, len(trace),
    )

    return IntelligenceReport(
        competitor_id=raw.competitor_id,
        raw=raw,
        traits=traits,
        scores=scores,
        ranking=ranking,
        narrative=narrative,
        confidence=confidence,
        trace=tuple(trace),
    )
