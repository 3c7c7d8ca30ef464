"""Confidence level for one engine run (rule CM-001)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from workers.intelligence.scoring import ScoreCard
from workers.intelligence.traits import UNKNOWN, CompetitiveTraits


class ConfidenceLevel(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


@dataclass(frozen=True, slots=True)
class ConfidenceResult:
    level: ConfidenceLevel
    rule_id: str
    reasons: tuple[str, ...]
    signals_used_count: int
    score_spread: int


def signals_used_count(traits: CompetitiveTraits) -> int:
    independent = (
        traits.messaging_emphasis,
        traits.gtm_motion,
        traits.monetization_signal,
        traits.service_breadth,
        traits.vertical_focus,
        traits.credibility_surface,
    )
    return sum(1 for trait in independent if trait.value != UNKNOWN)


def score_spread(scores: ScoreCard) -> int:
    values = [s.score for s in scores.values()]
    return abs(max(values) - min(values)) if values else 0


def compute_confidence(traits: CompetitiveTraits, scores: ScoreCard) -> ConfidenceResult:
    used = signals_used_count(traits)
    spread = score_spread(scores)
    blocked = traits.bot_mitigation_block.value == "blocked"

    reasons: list[str] = []
    if blocked:
        reasons.append("Bot mitigation appears to block some high-impact pages.")
    if used >= 5:
        reasons.append("Multiple independent signals are available.")
    if used <= 2:
        reasons.append("Signal coverage is thin; interpretation is constrained.")
    if spread >= 25:
        reasons.append("Score margins are meaningful across dimensions.")
    if spread < 15:
        reasons.append("Score margins are tight; differentiation is limited.")

    if blocked:
        level = ConfidenceLevel.MEDIUM if used >= 4 else ConfidenceLevel.LOW
    elif used >= 5 and spread >= 20:
        level = ConfidenceLevel.HIGH
    elif used <= 2:
        level = ConfidenceLevel.LOW
    else:
        level = ConfidenceLevel.MEDIUM

    return ConfidenceResult(
        level=level,
        rule_id="CM-001",
        reasons=tuple(reasons),
        signals_used_count=used,
        score_spread=spread,
    )
