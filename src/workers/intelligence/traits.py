"""Competitive traits: one categorical reading per signal, each tagged with its rule id."""

from __future__ import annotations

from dataclasses import dataclass

from core.models import PageType
from workers.intelligence.common import Evidence
from workers.intelligence.signals import RawSignals

UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Trait:
    id: str
    label: str
    value: str
    rule_id: str
    evidence: tuple[Evidence, ...]


@dataclass(frozen=True, slots=True)
class CompetitiveTraits:
    service_breadth: Trait
    service_focus: Trait
    vertical_focus: Trait
    monetization_signal: Trait
    gtm_motion: Trait
    messaging_emphasis: Trait
    credibility_surface: Trait
    execution_velocity: Trait
    bot_mitigation_block: Trait

    def all(self) -> tuple[Trait, ...]:
        return (
            self.service_breadth,
            self.service_focus,
            self.vertical_focus,
            self.monetization_signal,
            self.gtm_motion,
            self.messaging_emphasis,
            self.credibility_surface,
            self.execution_velocity,
            self.bot_mitigation_block,
        )


def service_breadth_value(section_count: int | None) -> str:
    if section_count is None:
        return UNKNOWN
    if section_count > 6:
        return "broad"
    if section_count > 0:
        return "focused"
    return UNKNOWN


def vertical_focus_value(industries: tuple[str, ...]) -> str:
    if len(industries) >= 2:
        return "clear"
    if len(industries) == 1:
        return "diffuse"
    return UNKNOWN


def monetization_value(pricing_narrative: str | None) -> str:
    text = (pricing_narrative or "").lower()
    if "enterprise positioning emphasized" in text:
        return "enterprise"
    if "sales-driven" in text:
        return "sales-led"
    if "growth-led" in text:
        return "growth-led"
    return UNKNOWN


def gtm_motion_value(gtm_motion: str | None) -> str:
    text = (gtm_motion or "").lower()
    for value in ("hybrid", "sales-led", "self-serve"):
        if value in text:
            return value
    return UNKNOWN


def execution_velocity_value(changes_last_30d_count: int) -> str:
    if changes_last_30d_count >= 5:
        return "active"
    if changes_last_30d_count >= 2:
        return "selective"
    return "stable"


def derive_competitive_traits(signals: RawSignals) -> CompetitiveTraits:
    service = signals.services.snapshot
    section_count = service.section_count if service is not None else None
    focus = service.primary_focus if service is not None else UNKNOWN
    industries = service.industries if service is not None else ()
    webpage = signals.webpage_signals
    has_proof_page = PageType.CASE_STUDIES_OR_CUSTOMERS in signals.tracked_page_types
    blocked = signals.services.blocked_by_bot_mitigation

    return CompetitiveTraits(
        service_breadth=Trait(
            "service_breadth", "Service breadth", service_breadth_value(section_count), "TE-SVC-001",
            (Evidence("snapshot", "services.section_count", section_count),),
        ),
        service_focus=Trait(
            "service_focus", "Service focus", focus, "TE-SVC-002",
            (Evidence("snapshot", "services.primary_focus", focus),),
        ),
        vertical_focus=Trait(
            "vertical_focus", "Vertical focus", vertical_focus_value(industries), "TE-VERT-001",
            (Evidence("snapshot", "services.industries", list(industries)),),
        ),
        monetization_signal=Trait(
            "monetization_signal", "Monetization signal", monetization_value(webpage.pricing_narrative),
            "TE-PRICE-001",
            (Evidence("webpage_signal", "pricing_narrative", webpage.pricing_narrative),),
        ),
        gtm_motion=Trait(
            "gtm_motion", "GTM motion", gtm_motion_value(webpage.gtm_motion), "TE-GTM-001",
            (Evidence("webpage_signal", "gtm_motion", webpage.gtm_motion),),
        ),
        messaging_emphasis=Trait(
            "messaging_emphasis", "Messaging emphasis", webpage.messaging_theme or UNKNOWN, "TE-MSG-001",
            (Evidence("webpage_signal", "messaging_theme", webpage.messaging_theme),),
        ),
        credibility_surface=Trait(
            "credibility_surface", "Credibility surface", "present" if has_proof_page else "absent",
            "TE-CRED-001",
            (Evidence("coverage", "tracked.case_studies_or_customers", has_proof_page),),
        ),
        execution_velocity=Trait(
            "execution_velocity", "Execution velocity",
            execution_velocity_value(signals.changes_last_30d_count), "TE-ACT-001",
            (Evidence("activity", "changes_last_30d_count", signals.changes_last_30d_count),),
        ),
        bot_mitigation_block=Trait(
            "bot_mitigation_block", "Bot mitigation", "blocked" if blocked else "not_blocked", "TE-QUAL-001",
            (Evidence("snapshot", "services.blocked_by_bot_mitigation", blocked),),
        ),
    )
