"""Smoke test: run detection, insights and movements on two homepage captures (no DB, no network)."""

from __future__ import annotations

import sys
import uuid
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.models import Change, PageType
from workers.diff_engine.detector import detect_changes
from workers.diff_engine.models import PmSignalSnapshot
from workers.diff_engine.pm_signals import detect_pm_signal_changes
from workers.insights.generator import generate_insights
from workers.movements.processor import build_movements
from workers.web_monitor.extractors import extract_structural_signal

URL = "https://acme.example/"

BEFORE = """
<html><head><title>Acme</title></head><body>
<header><nav><a href="/pricing">Pricing</a><a href="/services">Services</a></nav></header>
<main><h1>Analytics for modern teams</h1><a class="btn" href="/demo">Book a demo</a></main>
</body></html>
"""

AFTER = """
<html><head><title>Acme</title></head><body>
<header><nav><a href="/pricing">Pricing</a><a href="/services">Services</a><a href="/customers">Customers</a></nav></header>
<main><h1>The AI platform for enterprise analytics</h1><a class="btn" href="/trial">Start free trial</a></main>
</body></html>
"""


def _pm(html: str) -> PmSignalSnapshot:
    signal = extract_structural_signal(html, URL, page_type=PageType.HOMEPAGE)
    return PmSignalSnapshot(
        page_type=PageType.HOMEPAGE,
        primary_headline=signal.h1_text,
        primary_cta_text=signal.primary_cta_text,
        nav_items=tuple(signal.nav_labels),
        html=html,
    )


def main() -> None:
    print("🚀 Starting Smoke Test: change detection pipeline")
    competitor_id = uuid.uuid4()

    changes = detect_changes(BEFORE, AFTER, URL, PageType.HOMEPAGE)
    print(f"\n🔍 {len(changes)} changes detected")
    for change in changes:
        print(f"  - [{change.category.value}] {change.summary}")

    pm_diffs = detect_pm_signal_changes(_pm(BEFORE), _pm(AFTER))
    insights = generate_insights(competitor_id, PageType.HOMEPAGE, pm_diffs)
    print(f"\n💡 {len(insights)} insights")
    for insight in insights:
        print(f"  - {insight.insight_type}: {insight.insight_text}")

    rows = [
        Change(
            competitor_id=competitor_id,
            page_url=c.page_url,
            page_type=c.page_type,
            change_type=c.change_type,
            category=c.category,
            position=position,
            summary=c.summary,
        )
        for position, c in enumerate(changes)
    ]
    movements = build_movements(uuid.uuid4(), rows)
    print(f"\n📈 {len(movements)} movements")
    for movement in movements:
        print(f"  - {movement.impact_level.value} {movement.movement_category.value}: {movement.summary}")

    print("\n🏁 Finished")


if __name__ == "__main__":
    main()
