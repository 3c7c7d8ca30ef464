"""
Tests for observational insights, insight persistence and competitive state.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from core.exceptions import PersistenceError
from core.models import ChangeCategory, InsightState, PageType
from workers.insights.competitive_state import (
    ChangeLike,
    CompetitivePosture,
    CompetitiveStatus,
    InsightLike,
    TrackingConfidence,
    derive_competitive_state,
    derive_focus_signals,
    derive_pm_interpretation,
    derive_strategic_watchlist,
)
from workers.insights.generator import InsightData
from workers.insights.observational import (
    NO_CHANGES_SO_FAR,
    PAGES_MONITORED,
    ObservationalInsightType,
    generate_observational_insights,
    observation_text_for,
)
from workers.insights.persistence import persist_insights, persist_observational_insights

from conftest import make_result, make_session


# ============================================================
# OBSERVATIONAL INSIGHTS
# ============================================================

class TestObservationalInsights:
    def test_no_insights_three_tracked_types(self):
        insights = generate_observational_insights(
            [PageType.HOMEPAGE, PageType.PRICING, PageType.CASE_STUDIES_OR_CUSTOMERS], [], False
        )

        assert [i.text for i in insights] == [
            NO_CHANGES_SO_FAR,
            "Homepage under continuous tracking.",
            "Pricing page detected; no changes observed.",
            "Case studies detected and monitored.",
        ]
        assert insights[0].type == ObservationalInsightType.STABILITY_INDICATOR
        assert all(i.state == InsightState.OBSERVATIONAL for i in insights)

    def test_covered_types_are_skipped(self):
        insights = generate_observational_insights(
            [PageType.HOMEPAGE, PageType.PRICING], [PageType.HOMEPAGE], True
        )

        assert [i.text for i in insights] == ["Pricing page detected; no changes observed."]

    def test_everything_covered_falls_back_to_coverage_line(self):
        insights = generate_observational_insights(["homepage"], ["homepage"], True)

        assert [i.text for i in insights] == [PAGES_MONITORED]
        assert insights[0].type == ObservationalInsightType.COVERAGE_STATUS

    def test_unknown_and_duplicate_types_dropped(self):
        insights = generate_observational_insights(["pricing", "bogus", PageType.PRICING], [], True)

        assert [i.text for i in insights] == ["Pricing page detected; no changes observed."]

    def test_nothing_tracked(self):
        assert generate_observational_insights([], [], True) == []
        assert [i.text for i in generate_observational_insights([], [], False)] == [NO_CHANGES_SO_FAR]

    def test_stored_observation_text(self):
        assert observation_text_for(PageType.HOMEPAGE) == "Homepage is actively monitored."
        assert observation_text_for(PageType.SERVICES) == "Page is actively monitored; no changes detected."


# ============================================================
# INSIGHT PERSISTENCE
# ============================================================

def _insight(competitor_id, text="Strategic focus area shifted.", insight_type="strategic_priority"):
    return InsightData(
        competitor_id=competitor_id,
        page_type=PageType.HOMEPAGE,
        insight_type=insight_type,
        insight_text=text,
    )


class TestPersistInsights:
    async def test_inserts_new_and_dedupes_within_batch(self, competitor_id):
        session = make_session(make_result(scalar=None))
        batch = [_insight(competitor_id), _insight(competitor_id), _insight(competitor_id, "Other.", "x")]

        inserted = await persist_insights(session, batch)

        assert inserted == 2
        rows = session.add_all.call_args.args[0]
        assert [r.insight_text for r in rows] == ["Strategic focus area shifted.", "Other."]
        assert rows[0].state == InsightState.CHANGE_BASED
        session.flush.assert_awaited_once()

    async def test_recent_duplicate_is_skipped(self, competitor_id):
        session = make_session(make_result(scalar="existing-id"))

        assert await persist_insights(session, [_insight(competitor_id)]) == 0
        session.add_all.assert_not_called()

    async def test_empty_batch(self, fake_session):
        assert await persist_insights(fake_session, []) == 0
        fake_session.execute.assert_not_awaited()

    async def test_failure_raises_persistence_error(self, competitor_id):
        session = make_session()
        session.execute = AsyncMock(side_effect=SQLAlchemyError("db down"))

        with pytest.raises(PersistenceError) as exc_info:
            await persist_insights(session, [_insight(competitor_id)])

        assert exc_info.value.entity == "insights"


class TestPersistObservationalInsights:
    async def test_one_row_per_page_type(self, competitor_id):
        session = make_session(make_result(scalar=None))

        inserted = await persist_observational_insights(
            session, competitor_id, [PageType.HOMEPAGE, PageType.PRICING, PageType.HOMEPAGE]
        )

        assert inserted == 2
        rows = session.add_all.call_args.args[0]
        assert {r.insight_type for r in rows} == {"observational"}
        assert all(r.state == InsightState.OBSERVATIONAL for r in rows)

    async def test_failure_is_logged_not_raised(self, competitor_id):
        session = make_session()
        session.execute = AsyncMock(side_effect=SQLAlchemyError("db down"))

        assert await persist_observational_insights(session, competitor_id, [PageType.HOMEPAGE]) == 0


# ============================================================
# COMPETITIVE STATE
# ============================================================

class TestCompetitiveState:
    def test_no_data_is_distinct_from_stable(self):
        no_data = derive_competitive_state(0, [], [], [])
        stable = derive_competitive_state(0, [PageType.HOMEPAGE], [], [])

        assert no_data.status == CompetitiveStatus.NO_DATA
        assert no_data.summary[0] == "No captures have been analyzed yet for this competitor."
        assert stable.status == CompetitiveStatus.STABLE
        assert stable.posture == CompetitivePosture.MAINTAINING
        assert stable.summary[-1] == "Monitoring currently covers 1 strategic area."

    def test_activity_thresholds(self):
        tracked = [PageType.HOMEPAGE, PageType.PRICING]

        assert derive_competitive_state(1, tracked, [], []).status == CompetitiveStatus.STABLE
        assert derive_competitive_state(2, tracked, [], []).status == CompetitiveStatus.MODERATE
        assert derive_competitive_state(5, tracked, [], []).status == CompetitiveStatus.ACTIVE
        assert derive_competitive_state(5, tracked, [], []).tracking_confidence == TrackingConfidence.HIGH

    def test_navigation_change_means_expanding(self):
        state = derive_competitive_state(
            3,
            [PageType.HOMEPAGE],
            [],
            [ChangeLike(PageType.HOMEPAGE, ChangeCategory.NAVIGATION_STRUCTURE)],
        )

        assert state.posture == CompetitivePosture.EXPANDING
        assert state.tracking_confidence == TrackingConfidence.MEDIUM

    def test_pricing_and_homepage_insights_mean_experimenting(self):
        insights = [
            InsightLike(PageType.PRICING, "pricing_strategy"),
            InsightLike(PageType.HOMEPAGE, "messaging_shift"),
        ]

        state = derive_competitive_state(
            2, [PageType.HOMEPAGE, PageType.PRICING], insights, [ChangeLike(PageType.PRICING)]
        )

        assert state.posture == CompetitivePosture.EXPERIMENTING

    def test_observational_rows_are_not_change_insights(self):
        insights = [
            InsightLike(PageType.PRICING, "observational"),
            InsightLike(PageType.HOMEPAGE, "webpage_signal"),
        ]

        state = derive_competitive_state(
            2, [PageType.HOMEPAGE, PageType.PRICING], insights, [ChangeLike(PageType.PRICING)]
        )

        assert state.posture == CompetitivePosture.MAINTAINING


class TestFocusAndInterpretation:
    def test_focus_from_change_insights(self):
        insights = [
            InsightLike(PageType.PRICING, "pricing_strategy"),
            InsightLike(PageType.PRICING, "pricing_strategy"),
            InsightLike(PageType.HOMEPAGE, "messaging_shift"),
        ]

        focus = derive_focus_signals([PageType.HOMEPAGE, PageType.PRICING], insights)

        assert focus.primary_focus_areas == ["Pricing", "Homepage"]
        assert focus.secondary_signals == ["No inactivity flags across high-impact monitored areas"]
        assert focus.interpretation == (
            "Competitor is actively tuning both market message and monetization surfaces."
        )

    def test_focus_without_insights_uses_tracked_types(self):
        focus = derive_focus_signals([PageType.HOMEPAGE, PageType.PRICING], [])

        assert focus.primary_focus_areas == ["Homepage", "Pricing"]
        assert "No pricing experimentation detected" in focus.secondary_signals

    def test_watchlist(self):
        assert [w["area"] for w in derive_strategic_watchlist([PageType.PRICING])] == ["Pricing"]
        assert derive_strategic_watchlist([])[0]["area"] == "Core strategic pages"

    def test_pm_interpretation_lines(self):
        lines = derive_pm_interpretation(CompetitiveStatus.NO_DATA, [], [])

        assert len(lines) == 4
        assert lines[2].startswith("No captures analyzed yet")
