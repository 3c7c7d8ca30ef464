"""
Tests for the deterministic intelligence models.

Covers:
- Engine: trait derivation, traced steps, byte-identical JSON output
- Company baseline profile
- Strategic dimension model with an explicit reference date
- SEO dimensions
- Shared numeric helpers
"""

from core.models import PageType
from workers.intelligence.baseline import BaselineInput, build_company_baseline_profile
from workers.intelligence.common import canonical_json, clamp_score, round_half_up, stable_index
from workers.intelligence.confidence import ConfidenceLevel
from workers.intelligence.engine import run_intelligence_engine
from workers.intelligence.seo import FunnelStage, build_seo_intelligence, classify_page_funnel
from workers.intelligence.signals import RawSignalsInput, ServiceSnapshotSignal, SnapshotSignal
from workers.intelligence.strategic import (
    BREADTH_WITHOUT_FOCUS,
    build_strategic_raw_signals,
    run_strategic_model,
)
from workers.web_monitor.models import SeoPageData

from conftest import AS_OF, BASE_URL


def _engine_input(**overrides) -> RawSignalsInput:
    values = dict(
        competitor_id="acme",
        tracked_page_types=(PageType.HOMEPAGE, PageType.PRICING, PageType.CASE_STUDIES_OR_CUSTOMERS),
        changes_last_30d_count=3,
        latest_by_page_type={
            PageType.SERVICES: SnapshotSignal(
                url=f"{BASE_URL}/services",
                http_status=200,
                title="Services",
                h2_headings=("Strategy", "Delivery"),
                structured_content={
                    "primary_focus": "Strategic",
                    "section_count": 8,
                    "industries": ["healthcare", "finance"],
                    "strategic_keywords_count": 6,
                },
            )
        },
        webpage_signal_texts=(
            "Homepage messaging emphasizes automation.",
            "Primary CTA suggests a hybrid go-to-market strategy.",
            "Pricing narrative: Enterprise positioning emphasized.",
        ),
    )
    values.update(overrides)
    return RawSignalsInput(**values)


# ============================================================
# ENGINE
# ============================================================

class TestIntelligenceEngine:
    def test_traits_from_signals(self):
        report = run_intelligence_engine(_engine_input())
        traits = {t.id: t.value for t in report.traits.all()}

        assert traits["messaging_emphasis"] == "automation"
        assert traits["gtm_motion"] == "hybrid"
        assert traits["monetization_signal"] == "enterprise"
        assert traits["service_breadth"] == "broad"
        assert traits["vertical_focus"] == "clear"
        assert traits["credibility_surface"] == "present"
        assert traits["execution_velocity"] == "selective"
        assert traits["bot_mitigation_block"] == "not_blocked"

    def test_trace_covers_every_step(self):
        report = run_intelligence_engine(_engine_input())

        assert [e.step for e in report.trace] == [
            "signals", "traits", "scores", "ranking", "narrative", "confidence",
        ]
        assert all(e.rule_id for e in report.trace)
        assert report.trace[-1].rule_id == "CM-001"

    def test_identical_input_identical_json(self):
        first = run_intelligence_engine(_engine_input()).to_json()
        second = run_intelligence_engine(_engine_input()).to_json()

        assert first == second
        assert '"competitor_id":"acme"' in first

    def test_multiple_signals_reported_in_confidence(self):
        report = run_intelligence_engine(_engine_input())

        assert report.confidence.signals_used_count == 6
        assert "Multiple independent signals are available." in report.confidence.reasons

    def test_bot_challenge_lowers_confidence(self):
        blocked = SnapshotSignal(url=f"{BASE_URL}/services", http_status=403, title="Just a moment...")
        report = run_intelligence_engine(
            _engine_input(latest_by_page_type={PageType.SERVICES: blocked}, webpage_signal_texts=())
        )

        assert report.traits.bot_mitigation_block.value == "blocked"
        assert report.confidence.level == ConfidenceLevel.LOW

    def test_empty_input(self):
        report = run_intelligence_engine(RawSignalsInput(competitor_id="empty"))

        assert report.competitor_id == "empty"
        assert report.to_dict()["raw"]["changes_last_30d_count"] == 0


# ============================================================
# BASELINE
# ============================================================

class TestCompanyBaseline:
    def _input(self):
        homepage = SnapshotSignal(
            url=f"{BASE_URL}/",
            title="Acme Payments",
            h1_text="Payments platform for banking teams",
            h2_headings=("Founded in 2015 in London, United Kingdom",),
        )
        return BaselineInput(competitor_id="acme", homepage=homepage)

    def test_profile_fields(self):
        profile = build_company_baseline_profile(self._input()).profile

        assert profile.about.founding_year == 2015
        assert "Europe" in profile.about.detected_regions
        assert profile.industry_profile.primary_industry == "Fintech"
        assert profile.industry_profile.industry_confidence == "High"

    def test_trace_and_determinism(self):
        first = build_company_baseline_profile(self._input())
        second = build_company_baseline_profile(self._input())

        assert [e.step for e in first.trace] == [
            "about", "industry", "segment", "offerings", "value_prop", "trust", "compose",
        ]
        assert first.to_json() == second.to_json()

    def test_no_captures(self):
        result = build_company_baseline_profile(BaselineInput(competitor_id="acme"))

        assert result.profile.about.company_summary_raw is None
        assert result.profile.industry_profile.primary_industry is None
        assert result.profile.industry_profile.industry_confidence == "Low"


# ============================================================
# STRATEGIC MODEL
# ============================================================

class TestStrategicModel:
    def test_dimensions(self):
        raw = build_strategic_raw_signals(
            "acme",
            services=ServiceSnapshotSignal(strategic_keywords_count=20),
            total_plans=3,
            enterprise_present=True,
            recent_change_count_30d=2,
        )

        result = run_strategic_model(raw, as_of=AS_OF)
        dims = result.dimensions_result.dimensions

        assert result.as_of == AS_OF
        assert dims.strategic_elevation == 100
        assert dims.monetization_maturity == 90
        assert dims.market_momentum == 30
        assert dims.vertical_depth == 10
        assert dims.service_breadth == 0

    def test_breadth_without_focus_flag(self):
        raw = build_strategic_raw_signals("acme", services=ServiceSnapshotSignal(section_count=9))

        result = run_strategic_model(raw, as_of=AS_OF)

        assert BREADTH_WITHOUT_FOCUS in result.dimensions_result.flags

    def test_same_reference_date_same_output(self):
        raw = build_strategic_raw_signals("acme", total_plans=1)

        first = run_strategic_model(raw, as_of=AS_OF).to_json()
        second = run_strategic_model(raw, as_of=AS_OF).to_json()

        assert first == second

    def test_trace_rule_ids(self):
        result = run_strategic_model(build_strategic_raw_signals("acme"), as_of=AS_OF)

        assert [t["rule_id"] for t in result.trace] == [
            "SMD-DIM-001", "SMD-PRESS-001", "SMD-SAT-001", "SMD-TRAJ-001", "SMD-BRIEF-001",
        ]


# ============================================================
# SEO
# ============================================================

SEO_PAGES = [
    SeoPageData(
        url=f"{BASE_URL}/blog/what-is-cloud-migration",
        h1="What is cloud migration",
        word_count=1800,
        published_at="2026-02-01T00:00:00Z",
    ),
    SeoPageData(url=f"{BASE_URL}/pricing", h1="Pricing", meta_title="Enterprise pricing plans"),
]


class TestSeoIntelligence:
    def test_funnel_stages(self):
        assert classify_page_funnel(SEO_PAGES[0]) == FunnelStage.TOP
        assert classify_page_funnel(SEO_PAGES[1]) == FunnelStage.BOTTOM
        assert classify_page_funnel(SeoPageData(url=f"{BASE_URL}/acme-vs-rival")) == FunnelStage.MID

    def test_dimensions(self):
        result = build_seo_intelligence("acme", SEO_PAGES, as_of=AS_OF)
        dims = result.dimensions

        assert result.summary.dominant_topics == ("CLOUD",)
        assert dims.topic_concentration == 100
        assert dims.vertical_seo_focus == 0
        assert dims.funnel_coverage_balance == 67
        assert dims.content_investment_intensity == 12
        assert dims.enterprise_seo_orientation == 50
        assert dims.seo_momentum == 20

    def test_deterministic(self):
        first = build_seo_intelligence("acme", SEO_PAGES, as_of=AS_OF).to_json()
        second = build_seo_intelligence("acme", list(SEO_PAGES), as_of=AS_OF).to_json()

        assert first == second

    def test_no_pages(self):
        result = build_seo_intelligence("acme", [], as_of=AS_OF)

        assert result.funnel.total == 0
        assert result.dimensions.topic_concentration == 0


# ============================================================
# HELPERS
# ============================================================

class TestCommonHelpers:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.49) == 0

    def test_clamp_score(self):
        assert clamp_score(150) == 100
        assert clamp_score(-3) == 0
        assert clamp_score(float("nan")) == 0

    def test_stable_index(self):
        assert stable_index("acme:seo", 4) == stable_index("acme:seo", 4)
        assert 0 <= stable_index("acme:seo", 4) < 4
        assert stable_index("x", 0) == 0

    def test_canonical_json_sorts_keys(self):
        assert canonical_json({"b": 1, "a": (PageType.HOMEPAGE,)}) == '{"a":["homepage"],"b":1}'
