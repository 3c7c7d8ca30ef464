"""
Tests for the PM signal differ, change-based insight generation and
webpage-derived signal insights.
"""

from types import SimpleNamespace

from core.models import InsightConfidence, InsightState, PageType
from workers.diff_engine.models import PmSignalChangeType, PmSignalDiff, PmSignalSnapshot
from workers.diff_engine.pm_signals import detect_pm_signal_changes, extract_price_signals, normalize_pm_text
from workers.insights.generator import generate_insights
from workers.insights.webpage_signals import (
    WEBPAGE_SIGNAL,
    derive_gtm_motion,
    derive_homepage_theme,
    derive_pricing_narrative,
    derive_webpage_signal_insights,
)

from conftest import build_pricing_page


def _types(diffs):
    return [d.change_type for d in diffs]


# ============================================================
# PM SIGNAL DIFFER
# ============================================================

class TestPmSignalChanges:
    def test_nav_items_change(self):
        before = PmSignalSnapshot(PageType.HOMEPAGE, nav_items=("Home", "Pricing"))
        after = PmSignalSnapshot(PageType.HOMEPAGE, nav_items=("Home", "Pricing", "Industries"))

        diffs = detect_pm_signal_changes(before, after)

        assert _types(diffs) == [PmSignalChangeType.NAV_ITEMS_CHANGE]
        assert diffs[0].after_value == ["home", "industries", "pricing"]

    def test_nav_order_is_not_a_change(self):
        before = PmSignalSnapshot(PageType.HOMEPAGE, nav_items=("Pricing", "Home"))
        after = PmSignalSnapshot(PageType.HOMEPAGE, nav_items=("home", "Pricing"))

        assert detect_pm_signal_changes(before, after) == []

    def test_homepage_headline_change(self):
        before = PmSignalSnapshot(PageType.HOMEPAGE, primary_headline="Analytics for teams")
        after = PmSignalSnapshot(PageType.HOMEPAGE, primary_headline="AI analytics for enterprises")

        assert _types(detect_pm_signal_changes(before, after)) == [PmSignalChangeType.HOMEPAGE_HEADLINE_CHANGE]

    def test_headline_ignored_off_homepage_or_when_missing(self):
        pricing_before = PmSignalSnapshot(PageType.PRICING, primary_headline="Plans")
        pricing_after = PmSignalSnapshot(PageType.PRICING, primary_headline="Pricing")
        empty_before = PmSignalSnapshot(PageType.HOMEPAGE, primary_headline=None)
        homepage_after = PmSignalSnapshot(PageType.HOMEPAGE, primary_headline="New headline")

        assert detect_pm_signal_changes(pricing_before, pricing_after) == []
        assert detect_pm_signal_changes(empty_before, homepage_after) == []

    def test_cta_change_ignores_punctuation(self):
        same_before = PmSignalSnapshot(PageType.HOMEPAGE, primary_cta_text="Book a demo!")
        same_after = PmSignalSnapshot(PageType.HOMEPAGE, primary_cta_text="book a demo")
        changed = PmSignalSnapshot(PageType.HOMEPAGE, primary_cta_text="Start free trial")

        assert detect_pm_signal_changes(same_before, same_after) == []
        assert _types(detect_pm_signal_changes(same_before, changed)) == [PmSignalChangeType.CTA_TEXT_CHANGE]

    def test_pricing_structure_change(self):
        before = PmSignalSnapshot(
            PageType.PRICING, html=build_pricing_page([("Starter", "$10 per month", "Start now")])
        )
        after = PmSignalSnapshot(
            PageType.PRICING, html=build_pricing_page([("Starter", "$12 per month", "Start now")])
        )

        assert _types(detect_pm_signal_changes(before, after)) == [PmSignalChangeType.PRICING_STRUCTURE_CHANGE]

    def test_product_section_change_is_medium_confidence(self):
        before = PmSignalSnapshot(PageType.PRODUCT_OR_SERVICES, html="<main><h2>Core features</h2></main>")
        after = PmSignalSnapshot(
            PageType.PRODUCT_OR_SERVICES,
            html="<main><h2>Core features</h2><h2>Integration platform</h2></main>",
        )

        diffs = detect_pm_signal_changes(before, after)

        assert _types(diffs) == [PmSignalChangeType.PRODUCT_SERVICE_SECTION_CHANGE]
        assert diffs[0].confidence == InsightConfidence.MEDIUM

    def test_case_study_additions_ignore_footer(self):
        base = "<main><h1>Customers</h1></main>"
        footer_only = "<main><h1>Customers</h1></main><footer>Trusted by 500 teams</footer>"
        in_body = "<main><h1>Customers</h1><p>Trusted by 500 teams</p></main>"

        no_diff = detect_pm_signal_changes(
            PmSignalSnapshot(PageType.CASE_STUDIES_OR_CUSTOMERS, html=base),
            PmSignalSnapshot(PageType.CASE_STUDIES_OR_CUSTOMERS, html=footer_only),
        )
        diff = detect_pm_signal_changes(
            PmSignalSnapshot(PageType.CASE_STUDIES_OR_CUSTOMERS, html=base),
            PmSignalSnapshot(PageType.CASE_STUDIES_OR_CUSTOMERS, html=in_body),
        )

        assert no_diff == []
        assert _types(diff) == [PmSignalChangeType.CASE_STUDY_OR_CUSTOMER_LOGO_ADDED]
        assert diff[0].after_value == ["trusted by"]


class TestPmTextHelpers:
    def test_normalize_pm_text(self):
        assert normalize_pm_text("  Book  a Demo! ") == "book a demo"
        assert normalize_pm_text(None) == ""

    def test_price_signals_sorted(self):
        assert extract_price_signals("Pro $49 and Starter $ 10") == ["$10", "$49"]


# ============================================================
# CHANGE-BASED INSIGHTS
# ============================================================

class TestGenerateInsights:
    def test_nav_change_maps_to_strategic_priority(self, competitor_id):
        diffs = [PmSignalDiff(PageType.HOMEPAGE, PmSignalChangeType.NAV_ITEMS_CHANGE, [], ["industries"])]

        insights = generate_insights(competitor_id, PageType.HOMEPAGE, diffs)

        assert len(insights) == 1
        assert insights[0].insight_type == "strategic_priority"
        assert insights[0].insight_text == "Strategic focus area shifted."
        assert insights[0].state == InsightState.CHANGE_BASED

    def test_rule_texts(self, competitor_id):
        diffs = [
            PmSignalDiff(PageType.HOMEPAGE, PmSignalChangeType.HOMEPAGE_HEADLINE_CHANGE, "a", "b"),
            PmSignalDiff(PageType.HOMEPAGE, PmSignalChangeType.CTA_TEXT_CHANGE, "a", "b"),
            PmSignalDiff(PageType.PRICING, PmSignalChangeType.PRICING_STRUCTURE_CHANGE, [], []),
            PmSignalDiff(PageType.PRODUCT_OR_SERVICES, PmSignalChangeType.PRODUCT_SERVICE_SECTION_CHANGE, [], []),
            PmSignalDiff(PageType.CASE_STUDIES_OR_CUSTOMERS, PmSignalChangeType.CASE_STUDY_OR_CUSTOMER_LOGO_ADDED, None, []),
        ]

        insights = generate_insights(competitor_id, PageType.HOMEPAGE, diffs)
        texts = {i.insight_type: (i.insight_text, i.confidence) for i in insights}

        assert texts == {
            "messaging_shift": ("Competitor updated core positioning or messaging.", InsightConfidence.HIGH),
            "conversion_strategy": ("Go-to-market or conversion strategy updated.", InsightConfidence.HIGH),
            "pricing_strategy": ("Pricing or packaging strategy updated.", InsightConfidence.HIGH),
            "product_focus": ("Service or product focus evolving.", InsightConfidence.MEDIUM),
            "credibility_proof": ("Credibility strengthened with new proof.", InsightConfidence.HIGH),
        }

    def test_first_diff_per_type_wins(self, competitor_id, job_id):
        diffs = [
            PmSignalDiff(PageType.HOMEPAGE, PmSignalChangeType.CTA_TEXT_CHANGE, "a", "b"),
            PmSignalDiff(PageType.HOMEPAGE, PmSignalChangeType.CTA_TEXT_CHANGE, "b", "c"),
        ]

        insights = generate_insights(competitor_id, PageType.HOMEPAGE, diffs, [job_id])

        assert len(insights) == 1
        assert insights[0].related_change_ids == (job_id,)

    def test_no_diffs_no_insights(self, competitor_id):
        assert generate_insights(competitor_id, PageType.HOMEPAGE, []) == []


# ============================================================
# WEBPAGE SIGNALS
# ============================================================

class TestWebpageSignals:
    def test_gtm_motion(self):
        assert derive_gtm_motion("Contact sales", "Start free trial") == "a hybrid"
        assert derive_gtm_motion("Talk to sales", None) == "a sales-led"
        assert derive_gtm_motion("Get started", None) == "a self-serve"
        assert derive_gtm_motion("Learn more", None) is None

    def test_homepage_theme(self):
        assert derive_homepage_theme("Secure compliance for every enterprise", []) == "security"
        assert derive_homepage_theme(None, None) is None

    def test_pricing_narrative(self):
        assert derive_pricing_narrative("Enterprise plans", None, []) == "Enterprise positioning emphasized."
        assert derive_pricing_narrative("Start your free trial", None, []) == (
            "Growth-led pricing motion signaled via free or trial language."
        )
        assert derive_pricing_narrative("Plans", None, []) is None

    def test_insights_from_latest_snapshots(self, competitor_id):
        homepage = SimpleNamespace(
            page_type=PageType.HOMEPAGE,
            h1_text="Automate every workflow",
            h2_headings=["Automation that scales"],
            primary_cta_text="Contact sales",
            secondary_cta_text="Start free trial",
            title="Acme",
        )
        older_homepage = SimpleNamespace(
            page_type=PageType.HOMEPAGE,
            h1_text="Secure collaboration",
            h2_headings=[],
            primary_cta_text=None,
            secondary_cta_text=None,
            title="Acme",
        )

        insights = derive_webpage_signal_insights(competitor_id, [homepage, older_homepage])
        texts = [i.insight_text for i in insights]

        assert texts == [
            "Homepage messaging emphasizes automation.",
            "Primary CTA suggests a hybrid go-to-market strategy.",
        ]
        assert all(i.insight_type == WEBPAGE_SIGNAL for i in insights)
        assert all(i.state == InsightState.OBSERVATIONAL for i in insights)
