"""
Tests for pricing extraction, pricing diffs and the monetization label.
"""

from core.models import BillingModel, CaptureStatus, PricingChangeType, PricingImpactLevel
from workers.pricing.intelligence import (
    PricingPlanData,
    PricingSnapshotData,
    derive_impact_level,
    diff_pricing_snapshots,
    extract_pricing_snapshot,
    infer_primary_monetization_model,
    parse_price_value,
    sort_plans,
)

from conftest import BASE_URL, build_pricing_page

PRICING_URL = f"{BASE_URL}/pricing"

BEFORE_PLANS = [("Starter", "$10 per month", "Start now"), ("Pro", "$49 per month", "Start now")]
AFTER_PLANS = [*BEFORE_PLANS, ("Enterprise", "Custom pricing", "Contact sales")]


def _snapshot(**overrides) -> PricingSnapshotData:
    values = dict(
        total_plans=3,
        entry_price=49.0,
        billing_model=BillingModel.SUBSCRIPTION,
        free_trial=False,
        enterprise_present=False,
        pricing_summary_hash="h",
        capture_status=CaptureStatus.STRUCTURED,
    )
    values.update(overrides)
    return PricingSnapshotData(**values)


class TestExtractPricingSnapshot:
    def test_plan_lineup(self):
        snapshot = extract_pricing_snapshot(build_pricing_page(BEFORE_PLANS), PRICING_URL)

        assert snapshot.total_plans == 2
        assert [p.plan_name for p in snapshot.plans] == ["Starter", "Pro"]
        assert snapshot.entry_price == 10.0
        assert snapshot.billing_model == BillingModel.SUBSCRIPTION
        assert snapshot.free_trial is False
        assert snapshot.enterprise_present is False
        assert snapshot.capture_status == CaptureStatus.STRUCTURED
        assert snapshot.plans[0].billing_interval == "monthly"
        assert snapshot.plans[0].feature_count == 1

    def test_plans_without_price_sort_last(self):
        snapshot = extract_pricing_snapshot(build_pricing_page(list(reversed(AFTER_PLANS))), PRICING_URL)

        assert [p.plan_name for p in snapshot.plans] == ["Starter", "Pro", "Enterprise"]
        assert snapshot.enterprise_present is True

    def test_no_plans_is_visual_only(self):
        snapshot = extract_pricing_snapshot("<html><body><h1>Talk to us</h1></body></html>", PRICING_URL)

        assert snapshot.total_plans == 0
        assert snapshot.entry_price is None
        assert snapshot.capture_status == CaptureStatus.VISUAL_ONLY

    def test_hash_is_stable(self):
        html = build_pricing_page(BEFORE_PLANS)

        first = extract_pricing_snapshot(html, PRICING_URL)
        second = extract_pricing_snapshot(html, PRICING_URL)

        assert first.pricing_summary_hash == second.pricing_summary_hash
        assert diff_pricing_snapshots(first, second) == []


class TestDiffPricingSnapshots:
    def test_enterprise_tier_added(self):
        before = extract_pricing_snapshot(build_pricing_page(BEFORE_PLANS), PRICING_URL)
        after = extract_pricing_snapshot(build_pricing_page(AFTER_PLANS), PRICING_URL)

        changes = diff_pricing_snapshots(before, after)
        by_type = {c.change_type: c for c in changes}

        assert set(by_type) == {PricingChangeType.PLAN_ADDED, PricingChangeType.ENTERPRISE_TIER_ADDITION}
        assert by_type[PricingChangeType.PLAN_ADDED].impact_level == PricingImpactLevel.MODERATE
        assert by_type[PricingChangeType.PLAN_ADDED].description == "Added 1 plan(s) to pricing lineup."
        assert by_type[PricingChangeType.ENTERPRISE_TIER_ADDITION].impact_level == PricingImpactLevel.HIGH
        assert infer_primary_monetization_model(after) == "Tiered subscription model with balanced packaging"

    def test_no_previous_snapshot(self):
        current = extract_pricing_snapshot(build_pricing_page(BEFORE_PLANS), PRICING_URL)
        assert diff_pricing_snapshots(None, current) == []

    def test_entry_price_change(self):
        before = extract_pricing_snapshot(build_pricing_page(BEFORE_PLANS), PRICING_URL)
        after = extract_pricing_snapshot(
            build_pricing_page([("Starter", "$12 per month", "Start now"), BEFORE_PLANS[1]]), PRICING_URL
        )

        changes = diff_pricing_snapshots(before, after)

        assert [c.change_type for c in changes] == [PricingChangeType.ENTRY_PRICE_CHANGE]
        assert changes[0].description == "Entry price moved from $10 to $12 (+20%)."
        assert changes[0].impact_level == PricingImpactLevel.HIGH

    def test_plan_level_feature_and_cta_shifts(self):
        before = _snapshot(pricing_summary_hash="a", plans=[PricingPlanData("Pro", 49.0, feature_count=3, cta_text="Buy")])
        after = _snapshot(pricing_summary_hash="b", plans=[PricingPlanData("pro", 49.0, feature_count=5, cta_text="Buy now")])

        types = [c.change_type for c in diff_pricing_snapshots(before, after)]

        assert types == [PricingChangeType.FEATURE_SHIFT, PricingChangeType.CTA_CHANGE]


class TestImpactLevel:
    def test_entry_price_bands(self):
        assert derive_impact_level(PricingChangeType.ENTRY_PRICE_CHANGE, 15) == PricingImpactLevel.HIGH
        assert derive_impact_level(PricingChangeType.ENTRY_PRICE_CHANGE, 5) == PricingImpactLevel.MODERATE
        assert derive_impact_level(PricingChangeType.ENTRY_PRICE_CHANGE, 4.99) == PricingImpactLevel.LOW

    def test_free_trial_change_is_low(self):
        assert derive_impact_level(PricingChangeType.FREE_TRIAL_CHANGE) == PricingImpactLevel.LOW


class TestMonetizationModel:
    def test_enterprise_upsell(self):
        snapshot = _snapshot(enterprise_present=True, entry_price=49.0, total_plans=3)
        assert infer_primary_monetization_model(snapshot) == "Enterprise upsell-focused tiered subscription"

    def test_self_serve(self):
        snapshot = _snapshot(free_trial=True, entry_price=19.0)
        assert infer_primary_monetization_model(snapshot) == "Self-serve growth model"

    def test_high_touch(self):
        snapshot = _snapshot(total_plans=1, entry_price=None, enterprise_present=True)
        assert infer_primary_monetization_model(snapshot) == "High-touch enterprise sales model"

    def test_usage_and_hybrid(self):
        assert infer_primary_monetization_model(_snapshot(billing_model=BillingModel.USAGE)) == (
            "Usage-based monetization model"
        )
        assert infer_primary_monetization_model(_snapshot(billing_model=BillingModel.HYBRID)) == (
            "Hybrid subscription and usage monetization"
        )


class TestPriceHelpers:
    def test_parse_price_value(self):
        assert parse_price_value("Only $19.99 / mo") == 19.99
        assert parse_price_value("EUR 25") == 25.0
        assert parse_price_value("$1,299 per month") == 1299.0
        assert parse_price_value("EUR 1.299,50") == 1299.5
        assert parse_price_value("USD 12,000") == 12000.0
        assert parse_price_value("$9,5") == 9.5
        assert parse_price_value("Custom pricing") is None

    def test_sort_plans(self):
        plans = [PricingPlanData("Enterprise"), PricingPlanData("Pro", 49.0), PricingPlanData("Starter", 10.0)]
        assert [p.plan_name for p in sort_plans(plans)] == ["Starter", "Pro", "Enterprise"]
