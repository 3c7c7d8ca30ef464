"""
Tests for page classification and structural signal extraction.

Covers:
- URL / nav text / content-signal stages of page-type classification
- Ignore rules and mandatory crawl paths
- Structural extraction: title, headline, nav labels, CTAs, logo, SEO fields
- Robustness on empty and malformed markup
"""

from core.models import PageType
from workers.web_monitor.extractors import StructuralSignalExtractor, extract_structural_signal
from workers.web_monitor.models import PrimaryFocus
from workers.web_monitor.taxonomy import (
    classify_by_url,
    classify_page_type,
    mandatory_paths_for,
    page_type_label,
    page_type_priority,
    should_ignore,
)

from conftest import BASE_URL, build_page


# ============================================================
# PAGE TAXONOMY
# ============================================================

class TestClassifyPageType:
    def test_pricing_url(self):
        assert classify_page_type(f"{BASE_URL}/pricing") == PageType.PRICING

    def test_root_and_home_paths_are_homepage(self):
        assert classify_page_type(f"{BASE_URL}/") == PageType.HOMEPAGE
        assert classify_page_type(BASE_URL) == PageType.HOMEPAGE
        assert classify_page_type(f"{BASE_URL}/home") == PageType.HOMEPAGE

    def test_services_before_product(self):
        assert classify_page_type(f"{BASE_URL}/solutions") == PageType.SERVICES
        assert classify_page_type(f"{BASE_URL}/platform") == PageType.PRODUCT_OR_SERVICES

    def test_sitemap_is_navigation(self):
        assert classify_by_url(f"{BASE_URL}/sitemap") == PageType.NAVIGATION

    def test_nav_text_stage(self):
        assert classify_page_type(f"{BASE_URL}/x", "Customers") == PageType.CASE_STUDIES_OR_CUSTOMERS

    def test_content_signal_stage(self):
        assert classify_page_type(f"{BASE_URL}/x", None, "Billed per month, cancel any time") == PageType.PRICING

    def test_unknown_returns_none(self):
        assert classify_page_type(f"{BASE_URL}/about-the-team", "Our story") is None
        assert classify_by_url("") is None


class TestIgnoreAndMandatoryPaths:
    def test_ignored_urls(self):
        assert should_ignore(f"{BASE_URL}/careers")
        assert should_ignore(f"{BASE_URL}/blog/launch")

    def test_ignored_nav_text(self):
        assert should_ignore(f"{BASE_URL}/x", "Privacy Policy")

    def test_tracked_url_not_ignored(self):
        assert not should_ignore(f"{BASE_URL}/pricing", "Pricing")

    def test_generic_host_gets_default_paths(self):
        paths = mandatory_paths_for(BASE_URL)
        assert "/pricing" in paths
        assert "/buy/select-product" not in paths
        assert len(paths) == len(set(paths))

    def test_host_specific_paths_come_first(self):
        paths = mandatory_paths_for("https://www.crunchbase.com")
        assert paths[0] == "/buy/select-product"
        assert "/pricing" in paths


class TestPageTypeRegistry:
    def test_priority_ordering(self):
        assert page_type_priority(PageType.HOMEPAGE) < page_type_priority(PageType.PRICING)
        assert page_type_priority(PageType.PRICING) < page_type_priority(PageType.USE_CASES_OR_INDUSTRIES)

    def test_unknown_page_type(self):
        assert page_type_priority("bogus") == 99
        assert page_type_label("bogus") == "bogus"

    def test_label(self):
        assert page_type_label(PageType.SERVICES) == "Services / Solutions"


# ============================================================
# STRUCTURAL EXTRACTION
# ============================================================

HOMEPAGE_HTML = """
<html>
<head>
  <title>Acme | Analytics</title>
  <meta name="description" content="Acme   analytics platform">
  <script>window.track = 1;</script>
</head>
<body>
  <header>
    <img src="/img/acme-logo.svg" alt="Acme logo">
    <nav>
      <a href="/">Home</a>
      <a href="/pricing">Pricing</a>
      <a href="/careers">Careers</a>
      <a href="https://partner.example.com/x">Partner</a>
      <a href="#top">Top</a>
    </nav>
  </header>
  <main>
    <h1>Analytics for modern teams</h1>
    <h2>Dashboards</h2>
    <h2>Integrations</h2>
    <a class="btn" href="/demo">Book a demo</a>
    <a href="/signup">Start free trial</a>
    <a href="/about">About us</a>
  </main>
</body>
</html>
"""


class TestStructuralSignalExtractor:
    def test_core_fields(self):
        signal = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/", page_type=PageType.HOMEPAGE)

        assert signal.title == "Acme | Analytics"
        assert signal.h1_text == "Analytics for modern teams"
        assert signal.h2_headings == ["Dashboards", "Integrations"]
        assert signal.meta_description == "Acme analytics platform"
        assert signal.http_status == 200
        assert len(signal.html_hash) == 64

    def test_nav_keeps_same_origin_tracked_links(self):
        signal = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/")

        assert signal.nav_labels == ["Home", "Pricing"]
        assert signal.nav_items == [f"{BASE_URL}/", f"{BASE_URL}/pricing"]

    def test_ctas_require_a_cta_verb(self):
        signal = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/")

        assert signal.primary_cta_text == "Book a demo"
        assert signal.secondary_cta_text == "Start free trial"

    def test_no_cta_when_nothing_matches(self):
        signal = extract_structural_signal(build_page(ctas=[("Learn more", "/more")]), f"{BASE_URL}/")

        assert signal.primary_cta_text is None
        assert signal.secondary_cta_text is None

    def test_logo_resolved_to_absolute_url(self):
        signal = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/")

        assert signal.logo_url == f"{BASE_URL}/img/acme-logo.svg"

    def test_scripts_do_not_reach_body_text(self):
        signal = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/")

        assert "window.track" not in signal.body_text
        assert "analytics for modern teams" in signal.body_text

    def test_seo_fields(self):
        signal = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/resources/what-is-analytics")

        assert signal.seo is not None
        assert signal.seo.slug == "what is analytics"
        assert signal.seo.meta_title == "Acme | Analytics"
        assert "Acme logo" in signal.seo.image_alt_text
        assert "search_seo" in signal.structured_content

    def test_service_content_only_for_services_pages(self):
        html = build_page(body="<h2>Strategy and transformation</h2><p>Advisory roadmap for healthcare</p>")

        services = extract_structural_signal(html, f"{BASE_URL}/services", page_type=PageType.SERVICES)
        homepage = extract_structural_signal(html, f"{BASE_URL}/", page_type=PageType.HOMEPAGE)

        assert services.service_content is not None
        assert services.service_content.primary_focus == PrimaryFocus.STRATEGIC
        assert "healthcare" in services.service_content.industries
        assert homepage.service_content is None


class TestExtractionRobustness:
    def test_empty_document(self):
        signal = extract_structural_signal("", f"{BASE_URL}/")

        assert signal.title is None
        assert signal.h1_text is None
        assert signal.nav_labels == []
        assert signal.primary_cta_text is None
        assert signal.body_text == ""

    def test_none_document(self):
        signal = StructuralSignalExtractor(None, f"{BASE_URL}/").extract()

        assert signal.url == f"{BASE_URL}/"
        assert signal.h2_headings == []

    def test_malformed_markup(self):
        html = "<html><body><header><nav><a href='/pricing'>Pricing<div><h1>Broken <b>headline"
        signal = extract_structural_signal(html, f"{BASE_URL}/")

        assert signal.h1_text is not None
        assert "Broken" in signal.h1_text
        assert "pricing" in signal.body_text

    def test_identical_input_identical_output(self):
        first = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/")
        second = extract_structural_signal(HOMEPAGE_HTML, f"{BASE_URL}/")

        assert first == second
