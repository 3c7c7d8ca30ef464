"""
Page Discovery Module — Competitor Site Link Selection
======================================================
Collects same-origin links from a competitor's homepage, classifies them
with the page taxonomy and picks the capture queue for one crawl job:

    homepage → one page per tracked type (by priority) → a few SEO content
    pages → mandatory paths for types navigation did not expose.

The queue is capped at ``max_pages`` and never contains duplicates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from core.models import PageType
from workers.web_monitor.taxonomy import (
    classify_by_url,
    classify_page_type,
    mandatory_paths_for,
    page_type_priority,
    should_ignore,
)

logger = logging.getLogger(__name__)

# ── Link filtering rules ──────────────────────────────────────────────

LINK_SELECTORS = "nav a[href], header a[href], a[href]"
SKIPPED_SCHEMES = ("#", "javascript:", "mailto:", "tel:")
STATIC_ASSET_RE = re.compile(
    r"\.(?:pdf|jpe?g|png|gif|svg|webp|zip|css|js|ico|mp4|xml)$",
    re.IGNORECASE,
)

# Content pages kept for search/SEO signals even though they carry no tracked type.
CASE_STUDY_PATH_RE = re.compile(r"/case-stud", re.IGNORECASE)
SEO_CONTENT_PATH_RE = re.compile(r"/(?:blog|resources|insights|knowledge|guides)(?:/|$)", re.IGNORECASE)
MAX_SEO_CONTENT_PAGES = 3


@dataclass
class CandidateLink:
    url: str
    anchor_text: str
    page_type: PageType | None = None
    seo_content: bool = False


@dataclass
class CrawlTarget:
    url: str
    page_type: PageType
    source: str  # 'homepage', 'navigation', 'seo_content', 'mandatory'


def normalize_url(url: str) -> str:
    """Drop query string, fragment and trailing slash (root keeps its '/')."""
    parsed = urlparse(url)
    path = parsed.path.rstrip("/") or "/"
    return urlunparse((parsed.scheme, parsed.netloc.lower(), path, "", "", ""))


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc.lower()}"


def extract_candidate_links(html: str, base_url: str) -> list[CandidateLink]:
    """
    Same-origin http(s) links found on a page, nav/header anchors first.

    Args:
        html: Page HTML. Malformed markup yields whatever the parser recovers.
        base_url: URL the HTML was fetched from, used to resolve relative hrefs.

    Returns:
        Unique candidates in document order, anchor text truncated to 200 chars.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    base_host = urlparse(base_url).netloc.lower()
    candidates: list[CandidateLink] = []
    seen: set[str] = set()

    for a_tag in soup.select(LINK_SELECTORS):
        href = (a_tag.get("href") or "").strip()
        if not href or href.lower().startswith(SKIPPED_SCHEMES):
            continue
        try:
            absolute = urljoin(base_url, href)
            parsed = urlparse(absolute)
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https") or parsed.netloc.lower() != base_host:
            continue
        if STATIC_ASSET_RE.search(parsed.path):
            continue

        clean_url = normalize_url(absolute)
        if clean_url in seen:
            continue
        seen.add(clean_url)
        candidates.append(
            CandidateLink(url=clean_url, anchor_text=a_tag.get_text(separator=" ", strip=True)[:200])
        )

    return candidates


def classify_link(link: CandidateLink) -> CandidateLink:
    """Attach the tracked page type, or flag the link as an SEO content page."""
    path = urlparse(link.url).path

    # Blog/resources are on the ignore list but still feed the SEO models.
    if SEO_CONTENT_PATH_RE.search(path):
        link.seo_content = True
        link.page_type = PageType.USE_CASES_OR_INDUSTRIES
        return link

    if should_ignore(link.url, link.anchor_text):
        return link

    link.page_type = classify_page_type(link.url, link.anchor_text)
    if link.page_type is None and CASE_STUDY_PATH_RE.search(path):
        link.page_type = PageType.CASE_STUDIES_OR_CUSTOMERS
    return link


def pick_target_urls(base_url: str, links: list[CandidateLink], max_pages: int) -> list[CrawlTarget]:
    """
    Build the capture queue for one crawl job.

    The homepage always comes first. Navigation contributes at most one page
    per tracked type, ordered by page-type priority (stable on document
    order). Up to ``MAX_SEO_CONTENT_PAGES`` blog/resource pages follow, then
    mandatory paths fill types navigation did not expose.
    """
    if max_pages <= 0:
        return []

    homepage = normalize_url(origin_of(base_url) + "/")
    targets: list[CrawlTarget] = [CrawlTarget(url=homepage, page_type=PageType.HOMEPAGE, source="homepage")]
    seen_urls = {homepage}
    seen_types = {PageType.HOMEPAGE}

    typed = [
        link for link in links
        if link.page_type is not None
        and not link.seo_content
        and link.page_type not in (PageType.NAVIGATION, PageType.HOMEPAGE)
    ]
    typed.sort(key=lambda link: page_type_priority(link.page_type))

    for link in typed:
        if link.page_type in seen_types or link.url in seen_urls:
            continue
        seen_types.add(link.page_type)
        seen_urls.add(link.url)
        targets.append(CrawlTarget(url=link.url, page_type=link.page_type, source="navigation"))

    seo_added = 0
    for link in links:
        if seo_added >= MAX_SEO_CONTENT_PAGES:
            break
        if not link.seo_content or link.url in seen_urls:
            continue
        seen_urls.add(link.url)
        targets.append(CrawlTarget(url=link.url, page_type=link.page_type, source="seo_content"))
        seo_added += 1

    origin = origin_of(base_url)
    for path in mandatory_paths_for(base_url):
        url = normalize_url(origin + path)
        page_type = classify_by_url(url)
        if page_type is None or page_type in seen_types or url in seen_urls:
            continue
        seen_types.add(page_type)
        seen_urls.add(url)
        targets.append(CrawlTarget(url=url, page_type=page_type, source="mandatory"))

    if len(targets) > max_pages:
        logger.info("Reached max_pages limit (%d) for %s, dropping %d targets", max_pages, base_url, len(targets) - max_pages)
        targets = targets[:max_pages]
    return targets


def discover_targets(html: str, base_url: str, *, max_pages: int) -> list[CrawlTarget]:
    """Candidate extraction, classification and selection in one call."""
    links = [classify_link(link) for link in extract_candidate_links(html, base_url)]
    targets = pick_target_urls(base_url, links, max_pages)
    logger.info(
        "Discovered %d candidate links, selected %d targets for %s",
        len(links), len(targets), base_url,
    )
    return targets


# ── robots.txt ────────────────────────────────────────────────────────


@dataclass
class RobotsGroup:
    user_agents: list[str] = field(default_factory=list)
    allow: list[str] = field(default_factory=list)
    disallow: list[str] = field(default_factory=list)


def parse_robots_txt(text: str) -> list[RobotsGroup]:
    """Split robots.txt into user-agent groups; consecutive agent lines share a group."""
    groups: list[RobotsGroup] = []
    current: RobotsGroup | None = None
    for raw_line in (text or "").splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if ":" not in line:
            continue
        directive, value = line.split(":", 1)
        directive = directive.strip().lower()
        value = value.strip()

        if directive == "user-agent":
            if current is None or current.allow or current.disallow:
                current = RobotsGroup()
                groups.append(current)
            current.user_agents.append(value.lower())
        elif current is not None and directive == "allow" and value:
            current.allow.append(value)
        elif current is not None and directive == "disallow" and value:
            current.disallow.append(value)
    return groups


def select_robots_group(groups: list[RobotsGroup], user_agent: str) -> RobotsGroup | None:
    """Group naming our agent, else the ``*`` group."""
    token = user_agent.lower()
    for group in groups:
        if any(ua != "*" and ua in token for ua in group.user_agents):
            return group
    for group in groups:
        if "*" in group.user_agents:
            return group
    return None


def is_robots_allowed(group: RobotsGroup | None, url: str) -> bool:
    """Longest matching prefix wins; a tie goes to ``Allow``."""
    if group is None:
        return True
    path = urlparse(url).path or "/"
    longest_allow = max((len(p) for p in group.allow if path.startswith(p)), default=-1)
    longest_disallow = max((len(p) for p in group.disallow if path.startswith(p)), default=-1)
    return longest_allow >= longest_disallow
